"""Lineup slots and the DP state (filled count per slot)."""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Tuple


class Slot(Enum):
    """Starting lineup slots, in DP state order."""

    QB = "QB"
    RB = "RB"
    WR = "WR"
    TE = "TE"
    FLEX = "FLEX"
    K = "K"
    DST = "DST"


SLOT_ORDER: Tuple[Slot, ...] = tuple(Slot)
_SLOT_INDEX = {slot: i for i, slot in enumerate(SLOT_ORDER)}


@dataclass(frozen=True)
class DPState:
    """Filled count per slot; hashable and compared by value."""

    counts: Tuple[int, ...] = (0,) * len(SLOT_ORDER)

    def __post_init__(self):
        if len(self.counts) != len(SLOT_ORDER):
            raise ValueError(
                f"DPState needs {len(SLOT_ORDER)} counts, got {len(self.counts)}"
            )

    def filled(self, slot: Slot) -> int:
        return self.counts[_SLOT_INDEX[slot]]

    def add(self, slot: Slot) -> "DPState":
        """Return a new state with one more player in *slot*."""
        counts = list(self.counts)
        counts[_SLOT_INDEX[slot]] += 1
        return DPState(tuple(counts))

    def has_room(self, slot: Slot, required: Mapping[Slot, int]) -> bool:
        return self.filled(slot) < required.get(slot, 0)

    def is_terminal(self, required: Mapping[Slot, int]) -> bool:
        """True when every slot holds exactly its required count."""
        return all(self.filled(slot) == required.get(slot, 0) for slot in SLOT_ORDER)
