"""Roster requirements: how many starters each slot needs."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

from src.errors import InvalidInputError
from src.lineup_builder.config import (
    DEFAULT_ROSTER_SLOTS,
    FLEX_ELIGIBLE_POSITIONS,
    PRIMARY_POSITIONS,
)
from src.lineup_builder.dp_state import Slot


@dataclass(frozen=True)
class RosterRequirements:
    """Starting lineup shape plus bench size.

    ``counts`` holds the required starters per primary position. FLEX is
    filled by any player whose position is in ``flex_positions``.
    """

    counts: Dict[str, int] = field(
        default_factory=lambda: {p: DEFAULT_ROSTER_SLOTS[p] for p in PRIMARY_POSITIONS}
    )
    flex: int = DEFAULT_ROSTER_SLOTS["FLEX"]
    flex_positions: FrozenSet[str] = FLEX_ELIGIBLE_POSITIONS
    bench: int = DEFAULT_ROSTER_SLOTS["BENCH"]
    roster_size: Optional[int] = None

    def __post_init__(self):
        unknown = set(self.counts) - set(PRIMARY_POSITIONS)
        if unknown:
            raise InvalidInputError(
                f"Unknown roster positions: {sorted(unknown)}. "
                f"Must be among {list(PRIMARY_POSITIONS)}."
            )
        for position, count in self.counts.items():
            if not isinstance(count, int) or count < 0:
                raise InvalidInputError(
                    f"Required count for {position} must be a non-negative int, got {count!r}"
                )
        if self.flex < 0:
            raise InvalidInputError(f"flex must be >= 0, got {self.flex}")
        if self.bench < 0:
            raise InvalidInputError(f"bench must be >= 0, got {self.bench}")

        bad_flex = set(self.flex_positions) - set(PRIMARY_POSITIONS)
        if bad_flex:
            raise InvalidInputError(f"Invalid FLEX-eligible positions: {sorted(bad_flex)}")
        if self.flex > 0 and not self.flex_positions:
            raise InvalidInputError("flex > 0 requires at least one FLEX-eligible position")

        if self.starters == 0:
            raise InvalidInputError("Roster requirements must include at least one starter")
        if self.starters > self.total_roster_size:
            raise InvalidInputError(
                f"Starters ({self.starters}) exceed roster size ({self.total_roster_size})"
            )

    @classmethod
    def from_slots(cls, slots: Mapping[str, int], flex_positions: Iterable[str] = FLEX_ELIGIBLE_POSITIONS):
        """Build from a league-style slot dict such as ``DEFAULT_ROSTER_SLOTS``."""
        extra = set(slots) - set(PRIMARY_POSITIONS) - {"FLEX", "BENCH"}
        if extra:
            raise InvalidInputError(f"Unknown roster slots: {sorted(extra)}")
        return cls(
            counts={p: slots[p] for p in PRIMARY_POSITIONS if p in slots},
            flex=slots.get("FLEX", 0),
            flex_positions=frozenset(flex_positions),
            bench=slots.get("BENCH", 0),
        )

    @classmethod
    def default(cls) -> "RosterRequirements":
        return cls.from_slots(DEFAULT_ROSTER_SLOTS)

    @property
    def starters(self) -> int:
        return sum(self.counts.values()) + self.flex

    @property
    def total_roster_size(self) -> int:
        if self.roster_size is not None:
            return self.roster_size
        return self.starters + self.bench

    def required(self, slot: Slot) -> int:
        if slot is Slot.FLEX:
            return self.flex
        return self.counts.get(slot.value, 0)

    def slot_requirements(self) -> Dict[Slot, int]:
        return {slot: self.required(slot) for slot in Slot}

    def is_flex_eligible(self, positions: Iterable[str]) -> bool:
        return any(p in self.flex_positions for p in positions)

    def eligible_slots(self, positions: Iterable[str]) -> List[Slot]:
        """Slots a player with *positions* may fill, primaries first."""
        positions = set(positions)
        slots = [
            Slot(p) for p in PRIMARY_POSITIONS
            if p in positions and self.counts.get(p, 0) > 0
        ]
        if self.flex > 0 and self.is_flex_eligible(positions):
            slots.append(Slot.FLEX)
        return slots
