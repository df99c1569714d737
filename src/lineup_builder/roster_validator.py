"""Lineup validation, slot assignment and shortfall diagnosis."""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.errors import InfeasibleRosterError
from src.lineup_builder.dp_state import Slot
from src.lineup_builder.roster_requirements import RosterRequirements
from src.projections.models import PlayerProjection

BENCH = "BENCH"


class RosterValidator:
    """Validates lineups against roster requirements."""

    def __init__(self, requirements: RosterRequirements):
        self.requirements = requirements

    def determine_slot(self, filled: Dict[Slot, int], positions: Iterable[str]) -> Optional[Slot]:
        """
        Determine which starting slot a player should fill.

        Priority: eligible primary position -> FLEX (if eligible) -> None (bench).
        """
        for slot in self.requirements.eligible_slots(positions):
            if filled.get(slot, 0) < self.requirements.required(slot):
                return slot
        return None

    def shortfalls(self, players: Sequence[PlayerProjection]) -> Dict[str, int]:
        """Players short per slot when filling greedily from *players*.

        Only slots that cannot be filled appear in the result.
        """
        filled: Dict[Slot, int] = {}
        # Single-position players first so they do not lose their slot
        # to a multi-eligible player.
        for player in sorted(players, key=lambda p: len(p.eligible_positions)):
            slot = self.determine_slot(filled, player.eligible_positions)
            if slot is not None:
                filled[slot] = filled.get(slot, 0) + 1

        short = {}
        for slot in Slot:
            missing = self.requirements.required(slot) - filled.get(slot, 0)
            if missing > 0:
                short[slot.value] = missing
        return short

    def raise_infeasible(
        self, players: Sequence[PlayerProjection], locked: Iterable[str] = ()
    ) -> None:
        """Raise :class:`InfeasibleRosterError` describing why no lineup exists."""
        short = self.shortfalls(players)
        if short:
            detail = ", ".join(f"{count} {slot}" for slot, count in short.items())
            message = f"Cannot fill a starting lineup: short {detail}"
        else:
            message = (
                "Cannot fill a starting lineup with locked players "
                f"{sorted(locked)}: they do not fit the open slots together"
            )
        raise InfeasibleRosterError(message, shortfalls=short)

    def validate_lineup(
        self, starters: Sequence[Tuple[Slot, PlayerProjection]]
    ) -> Tuple[bool, List[str]]:
        """
        Validate that a starting lineup meets all requirements.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []

        seen = set()
        for slot, player in starters:
            if player.player_id in seen:
                errors.append(f"Player {player.player_id} appears more than once")
            seen.add(player.player_id)
            if slot not in self.requirements.eligible_slots(player.eligible_positions):
                errors.append(
                    f"Player {player.player_id} ({player.position}) is not eligible for {slot.value}"
                )

        for slot in Slot:
            required_count = self.requirements.required(slot)
            actual_count = sum(1 for s, _ in starters if s is slot)

            if actual_count < required_count:
                errors.append(
                    f"Missing {required_count - actual_count} {slot.value} "
                    f"(have {actual_count}, need {required_count})"
                )
            elif actual_count > required_count:
                errors.append(
                    f"Too many {slot.value} players "
                    f"(have {actual_count}, max {required_count})"
                )

        return (len(errors) == 0, errors)

    def lineup_summary(
        self,
        starters: Sequence[Tuple[Slot, PlayerProjection]],
        bench: Sequence[PlayerProjection] = (),
    ) -> Dict[str, Dict]:
        """Generate summary of a lineup's slot usage."""
        summary = {}

        for slot in Slot:
            required = self.requirements.required(slot)
            filled = sum(1 for s, _ in starters if s is slot)
            summary[slot.value] = {
                "filled": filled,
                "required": required,
                "remaining": max(0, required - filled),
            }
        summary[BENCH] = {
            "filled": len(bench),
            "required": self.requirements.bench,
            "remaining": max(0, self.requirements.bench - len(bench)),
        }

        return summary
