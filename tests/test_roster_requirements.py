"""Tests for roster requirements and the DP state."""

import pytest

from src.errors import InvalidInputError
from src.lineup_builder.config import DEFAULT_ROSTER_SLOTS
from src.lineup_builder.dp_state import DPState, Slot
from src.lineup_builder.roster_requirements import RosterRequirements


# ── Requirements ─────────────────────────────────────────────────────


class TestRosterRequirements:
    def test_default_matches_league_slots(self):
        req = RosterRequirements.default()
        assert req.counts == {"QB": 1, "RB": 2, "WR": 2, "TE": 1, "K": 1, "DST": 1}
        assert req.flex == 1
        assert req.bench == 6
        assert req.starters == 9
        assert req.total_roster_size == sum(DEFAULT_ROSTER_SLOTS.values())

    def test_from_slots(self):
        req = RosterRequirements.from_slots({"QB": 2, "RB": 2, "WR": 3, "FLEX": 2, "BENCH": 4})
        assert req.required(Slot.QB) == 2
        assert req.required(Slot.FLEX) == 2
        assert req.required(Slot.TE) == 0
        assert req.bench == 4

    def test_from_slots_rejects_unknown_slot(self):
        with pytest.raises(InvalidInputError, match="Unknown roster slots"):
            RosterRequirements.from_slots({"QB": 1, "SUPERFLEX": 1})

    def test_unknown_position_rejected(self):
        with pytest.raises(InvalidInputError, match="Unknown roster positions"):
            RosterRequirements(counts={"QB": 1, "LS": 1})

    def test_negative_count_rejected(self):
        with pytest.raises(InvalidInputError, match="non-negative"):
            RosterRequirements(counts={"QB": -1})

    def test_starters_exceed_roster_size(self):
        with pytest.raises(InvalidInputError, match="exceed roster size"):
            RosterRequirements(counts={"QB": 1, "RB": 2}, flex=1, roster_size=3)

    def test_explicit_roster_size(self):
        req = RosterRequirements(counts={"QB": 1}, flex=0, bench=0, roster_size=15)
        assert req.total_roster_size == 15

    def test_no_starters_rejected(self):
        with pytest.raises(InvalidInputError, match="at least one starter"):
            RosterRequirements(counts={}, flex=0)

    def test_flex_without_eligible_positions(self):
        with pytest.raises(InvalidInputError, match="FLEX-eligible"):
            RosterRequirements(counts={"QB": 1}, flex=1, flex_positions=frozenset())

    def test_invalid_flex_position(self):
        with pytest.raises(InvalidInputError, match="FLEX-eligible"):
            RosterRequirements(flex_positions=frozenset({"RB", "LS"}))

    def test_slot_requirements(self):
        req = RosterRequirements.default()
        slots = req.slot_requirements()
        assert slots[Slot.FLEX] == 1
        assert slots[Slot.WR] == 2
        assert set(slots) == set(Slot)


class TestEligibleSlots:
    def test_rb_gets_primary_then_flex(self):
        req = RosterRequirements.default()
        assert req.eligible_slots({"RB"}) == [Slot.RB, Slot.FLEX]

    def test_qb_not_flex_eligible(self):
        req = RosterRequirements.default()
        assert req.eligible_slots({"QB"}) == [Slot.QB]

    def test_multi_position_player(self):
        req = RosterRequirements.default()
        assert req.eligible_slots({"RB", "WR"}) == [Slot.RB, Slot.WR, Slot.FLEX]

    def test_position_without_slots(self):
        req = RosterRequirements(counts={"QB": 1, "RB": 2, "WR": 2}, flex=1)
        assert req.eligible_slots({"TE"}) == [Slot.FLEX]
        assert req.eligible_slots({"K"}) == []


# ── DP state ─────────────────────────────────────────────────────────


class TestDPState:
    def test_empty_state(self):
        state = DPState()
        assert all(state.filled(slot) == 0 for slot in Slot)

    def test_add_returns_new_state(self):
        state = DPState()
        nxt = state.add(Slot.RB)
        assert nxt.filled(Slot.RB) == 1
        assert state.filled(Slot.RB) == 0

    def test_structural_equality_and_hash(self):
        a = DPState().add(Slot.RB).add(Slot.WR)
        b = DPState().add(Slot.WR).add(Slot.RB)
        assert a == b
        assert len({a, b}) == 1

    def test_has_room_and_terminal(self):
        req = RosterRequirements(counts={"QB": 1, "RB": 1}, flex=1, bench=0)
        required = req.slot_requirements()
        state = DPState().add(Slot.QB)
        assert not state.has_room(Slot.QB, required)
        assert state.has_room(Slot.RB, required)
        assert not state.is_terminal(required)

        full = state.add(Slot.RB).add(Slot.FLEX)
        assert full.is_terminal(required)

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            DPState((0, 0))
