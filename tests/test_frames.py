"""Tests for the pandas adapters in src.optimizer.frames."""

import math

import pandas as pd
import pytest

from src.errors import InvalidInputError
from src.optimizer.frames import (
    evaluations_to_frame,
    lineup_to_frame,
    players_from_frame,
)
from src.optimizer.lineup_optimizer import LineupOptimizer
from src.lineup_builder.candidate_generator import KBestLineupGenerator
from src.simulation_engine.opponent import normal_opponent
from src.simulation_engine.win_probability import MonteCarloEstimator


def _frame(**extra):
    data = {
        "player_id": ["p1", "p2", "p3"],
        "name": ["Alpha", "Bravo", "Charlie"],
        "team": ["KC", "BUF", None],
        "position": ["qb", "RB", "WR"],
        "floor": [14.0, 6.0, 5.0],
        "median": [20.0, 12.0, 11.0],
        "ceiling": [28.0, 20.0, 19.0],
    }
    data.update(extra)
    return pd.DataFrame(data)


# ── players_from_frame ───────────────────────────────────────────────


class TestPlayersFromFrame:
    def test_builds_projections(self):
        players = players_from_frame(_frame())
        assert [p.player_id for p in players] == ["p1", "p2", "p3"]
        qb = players[0]
        assert qb.position == "QB"
        assert qb.projection.median == 20.0
        # A near-symmetric triple fits a mean near the median
        assert qb.mean == pytest.approx(20.0, abs=1.0)
        assert qb.variance > 0

    def test_missing_team_defaults(self):
        players = players_from_frame(_frame())
        assert players[2].team == "FA"

    def test_optional_columns(self):
        players = players_from_frame(_frame(
            eligible_positions=[None, "RB/WR", "WR,TE"],
            confidence=[1.0, 0.5, None],
            is_active=["yes", "false", None],
        ))
        assert players[1].eligible_positions == frozenset({"RB", "WR"})
        assert players[2].eligible_positions == frozenset({"WR", "TE"})
        assert players[1].projection.confidence == 0.5
        assert players[2].projection.confidence == 1.0
        assert players[0].is_active
        assert not players[1].is_active
        assert players[2].is_active

    def test_missing_columns(self):
        with pytest.raises(InvalidInputError, match="missing columns"):
            players_from_frame(_frame().drop(columns=["ceiling"]))

    def test_bad_quantile_order_names_player(self):
        df = _frame()
        df.loc[1, "floor"] = 15.0
        with pytest.raises(InvalidInputError, match="Player p2"):
            players_from_frame(df)

    def test_bad_boolean(self):
        with pytest.raises(InvalidInputError, match="boolean"):
            players_from_frame(_frame(is_active=["yes", "maybe", "no"]))


# ── Output frames ────────────────────────────────────────────────────


class TestOutputFrames:
    @pytest.fixture
    def lineup(self, small_pool, small_requirements):
        optimizer = LineupOptimizer(
            generator=KBestLineupGenerator(k=5),
            estimator=MonteCarloEstimator(max_simulations=1000, min_simulations=500),
            max_simulated_candidates=2,
            strategy_feedback=False,
        )
        return optimizer.optimize(small_pool, normal_opponent(120.0, 25.0), small_requirements, seed=3)

    def test_evaluations_frame(self, lineup):
        df = evaluations_to_frame(lineup.evaluations)
        assert len(df) == len(lineup.evaluations)
        assert df["rank"].iloc[0] == 1
        assert df["n_simulations"].iloc[0] > 0
        # Only the first two were simulated
        assert df["mc_win_probability"].iloc[2:].isna().all()
        first = lineup.evaluations[0]
        assert df["std"].iloc[0] == pytest.approx(math.sqrt(first.variance))

    def test_evaluations_frame_empty(self):
        df = evaluations_to_frame([])
        assert df.empty
        assert "win_probability" in df.columns

    def test_lineup_frame(self, lineup, small_requirements):
        df = lineup_to_frame(lineup)
        assert len(df) == small_requirements.starters + small_requirements.bench
        assert (df["slot"] == "BENCH").sum() == small_requirements.bench
        assert set(df["player_id"]) == {p.player_id for p in lineup.players} | {
            p.player_id for p in lineup.bench
        }
