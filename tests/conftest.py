"""Shared fixtures for the lineup optimizer test suite."""

import pytest

from src.lineup_builder.roster_requirements import RosterRequirements
from src.projections.models import PlayerProjection, Projection
from src.projections.truncated_normal import TruncatedNormalParams


def build_player(pid, position, mean=15.0, sd=5.0, team=None, lower=0.0, upper=None,
                 eligible=(), is_active=True, confidence=1.0):
    """Player whose projection comes straight from a truncated normal.

    The parent normal is centred on *mean*; with the default bounds the
    truncation is mild, so the projected mean stays close to *mean*.
    """
    upper = mean + 10 * sd if upper is None else upper
    dist = TruncatedNormalParams(mean, sd, lower, upper)
    return PlayerProjection(
        player_id=pid,
        name=f"Player {pid}",
        team=team or f"T{pid}",
        position=position,
        projection=Projection.from_distribution(dist, confidence=confidence),
        eligible_positions=frozenset(eligible),
        is_active=is_active,
    )


# ------------------------------------------------------------------
# Lightweight factories – cheap to construct, no I/O
# ------------------------------------------------------------------

@pytest.fixture
def make_player():
    return build_player


@pytest.fixture
def small_requirements():
    """QB1 / RB2 / WR3 / TE1 / FLEX1 / K1 / DST1, three on the bench."""
    return RosterRequirements(
        counts={"QB": 1, "RB": 2, "WR": 3, "TE": 1, "K": 1, "DST": 1},
        flex=1,
        bench=3,
    )


@pytest.fixture
def small_pool():
    """2 QB, 3 RB, 4 WR, 2 TE, 1 K, 1 DST with distinct, ordered means."""
    return [
        build_player("qb1", "QB", mean=22.0, sd=6.0, team="KC"),
        build_player("qb2", "QB", mean=18.0, sd=5.0, team="BUF"),
        build_player("rb1", "RB", mean=17.0, sd=6.0, team="SF"),
        build_player("rb2", "RB", mean=14.0, sd=5.0, team="DAL"),
        build_player("rb3", "RB", mean=9.0, sd=4.0, team="NYG"),
        build_player("wr1", "WR", mean=16.0, sd=6.0, team="KC"),
        build_player("wr2", "WR", mean=13.0, sd=5.0, team="MIA"),
        build_player("wr3", "WR", mean=11.0, sd=5.0, team="CIN"),
        build_player("wr4", "WR", mean=10.0, sd=4.0, team="DET"),
        build_player("te1", "TE", mean=12.0, sd=4.0, team="BAL"),
        build_player("te2", "TE", mean=8.0, sd=3.0, team="LV"),
        build_player("k1", "K", mean=8.0, sd=3.0, team="SEA"),
        build_player("dst1", "DST", mean=7.0, sd=4.0, team="PIT", lower=-5.0),
    ]
