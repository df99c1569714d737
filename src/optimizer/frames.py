"""pandas adapters: player pools in, candidate evaluations out."""

import logging
import math
from typing import Sequence

import pandas as pd

from src.errors import InvalidInputError
from src.optimizer.config import PLAYER_FRAME_COLUMNS
from src.optimizer.lineup_optimizer import CandidateEvaluation, OptimizedLineup
from src.projections.models import PlayerProjection, Projection

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "1", "yes", "y", "t"}
_FALSE_STRINGS = {"false", "0", "no", "n", "f"}


def _safe(val, default=None):
    """Return *default* when *val* is NaN/None/pd.NA, else the value."""
    if val is None or val is pd.NA:
        return default
    if isinstance(val, float) and math.isnan(val):
        return default
    return val


def _parse_positions(val) -> frozenset:
    """``"RB/WR"``, ``"RB,WR"`` or a list -> ``{"RB", "WR"}``."""
    val = _safe(val)
    if val is None:
        return frozenset()
    if isinstance(val, str):
        parts = val.replace(",", "/").split("/")
    else:
        parts = list(val)
    return frozenset(p.strip().upper() for p in parts if str(p).strip())


def _parse_bool(val, default: bool = True) -> bool:
    val = _safe(val)
    if val is None:
        return default
    if isinstance(val, str):
        lowered = val.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise InvalidInputError(f"Cannot interpret {val!r} as a boolean")
    return bool(val)


def players_from_frame(df: pd.DataFrame, **fit_kwargs) -> list:
    """Build player projections from a prepared frame.

    Required columns: ``player_id, name, team, position, floor, median,
    ceiling``. Optional: ``eligible_positions``, ``confidence``,
    ``is_active``. Each row's floor/median/ceiling is fitted to a truncated
    normal with position-implied bounds.

    Raises:
        InvalidInputError: If required columns are missing or a row is invalid.
    """
    missing = [c for c in PLAYER_FRAME_COLUMNS if c not in df.columns]
    if missing:
        raise InvalidInputError(f"Player frame is missing columns: {missing}")

    players = []
    for _, row in df.iterrows():
        player_id = str(row["player_id"])
        position = str(row["position"]).strip().upper()
        try:
            projection = Projection.from_quantiles(
                float(row["floor"]),
                float(row["median"]),
                float(row["ceiling"]),
                position,
                confidence=float(_safe(row.get("confidence"), 1.0)),
                **fit_kwargs,
            )
            players.append(
                PlayerProjection(
                    player_id=player_id,
                    name=str(row["name"]),
                    team=str(_safe(row["team"], "FA")),
                    position=position,
                    projection=projection,
                    eligible_positions=_parse_positions(row.get("eligible_positions")),
                    is_active=_parse_bool(row.get("is_active")),
                )
            )
        except (InvalidInputError, TypeError, ValueError) as exc:
            raise InvalidInputError(f"Player {player_id}: {exc}") from exc

    logger.info("Built %d player projections from frame", len(players))
    return players


def evaluations_to_frame(evaluations: Sequence[CandidateEvaluation]) -> pd.DataFrame:
    """One row per evaluated candidate, in the given order."""
    rows = []
    for rank, e in enumerate(evaluations, start=1):
        mc = e.mc_result
        rows.append({
            "rank": rank,
            "players": ", ".join(p.player_id for p in e.candidate.players),
            "dp_strategy": e.candidate.strategy,
            "strategy_hint": e.strategy_hint,
            "expected_points": e.expected_points,
            "std": math.sqrt(e.variance),
            "analytic_win_probability": e.analytic_win_probability,
            "mc_win_probability": mc.win_probability if mc else None,
            "mc_standard_error": mc.standard_error if mc else None,
            "n_simulations": mc.n_simulations if mc else 0,
            "win_probability": e.win_probability,
            "diversity_score": e.candidate.diversity_score,
        })
    return pd.DataFrame(rows, columns=[
        "rank", "players", "dp_strategy", "strategy_hint", "expected_points", "std",
        "analytic_win_probability", "mc_win_probability", "mc_standard_error",
        "n_simulations", "win_probability", "diversity_score",
    ])


def lineup_to_frame(lineup: OptimizedLineup) -> pd.DataFrame:
    """Starters (with their slot) followed by the bench."""
    rows = [
        {
            "slot": slot.value,
            "player_id": p.player_id,
            "name": p.name,
            "team": p.team,
            "position": p.position,
            "mean": p.mean,
            "std": p.std,
            "floor": p.projection.floor,
            "ceiling": p.projection.ceiling,
        }
        for slot, p in lineup.starters
    ]
    rows.extend(
        {
            "slot": "BENCH",
            "player_id": p.player_id,
            "name": p.name,
            "team": p.team,
            "position": p.position,
            "mean": p.mean,
            "std": p.std,
            "floor": p.projection.floor,
            "ceiling": p.projection.ceiling,
        }
        for p in lineup.bench
    )
    return pd.DataFrame(rows)
