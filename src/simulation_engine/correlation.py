"""Factor-model correlation between players in a lineup.

Each position loads onto three latent game factors (pass volume, rush
volume, pace). The correlation between two players is the dot product of
their loadings plus a bonus when they share an NFL team, clamped to
``[-CORRELATION_CLAMP, CORRELATION_CLAMP]``.

Everything here is a pure function of the player list: the matrix and its
Cholesky factor are returned as an immutable :class:`CorrelationStructure`
rather than cached on an object.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from src.errors import InvalidInputError
from src.projections.models import PlayerProjection
from src.simulation_engine.config import (
    CORRELATION_CLAMP,
    DEFAULT_SHOCK_RATIO,
    POSITION_FACTOR_LOADINGS,
    POSITION_SHOCK_RATIOS,
    SAME_TEAM_BONUS,
)

logger = logging.getLogger(__name__)

_ZERO_LOADING = (0.0, 0.0, 0.0)


@dataclass(frozen=True, eq=False)
class CorrelationStructure:
    """Correlation matrix over an ordered player list and its Cholesky factor.

    ``used_fallback`` is set when the matrix could not be factorized and
    the structure degraded to independence (identity matrix).
    """

    player_ids: Tuple[str, ...]
    matrix: np.ndarray
    cholesky: np.ndarray
    used_fallback: bool = False
    reason: str = ""

    def __post_init__(self):
        self.matrix.setflags(write=False)
        self.cholesky.setflags(write=False)

    @property
    def size(self) -> int:
        return len(self.player_ids)

    def covariance(self, std_devs: Sequence[float]) -> np.ndarray:
        s = np.asarray(std_devs, dtype=float)
        return self.matrix * np.outer(s, s)


@dataclass(frozen=True)
class CorrelationBreakdown:
    """Per-team view of the correlation structure used to score a lineup."""

    teams: Dict[str, Tuple[str, ...]]
    team_shock_variances: Dict[str, float]
    matrix: np.ndarray = field(compare=False, repr=False)
    used_fallback: bool = False


# ------------------------------------------------------------------
# Matrix construction
# ------------------------------------------------------------------


def position_loadings(
    position: str,
    loadings: Optional[Mapping[str, Tuple[float, float, float]]] = None,
) -> np.ndarray:
    """(pass, rush, pace) loading for a position; zeros when unknown."""
    table = POSITION_FACTOR_LOADINGS if loadings is None else loadings
    return np.asarray(table.get(position, _ZERO_LOADING), dtype=float)


def build_correlation_matrix(
    players: Sequence[PlayerProjection],
    same_team_bonus: float = SAME_TEAM_BONUS,
    clamp: float = CORRELATION_CLAMP,
    loadings: Optional[Mapping[str, Tuple[float, float, float]]] = None,
) -> np.ndarray:
    """Build the n x n factor-model correlation matrix for *players*.

    Returns:
        A symmetric matrix with unit diagonal and off-diagonal entries in
        ``[-clamp, clamp]``.
    """
    n = len(players)
    if n == 0:
        return np.zeros((0, 0))

    factor_matrix = np.vstack([position_loadings(p.position, loadings) for p in players])
    corr = factor_matrix @ factor_matrix.T

    teams = np.array([p.team for p in players], dtype=object)
    same_team = teams[:, None] == teams[None, :]
    corr = corr + same_team_bonus * same_team

    corr = np.clip(corr, -clamp, clamp)
    np.fill_diagonal(corr, 1.0)
    return corr


def factorize(
    matrix: np.ndarray, player_ids: Sequence[str] = ()
) -> CorrelationStructure:
    """Cholesky-factorize *matrix*, degrading to identity when it is not PD.

    Never raises for numerical failure: a non-positive-definite (or
    non-finite) matrix is logged and replaced by the identity so sampling
    proceeds with independent players.

    Raises:
        InvalidInputError: If *matrix* is not square or does not match
            the number of ``player_ids``.
    """
    matrix = np.array(matrix, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise InvalidInputError(f"Correlation matrix must be square, got shape {matrix.shape}")
    n = matrix.shape[0]
    ids = tuple(player_ids) if player_ids else tuple(str(i) for i in range(n))
    if len(ids) != n:
        raise InvalidInputError(
            f"Correlation matrix is {n}x{n} but {len(ids)} player ids were given"
        )

    reason = ""
    if not np.all(np.isfinite(matrix)):
        reason = "matrix has non-finite entries"
    elif not np.allclose(matrix, matrix.T, atol=1e-10):
        reason = "matrix is not symmetric"
    else:
        try:
            chol = np.linalg.cholesky(matrix)
            return CorrelationStructure(ids, matrix, chol)
        except np.linalg.LinAlgError:
            reason = "matrix is not positive definite"

    logger.warning(
        "Correlation matrix for %d players rejected (%s); sampling players independently",
        n, reason,
    )
    identity = np.eye(n)
    return CorrelationStructure(ids, identity, identity.copy(), used_fallback=True, reason=reason)


def build_correlation_structure(
    players: Sequence[PlayerProjection], **matrix_kwargs
) -> CorrelationStructure:
    """Correlation matrix plus factorization for *players* (in order)."""
    matrix = build_correlation_matrix(players, **matrix_kwargs)
    return factorize(matrix, [p.player_id for p in players])


def ensure_structure(
    players: Sequence[PlayerProjection],
    structure: Optional[CorrelationStructure] = None,
) -> CorrelationStructure:
    """Return *structure* after checking it matches *players*, or build one."""
    if structure is None:
        return build_correlation_structure(players)
    ids = tuple(p.player_id for p in players)
    if structure.player_ids != ids:
        raise InvalidInputError(
            "Correlation structure was built for a different player list "
            f"({len(structure.player_ids)} vs {len(ids)} players)"
        )
    return structure


# ------------------------------------------------------------------
# Lineup moments
# ------------------------------------------------------------------


def lineup_mean(players: Sequence[PlayerProjection]) -> float:
    return float(sum(p.mean for p in players))


def lineup_variance(
    players: Sequence[PlayerProjection],
    structure: Optional[CorrelationStructure] = None,
) -> float:
    """Variance of the lineup total including every pairwise covariance.

    ``Var(sum X_i)`` is the sum of every entry of the covariance matrix
    ``C * s s'`` with ``s`` the per-player standard deviations.
    """
    if not players:
        return 0.0
    structure = ensure_structure(players, structure)
    cov = structure.covariance([p.std for p in players])
    return max(0.0, float(cov.sum()))


def shock_variance(
    player: PlayerProjection,
    shock_ratios: Optional[Mapping[str, float]] = None,
) -> float:
    """Portion of a player's variance attributed to the team-level shock."""
    ratios = POSITION_SHOCK_RATIOS if shock_ratios is None else shock_ratios
    return player.variance * ratios.get(player.position, DEFAULT_SHOCK_RATIO)


def correlation_breakdown(
    players: Sequence[PlayerProjection],
    structure: Optional[CorrelationStructure] = None,
    shock_ratios: Optional[Mapping[str, float]] = None,
) -> CorrelationBreakdown:
    """Group the lineup by team and report each team's average shock variance."""
    structure = ensure_structure(players, structure)

    teams: Dict[str, list] = {}
    for p in players:
        teams.setdefault(p.team, []).append(p)

    shock_variances = {
        team: sum(shock_variance(p, shock_ratios) for p in members) / len(members)
        for team, members in teams.items()
    }

    return CorrelationBreakdown(
        teams={team: tuple(p.player_id for p in members) for team, members in teams.items()},
        team_shock_variances=shock_variances,
        matrix=structure.matrix,
        used_fallback=structure.used_fallback,
    )
