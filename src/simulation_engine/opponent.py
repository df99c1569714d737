"""Opponent score projections.

The optimizer treats the opponent as a black box: a mean, a variance, a
percentile table and a sampler that draws weekly totals from an explicit
random generator. The factories below cover the usual ways of producing
one: a plain (optionally bounded) normal, a league-average baseline, the
opponent's own best lineup run through the same copula, and a weighted
mixture of scenarios.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from scipy import special

from src.errors import InvalidInputError
from src.lineup_builder.candidate_generator import KBestLineupGenerator
from src.lineup_builder.roster_requirements import RosterRequirements
from src.lineup_builder.scoring import MEAN_STRATEGY
from src.projections.models import PlayerProjection
from src.projections.truncated_normal import TruncatedNormalParams
from src.simulation_engine.config import (
    LEAGUE_AVERAGE_SCORES,
    LEAGUE_DEPTH_ADJUSTMENT,
    OPPONENT_SCORE_BOUNDS,
    PERCENTILE_LADDER,
)
from src.simulation_engine.copula_sampler import GaussianCopulaSampler
from src.simulation_engine.correlation import (
    CorrelationStructure,
    lineup_mean,
    lineup_variance,
)

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Samplers
# ------------------------------------------------------------------


class NormalScoreSampler:
    """Normal totals, truncated to ``[lower, upper]`` when bounds are given."""

    def __init__(self, mean: float, sd: float, lower: Optional[float] = None, upper: Optional[float] = None):
        self.mean = mean
        self.sd = sd
        self.distribution = None
        if sd > 0 and (lower is not None or upper is not None):
            self.distribution = TruncatedNormalParams(
                mean,
                sd,
                -math.inf if lower is None else lower,
                math.inf if upper is None else upper,
            )

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        if self.distribution is not None:
            return np.asarray(self.distribution.sample(rng, size), dtype=float)
        return self.mean + self.sd * rng.standard_normal(size)


class CopulaScoreSampler:
    """Lineup totals from a Gaussian copula over the opponent's starters."""

    def __init__(self, sampler: GaussianCopulaSampler):
        self.sampler = sampler

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        return self.sampler.sample_totals(rng, size)


class MixtureScoreSampler:
    """Pick a scenario per draw by weight, then sample from it."""

    def __init__(self, components: Sequence["OpponentProjection"], weights: Sequence[float]):
        self.components = tuple(components)
        self.weights = np.asarray(weights, dtype=float)

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        choices = rng.choice(len(self.components), size=size, p=self.weights)
        out = np.empty(size, dtype=float)
        for idx, component in enumerate(self.components):
            mask = choices == idx
            count = int(mask.sum())
            if count:
                out[mask] = component.sample(rng, count)
        return out


# ------------------------------------------------------------------
# Projection
# ------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class OpponentProjection:
    """Projected opponent weekly total."""

    mean: float
    variance: float
    percentiles: Dict[str, float]
    sampler: object
    label: str = "opponent"

    def __post_init__(self):
        if not math.isfinite(self.mean):
            raise InvalidInputError(f"Opponent mean must be finite, got {self.mean!r}")
        if not math.isfinite(self.variance) or self.variance < 0:
            raise InvalidInputError(
                f"Opponent variance must be finite and >= 0, got {self.variance!r}"
            )

    @property
    def std(self) -> float:
        return math.sqrt(self.variance)

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        """Draw *size* opponent totals from *rng*."""
        return np.asarray(self.sampler.sample(rng, size), dtype=float)


def normal_percentiles(mean: float, sd: float) -> Dict[str, float]:
    """Percentile table of ``N(mean, sd**2)`` over the standard ladder."""
    return {
        key: float(mean + sd * special.ndtri(q)) for key, q in PERCENTILE_LADDER.items()
    }


# ------------------------------------------------------------------
# Factories
# ------------------------------------------------------------------


def normal_opponent(
    mean: float,
    sd: float,
    lower: Optional[float] = None,
    upper: Optional[float] = None,
    label: str = "normal",
) -> OpponentProjection:
    """Opponent total ``N(mean, sd**2)``, optionally truncated to bounds.

    With bounds, the reported mean and variance are the truncated moments.
    """
    if not math.isfinite(sd) or sd < 0:
        raise InvalidInputError(f"Opponent sd must be >= 0, got {sd!r}")
    sampler = NormalScoreSampler(mean, sd, lower, upper)
    if sampler.distribution is not None:
        dist = sampler.distribution
        percentiles = {key: dist.quantile(q) for key, q in PERCENTILE_LADDER.items()}
        return OpponentProjection(dist.mean(), dist.variance(), percentiles, sampler, label)
    return OpponentProjection(mean, sd * sd, normal_percentiles(mean, sd), sampler, label)


def league_average_opponent(
    league_size: int = 12, scoring_format: str = "full_ppr"
) -> OpponentProjection:
    """Baseline opponent from historical weekly averages.

    The mean shrinks for deeper leagues (more teams share the player pool).
    """
    if scoring_format not in LEAGUE_AVERAGE_SCORES:
        raise InvalidInputError(
            f"Invalid scoring_format: {scoring_format!r}. "
            f"Must be one of {sorted(LEAGUE_AVERAGE_SCORES)}."
        )
    if league_size < 2:
        raise InvalidInputError(f"league_size must be >= 2, got {league_size}")

    base = LEAGUE_AVERAGE_SCORES[scoring_format]
    mean = base["mean"] * (1.0 - (league_size - 10) * LEAGUE_DEPTH_ADJUSTMENT)
    lower, upper = OPPONENT_SCORE_BOUNDS
    return normal_opponent(mean, base["sd"], lower, upper, label=f"league_average_{scoring_format}")


def opponent_from_lineup(
    starters: Sequence[PlayerProjection],
    structure: Optional[CorrelationStructure] = None,
    label: str = "lineup",
) -> OpponentProjection:
    """Opponent simulated through the same copula model as our own lineup."""
    sampler = GaussianCopulaSampler.from_players(starters, structure)
    mean = lineup_mean(sampler.players)
    variance = lineup_variance(sampler.players, sampler.structure)
    return OpponentProjection(
        mean=mean,
        variance=variance,
        percentiles=normal_percentiles(mean, math.sqrt(variance)),
        sampler=CopulaScoreSampler(sampler),
        label=label,
    )


def opponent_from_roster(
    roster: Sequence[PlayerProjection],
    requirements: Optional[RosterRequirements] = None,
    generator: Optional[KBestLineupGenerator] = None,
) -> OpponentProjection:
    """Model the opponent as starting their best lineup by mean projection.

    Raises:
        InfeasibleRosterError: If the opponent's roster cannot field a
            complete lineup.
    """
    requirements = requirements or RosterRequirements.default()
    generator = generator or KBestLineupGenerator()
    result = generator.generate(roster, requirements, MEAN_STRATEGY)
    best = result.require_best(roster, requirements)
    logger.info(
        "Opponent lineup: %d starters, %.1f projected points",
        len(best.players), best.expected_points,
    )
    return opponent_from_lineup(best.players, label="roster")


def mixture_opponent(
    scenarios: Sequence[Tuple[OpponentProjection, float]],
) -> OpponentProjection:
    """Weighted mixture of opponent scenarios (weights need not sum to 1)."""
    if not scenarios:
        raise InvalidInputError("mixture_opponent needs at least one scenario")
    weights = np.array([w for _, w in scenarios], dtype=float)
    if np.any(weights < 0) or weights.sum() <= 0:
        raise InvalidInputError(f"Mixture weights must be >= 0 with a positive sum, got {weights.tolist()}")
    weights = weights / weights.sum()
    components = [s for s, _ in scenarios]

    mean = float(sum(w * s.mean for s, w in zip(components, weights)))
    second_moment = float(sum(w * (s.variance + s.mean ** 2) for s, w in zip(components, weights)))
    variance = max(0.0, second_moment - mean * mean)

    return OpponentProjection(
        mean=mean,
        variance=variance,
        percentiles=normal_percentiles(mean, math.sqrt(variance)),
        sampler=MixtureScoreSampler(components, weights),
        label="mixture",
    )
