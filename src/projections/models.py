"""Data models for player projections."""

import math
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from src.errors import InvalidInputError
from src.projections.config import CEILING_PERCENTILE, FLOOR_PERCENTILE, MEDIAN_PERCENTILE
from src.projections.fitter import FitResult, fit_from_fantasy_quantiles
from src.projections.truncated_normal import TruncatedNormalParams

# Slack for comparing observed quantiles against fitted support bounds
_ORDER_TOLERANCE = 1e-9


@dataclass(frozen=True)
class Projection:
    """A fitted single-game scoring distribution.

    ``floor``/``median``/``ceiling`` are the 10th/50th/90th percentiles.
    ``mean`` and ``variance`` are the closed-form moments of
    ``distribution``.
    """

    mean: float
    variance: float
    floor: float
    median: float
    ceiling: float
    lower_bound: float
    upper_bound: float
    distribution: TruncatedNormalParams
    confidence: float = 1.0

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise InvalidInputError(
                f"confidence must be in [0, 1], got {self.confidence!r}"
            )
        if not math.isfinite(self.mean) or not math.isfinite(self.variance):
            raise InvalidInputError(
                f"mean and variance must be finite (mean={self.mean!r}, "
                f"variance={self.variance!r})"
            )
        if self.variance < 0:
            raise InvalidInputError(f"variance must be >= 0, got {self.variance!r}")
        ordered = (
            self.lower_bound - _ORDER_TOLERANCE <= self.floor
            and self.floor <= self.median + _ORDER_TOLERANCE
            and self.median <= self.ceiling + _ORDER_TOLERANCE
            and self.ceiling <= self.upper_bound + _ORDER_TOLERANCE
        )
        if not ordered:
            raise InvalidInputError(
                "Expected lower_bound <= floor <= median <= ceiling <= upper_bound, got "
                f"{self.lower_bound!r} / {self.floor!r} / {self.median!r} / "
                f"{self.ceiling!r} / {self.upper_bound!r}"
            )

    @property
    def std(self) -> float:
        return math.sqrt(self.variance)

    @classmethod
    def from_distribution(
        cls, distribution: TruncatedNormalParams, confidence: float = 1.0
    ) -> "Projection":
        """Build a projection whose quantiles and moments come from *distribution*."""
        return cls(
            mean=distribution.mean(),
            variance=distribution.variance(),
            floor=distribution.quantile(FLOOR_PERCENTILE),
            median=distribution.quantile(MEDIAN_PERCENTILE),
            ceiling=distribution.quantile(CEILING_PERCENTILE),
            lower_bound=distribution.a,
            upper_bound=distribution.b,
            distribution=distribution,
            confidence=confidence,
        )

    @classmethod
    def from_fit(
        cls,
        fit: FitResult,
        floor: float,
        median: float,
        ceiling: float,
        confidence: float = 1.0,
    ) -> "Projection":
        """Keep the observed quantiles and take moments from the fitted distribution."""
        params = fit.params
        return cls(
            mean=params.mean(),
            variance=params.variance(),
            floor=floor,
            median=median,
            ceiling=ceiling,
            lower_bound=params.a,
            upper_bound=params.b,
            distribution=params,
            confidence=confidence,
        )

    @classmethod
    def from_quantiles(
        cls,
        floor: float,
        median: float,
        ceiling: float,
        position: str,
        confidence: float = 1.0,
        lower: Optional[float] = None,
        upper: Optional[float] = None,
        **fit_kwargs,
    ) -> "Projection":
        """Fit a truncated normal to floor/median/ceiling and wrap it.

        Bounds default to the position-implied support.
        """
        fit = fit_from_fantasy_quantiles(
            floor, median, ceiling, position, lower=lower, upper=upper, **fit_kwargs
        )
        return cls.from_fit(fit, floor, median, ceiling, confidence=confidence)


@dataclass(frozen=True)
class PlayerProjection:
    """A candidate player together with a scoring distribution."""

    player_id: str
    name: str
    team: str
    position: str
    projection: Projection
    eligible_positions: FrozenSet[str] = field(default_factory=frozenset)
    is_active: bool = True

    def __post_init__(self):
        if not self.player_id:
            raise InvalidInputError("player_id cannot be empty")
        # Primary position is always eligible
        eligible = frozenset(self.eligible_positions) | {self.position}
        object.__setattr__(self, "eligible_positions", eligible)

    @property
    def mean(self) -> float:
        return self.projection.mean

    @property
    def variance(self) -> float:
        return self.projection.variance

    @property
    def std(self) -> float:
        return self.projection.std

    @property
    def distribution(self) -> TruncatedNormalParams:
        return self.projection.distribution
