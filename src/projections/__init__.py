from src.projections.fitter import (
    FitResult,
    QuantileObservation,
    fit_from_fantasy_quantiles,
    fit_truncated_normal,
    position_bounds,
)
from src.projections.models import PlayerProjection, Projection
from src.projections.truncated_normal import TruncatedNormalParams

__all__ = [
    "FitResult",
    "PlayerProjection",
    "Projection",
    "QuantileObservation",
    "TruncatedNormalParams",
    "fit_from_fantasy_quantiles",
    "fit_truncated_normal",
    "position_bounds",
]
