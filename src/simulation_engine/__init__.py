from src.simulation_engine.copula_sampler import GaussianCopulaSampler
from src.simulation_engine.correlation import (
    CorrelationBreakdown,
    CorrelationStructure,
    build_correlation_matrix,
    build_correlation_structure,
    correlation_breakdown,
    factorize,
    lineup_mean,
    lineup_variance,
)
from src.simulation_engine.opponent import (
    OpponentProjection,
    league_average_opponent,
    mixture_opponent,
    normal_opponent,
    opponent_from_lineup,
    opponent_from_roster,
)
from src.simulation_engine.win_probability import (
    MCResult,
    MonteCarloEstimator,
    analytic_win_probability,
    determine_strategy,
    percentile,
)

__all__ = [
    "CorrelationBreakdown",
    "CorrelationStructure",
    "GaussianCopulaSampler",
    "MCResult",
    "MonteCarloEstimator",
    "OpponentProjection",
    "analytic_win_probability",
    "build_correlation_matrix",
    "build_correlation_structure",
    "correlation_breakdown",
    "determine_strategy",
    "factorize",
    "league_average_opponent",
    "lineup_mean",
    "lineup_variance",
    "mixture_opponent",
    "normal_opponent",
    "opponent_from_lineup",
    "opponent_from_roster",
    "percentile",
]
