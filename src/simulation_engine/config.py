# Monte Carlo parameters
MC_MAX_SIMULATIONS = 100_000
MC_MIN_SIMULATIONS = 1_000
MC_TARGET_STANDARD_ERROR = 0.005  # 0.5% on the win rate
MC_EARLY_STOP_WINDOW = 100  # Simulations per batch / between convergence checks
MC_STABLE_CHECKS = 10  # Consecutive checks with a flat win rate
MC_STABILITY_TOLERANCE = 0.001  # "Flat" means a change below 0.1%
MC_PARALLEL_WORKERS = 1
MC_DEFAULT_SEED = 12345

# Keeps copula uniforms away from exactly 0 or 1
COPULA_UNIFORM_EPSILON = 1e-12

PERCENTILE_LADDER = {
    "p5": 0.05,
    "p10": 0.10,
    "p25": 0.25,
    "p50": 0.50,
    "p75": 0.75,
    "p90": 0.90,
    "p95": 0.95,
}

# Strategy hint thresholds on win probability
UNDERDOG_THRESHOLD = 0.35  # Below: chase ceiling
FAVORITE_THRESHOLD = 0.65  # Above: protect floor

# Factor loadings onto (pass, rush, pace)
POSITION_FACTOR_LOADINGS = {
    "QB": (0.8, 0.1, 0.3),
    "RB": (0.2, 0.7, 0.3),
    "WR": (0.6, 0.1, 0.4),
    "TE": (0.5, 0.2, 0.3),
    "K": (0.3, 0.3, 0.5),
    "DST": (-0.3, -0.3, -0.2),
}

SAME_TEAM_BONUS = 0.15
CORRELATION_CLAMP = 0.9

# Share of a player's variance driven by the team-level shock
POSITION_SHOCK_RATIOS = {
    "QB": 0.35,
    "WR": 0.30,
    "TE": 0.25,
    "RB": 0.20,
    "K": 0.15,
    "DST": 0.10,
}
DEFAULT_SHOCK_RATIO = 0.20

# Opponent modeling (weekly totals by scoring format)
LEAGUE_AVERAGE_SCORES = {
    "full_ppr": {"mean": 125.0, "sd": 25.0},
    "half_ppr": {"mean": 115.0, "sd": 23.0},
    "standard": {"mean": 105.0, "sd": 20.0},
}
LEAGUE_DEPTH_ADJUSTMENT = 0.02  # Mean shrinks 2% per team beyond 10
OPPONENT_SCORE_BOUNDS = (0.0, 300.0)
