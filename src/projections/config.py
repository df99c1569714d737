# Distribution fitter parameters
FIT_TOLERANCE = 1e-6
FIT_MAX_ITERATIONS = 100
FIT_MAX_BACKTRACKS = 20  # Step halvings per line search
ARMIJO_CONSTANT = 1e-4
LM_INITIAL_DAMPING = 1e-3
FINITE_DIFFERENCE_STEP = 1e-6

# Below this truncation mass the window is treated as a point
MIN_TRUNCATION_MASS = 1e-10
MIN_SIGMA = 1e-6

# Minimum width kept between a and b when a bound update crosses over
BOUND_REPAIR_GAP = 1e-3

# Quantile levels behind floor / median / ceiling
FLOOR_PERCENTILE = 0.10
MEDIAN_PERCENTILE = 0.50
CEILING_PERCENTILE = 0.90

# Position-implied support bounds for fitting from floor/median/ceiling.
# lower: absolute point floor (fumbles, sacks, points allowed)
# upper_multiplier: ceiling multiple for the upper bound
# upper_padding: minimum distance of the upper bound above the ceiling
POSITION_SUPPORT = {
    "QB": {"lower": -5.0, "upper_multiplier": 1.5, "upper_padding": 10.0},
    "RB": {"lower": -2.0, "upper_multiplier": 1.8, "upper_padding": 10.0},
    "WR": {"lower": -2.0, "upper_multiplier": 2.0, "upper_padding": 10.0},
    "TE": {"lower": -2.0, "upper_multiplier": 2.2, "upper_padding": 10.0},
    "K": {"lower": -2.0, "upper_multiplier": 2.5, "upper_padding": 10.0},
    "DST": {"lower": -10.0, "upper_multiplier": 3.0, "upper_padding": 10.0},
}

DEFAULT_SUPPORT = {"lower": -2.0, "upper_multiplier": 2.0, "upper_padding": 10.0}
