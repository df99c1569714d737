# Default roster configuration
DEFAULT_ROSTER_SLOTS = {
    "QB": 1,
    "RB": 2,
    "WR": 2,
    "TE": 1,
    "FLEX": 1,
    "DST": 1,
    "K": 1,
    "BENCH": 6,
}

PRIMARY_POSITIONS = ("QB", "RB", "WR", "TE", "K", "DST")
FLEX_ELIGIBLE_POSITIONS = frozenset({"RB", "WR", "TE"})

# K-best DP
DP_K = 50  # Candidates kept per state (and returned)
DP_MAX_GLOBAL = 15_000  # Total candidates kept across all states (288 default-roster states x DP_K)

# Scoring strategies: (label, mean_weight, ceiling_weight, floor_weight, jitter_std)
# jitter_std is in units of the player's own standard deviation.
STRATEGY_PRESETS = {
    "balanced": [
        ("mean", 1.0, 0.0, 0.0, 0.0),
        ("balanced", 0.5, 0.5, 0.0, 0.0),
        ("ceiling", 0.3, 0.7, 0.0, 0.0),
        ("mean_jitter", 0.7, 0.3, 0.0, 0.5),
        ("diverse", 0.5, 0.5, 0.0, 1.0),
    ],
    "ceiling": [
        ("ceiling", 0.3, 0.7, 0.0, 0.0),
        ("ceiling_jitter", 0.2, 0.8, 0.0, 0.5),
        ("ceiling_diverse", 0.4, 0.6, 0.0, 1.0),
        ("balanced", 0.5, 0.5, 0.0, 0.0),
        ("pure_ceiling", 0.0, 1.0, 0.0, 0.0),
    ],
    "floor": [
        ("floor", 0.6, 0.0, 0.4, 0.0),
        ("floor_jitter", 0.7, 0.0, 0.3, 0.3),
        ("pure_mean", 1.0, 0.0, 0.0, 0.0),
        ("floor_diverse", 0.6, 0.0, 0.4, 0.5),
        ("balanced", 0.5, 0.5, 0.0, 0.0),
    ],
}
