from pathlib import Path

# Base project directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Output directory for optimizer runs
RESULTS_DIR = PROJECT_ROOT / "data" / "results"

DEFAULT_STRATEGY = "balanced"
OPTIMIZATION_METHODS = ("simulation", "analytic")

# Top analytic candidates re-scored by Monte Carlo
MAX_SIMULATED_CANDIDATES = 10

# Lineup floor / ceiling reported as the 10th / 90th percentile of a normal total
FLOOR_CEILING_Z = 1.2816

# Required columns for players_from_frame
PLAYER_FRAME_COLUMNS = ["player_id", "name", "team", "position", "floor", "median", "ceiling"]
