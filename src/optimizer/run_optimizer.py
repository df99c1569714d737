"""Run one lineup optimization from a prepared player CSV.

Usage:
    python -m src.optimizer.run_optimizer <players.csv> <opponent_mean> <opponent_sd> [seed]

Examples:
    python -m src.optimizer.run_optimizer data/week1_players.csv 120 25
    python -m src.optimizer.run_optimizer data/week1_players.csv 120 25 2024
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from src.lineup_builder.roster_requirements import RosterRequirements
from src.lineup_builder.roster_validator import RosterValidator
from src.logging_config import setup_logging
from src.optimizer.config import RESULTS_DIR
from src.optimizer.frames import evaluations_to_frame, lineup_to_frame, players_from_frame
from src.optimizer.lineup_optimizer import LineupOptimizer, OptimizedLineup
from src.simulation_engine.config import MC_DEFAULT_SEED
from src.simulation_engine.opponent import normal_opponent

logger = logging.getLogger(__name__)


def _lineup_to_dict(lineup: OptimizedLineup, requirements: RosterRequirements) -> dict:
    """Convert the optimized lineup to the output JSON structure."""
    mc = lineup.mc_result
    return {
        "starters": [
            {"slot": slot.value, "player_id": p.player_id, "name": p.name, "mean": p.mean}
            for slot, p in lineup.starters
        ],
        "bench": [p.player_id for p in lineup.bench],
        "expected_points": lineup.expected_points,
        "floor": lineup.floor,
        "ceiling": lineup.ceiling,
        "variance": lineup.variance,
        "win_probability": lineup.win_probability,
        "analytic_win_probability": lineup.analytic_win_probability,
        "monte_carlo": None if mc is None else {
            "win_probability": mc.win_probability,
            "standard_error": mc.standard_error,
            "confidence_interval_95": list(mc.confidence_interval(0.95)),
            "expected_margin": mc.expected_margin,
            "margin_percentiles": mc.percentiles,
            "n_simulations": mc.n_simulations,
            "converged": mc.converged,
            "reason": mc.reason,
        },
        "team_shock_variances": lineup.correlation.team_shock_variances,
        "strategy": lineup.strategy,
        "strategy_hint": lineup.strategy_hint,
        "candidates_evaluated": lineup.candidates_evaluated,
        "truncated": lineup.truncated,
        "slots": RosterValidator(requirements).lineup_summary(lineup.starters, lineup.bench),
    }


def run_optimizer(
    players_csv: Path,
    opponent_mean: float,
    opponent_sd: float,
    seed: int = MC_DEFAULT_SEED,
    output_dir: Path | None = None,
    optimizer: LineupOptimizer | None = None,
) -> Path:
    """Optimize a lineup for the players in *players_csv*.

    Args:
        players_csv: CSV with the columns expected by ``players_from_frame``.
        opponent_mean: Projected opponent total.
        opponent_sd: Standard deviation of the opponent total.
        seed: Seed for candidate jitter and Monte Carlo.
        output_dir: Directory for the JSON result and evaluation table.
            Defaults to ``data/results/``.
        optimizer: Optimizer to use; defaults to ``LineupOptimizer()``.

    Returns:
        Path to the generated JSON file.

    Raises:
        FileNotFoundError: If the CSV doesn't exist.
    """
    if output_dir is None:
        output_dir = RESULTS_DIR
    if not players_csv.is_file():
        raise FileNotFoundError(f"Player file not found: {players_csv}")

    logger.info("Loading players from %s", players_csv)
    players = players_from_frame(pd.read_csv(players_csv))

    requirements = RosterRequirements.default()
    opponent = normal_opponent(opponent_mean, opponent_sd)
    optimizer = optimizer or LineupOptimizer()
    lineup = optimizer.optimize(players, opponent, requirements, seed=seed)

    output_data = {
        "metadata": {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "source": str(players_csv),
            "opponent": {"mean": opponent_mean, "sd": opponent_sd},
            "seed": seed,
            "total_players": len(players),
        },
        "lineup": _lineup_to_dict(lineup, requirements),
    }

    output_dir.mkdir(parents=True, exist_ok=True)
    output_file = output_dir / f"lineup_{players_csv.stem}.json"
    with open(output_file, "w") as f:
        json.dump(output_data, f, indent=2)

    evaluations_to_frame(lineup.evaluations).to_csv(
        output_dir / f"evaluations_{players_csv.stem}.csv", index=False
    )

    logger.info("Optimization complete! Output: %s", output_file)
    for _, row in lineup_to_frame(lineup).iterrows():
        logger.info("  %-5s %-25s %6.1f", row["slot"], row["name"], row["mean"])
    logger.info(
        "  Expected %.1f (floor %.1f, ceiling %.1f), win probability %.3f",
        lineup.expected_points, lineup.floor, lineup.ceiling, lineup.win_probability,
    )

    return output_file


if __name__ == "__main__":
    setup_logging()

    if len(sys.argv) < 4:
        print(__doc__)
        sys.exit(2)

    csv_path = Path(sys.argv[1])
    opp_mean = float(sys.argv[2])
    opp_sd = float(sys.argv[3])
    run_seed = int(sys.argv[4]) if len(sys.argv) > 4 else MC_DEFAULT_SEED

    try:
        output = run_optimizer(csv_path, opp_mean, opp_sd, run_seed)
        print(f"Optimization complete: {output}")
    except Exception:
        logger.exception("Optimization failed")
        sys.exit(1)
