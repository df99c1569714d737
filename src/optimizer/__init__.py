from src.optimizer.frames import evaluations_to_frame, lineup_to_frame, players_from_frame
from src.optimizer.lineup_optimizer import (
    CandidateEvaluation,
    LineupOptimizer,
    OptimizedLineup,
    select_bench,
)

__all__ = [
    "CandidateEvaluation",
    "LineupOptimizer",
    "OptimizedLineup",
    "evaluations_to_frame",
    "lineup_to_frame",
    "players_from_frame",
    "select_bench",
]
