from src.lineup_builder.candidate_generator import (
    GenerationResult,
    KBestLineupGenerator,
    LineupCandidate,
    diversity_scores,
    generate_diverse,
)
from src.lineup_builder.dp_state import DPState, Slot
from src.lineup_builder.roster_requirements import RosterRequirements
from src.lineup_builder.roster_validator import RosterValidator
from src.lineup_builder.scoring import MEAN_STRATEGY, ScoringStrategy, strategy_presets

__all__ = [
    "DPState",
    "GenerationResult",
    "KBestLineupGenerator",
    "LineupCandidate",
    "MEAN_STRATEGY",
    "RosterRequirements",
    "RosterValidator",
    "ScoringStrategy",
    "Slot",
    "diversity_scores",
    "generate_diverse",
    "strategy_presets",
]
