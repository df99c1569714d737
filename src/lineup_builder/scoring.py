"""Per-player DP scoring strategies."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from src.errors import InvalidInputError
from src.lineup_builder.config import STRATEGY_PRESETS
from src.projections.models import PlayerProjection


@dataclass(frozen=True)
class ScoringStrategy:
    """How the DP values a player.

    value = mean_weight * mean + ceiling_weight * ceiling + floor_weight * floor
            + N(0, 1) * jitter_std * sd
    """

    label: str
    mean_weight: float = 1.0
    ceiling_weight: float = 0.0
    floor_weight: float = 0.0
    jitter_std: float = 0.0

    def __post_init__(self):
        weights = (self.mean_weight, self.ceiling_weight, self.floor_weight)
        if any(w < 0 for w in weights) or sum(weights) <= 0:
            raise InvalidInputError(
                f"Strategy {self.label!r}: weights must be >= 0 with a positive sum, got {weights}"
            )
        if self.jitter_std < 0:
            raise InvalidInputError(
                f"Strategy {self.label!r}: jitter_std must be >= 0, got {self.jitter_std}"
            )

    def base_value(self, player: PlayerProjection) -> float:
        proj = player.projection
        return (
            self.mean_weight * proj.mean
            + self.ceiling_weight * proj.ceiling
            + self.floor_weight * proj.floor
        )

    def score_players(
        self,
        players: Sequence[PlayerProjection],
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        """Strategy value for every player, in input order.

        Raises:
            InvalidInputError: If the strategy jitters but no generator is given.
        """
        values = np.array([self.base_value(p) for p in players], dtype=float)
        if self.jitter_std > 0 and len(players):
            if rng is None:
                raise InvalidInputError(
                    f"Strategy {self.label!r} uses jitter and needs a seeded generator"
                )
            sds = np.array([p.std for p in players], dtype=float)
            values = values + rng.standard_normal(len(players)) * self.jitter_std * sds
        return values


MEAN_STRATEGY = ScoringStrategy("mean")


def strategy_presets(hint: str = "balanced") -> List[ScoringStrategy]:
    """Preset strategy sweep for a strategy hint (``balanced``, ``ceiling``, ``floor``)."""
    if hint not in STRATEGY_PRESETS:
        raise InvalidInputError(
            f"Invalid strategy: {hint!r}. Must be one of {sorted(STRATEGY_PRESETS)}."
        )
    return [ScoringStrategy(*row) for row in STRATEGY_PRESETS[hint]]
