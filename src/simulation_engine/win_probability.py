"""Win probability of a lineup against an opponent.

Two estimators are provided:

* :func:`analytic_win_probability` treats both totals as normal, which is
  fast enough to screen every candidate lineup.
* :class:`MonteCarloEstimator` draws correlated lineup totals through the
  Gaussian copula and opponent totals from the opponent's sampler, and
  stops early once the estimate is precise or stable.
"""

import logging
import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from scipy import special

from src.errors import InvalidInputError
from src.projections.models import PlayerProjection
from src.simulation_engine.config import (
    FAVORITE_THRESHOLD,
    MC_EARLY_STOP_WINDOW,
    MC_MAX_SIMULATIONS,
    MC_MIN_SIMULATIONS,
    MC_PARALLEL_WORKERS,
    MC_STABILITY_TOLERANCE,
    MC_STABLE_CHECKS,
    MC_TARGET_STANDARD_ERROR,
    PERCENTILE_LADDER,
    UNDERDOG_THRESHOLD,
)
from src.simulation_engine.copula_sampler import GaussianCopulaSampler
from src.simulation_engine.correlation import CorrelationStructure
from src.simulation_engine.opponent import OpponentProjection

logger = logging.getLogger(__name__)

# Two-sided z values for the common confidence levels
_Z_VALUES = {0.90: 1.645, 0.95: 1.96, 0.99: 2.576}


@dataclass(frozen=True)
class MCResult:
    """Outcome of a Monte Carlo win-probability estimate."""

    win_probability: float
    standard_error: float
    expected_margin: float
    margin_std: float
    percentiles: Dict[str, float] = field(default_factory=dict)
    n_simulations: int = 0
    converged: bool = False
    reason: str = ""

    def confidence_interval(self, level: float = 0.95) -> Tuple[float, float]:
        """Normal-approximation interval for the win probability, clipped to [0, 1]."""
        if not 0.0 < level < 1.0:
            raise InvalidInputError(f"level must be in (0, 1), got {level!r}")
        z = _Z_VALUES.get(level)
        if z is None:
            z = float(special.ndtri(0.5 + level / 2.0))
        half_width = z * self.standard_error
        return (
            max(0.0, self.win_probability - half_width),
            min(1.0, self.win_probability + half_width),
        )


def percentile(sorted_values: Sequence[float], q: float) -> float:
    """Linear-interpolation percentile of an ascending sequence (``q`` in [0, 1])."""
    if len(sorted_values) == 0:
        raise InvalidInputError("Cannot take a percentile of an empty sample")
    if not 0.0 <= q <= 1.0:
        raise InvalidInputError(f"q must be in [0, 1], got {q!r}")

    position = q * (len(sorted_values) - 1)
    lo = int(math.floor(position))
    hi = int(math.ceil(position))
    if lo == hi:
        return float(sorted_values[lo])
    weight = position - lo
    return float(sorted_values[lo] * (1.0 - weight) + sorted_values[hi] * weight)


def analytic_win_probability(
    lineup_mean: float, lineup_var: float, opp_mean: float, opp_var: float
) -> float:
    """``P(lineup > opponent)`` for independent normal totals.

    With zero total variance the outcome is certain: 1 or 0, and 0.5 on an
    exact tie.
    """
    if lineup_var < 0 or opp_var < 0:
        raise InvalidInputError(
            f"Variances must be >= 0, got lineup={lineup_var!r}, opponent={opp_var!r}"
        )
    diff = lineup_mean - opp_mean
    total_var = lineup_var + opp_var
    if total_var <= 0:
        if diff > 0:
            return 1.0
        if diff < 0:
            return 0.0
        return 0.5
    return float(special.ndtr(diff / math.sqrt(total_var)))


def determine_strategy(win_probability: float) -> str:
    """Underdogs chase ceiling, favorites protect floor."""
    if win_probability < UNDERDOG_THRESHOLD:
        return "ceiling"
    if win_probability > FAVORITE_THRESHOLD:
        return "floor"
    return "balanced"


def _simulate_batch(args) -> np.ndarray:
    """Margins for one batch; top-level so ProcessPoolExecutor can pickle it."""
    sampler, opponent, seed, size = args
    rng = np.random.default_rng(seed)
    ours = sampler.sample_totals(rng, size)
    theirs = opponent.sample(rng, size)
    return ours - theirs


class MonteCarloEstimator:
    """Estimate win probability by simulation with early stopping.

    Simulation runs in batches of ``early_stop_window`` draws. Batch ``i``
    always uses the ``i``-th child of ``SeedSequence(seed)``, so a given
    seed and worker count always reproduce the same estimate.
    """

    def __init__(
        self,
        max_simulations: int = MC_MAX_SIMULATIONS,
        min_simulations: int = MC_MIN_SIMULATIONS,
        target_standard_error: float = MC_TARGET_STANDARD_ERROR,
        early_stop_window: int = MC_EARLY_STOP_WINDOW,
        stable_checks: int = MC_STABLE_CHECKS,
        stability_tolerance: float = MC_STABILITY_TOLERANCE,
        n_workers: int = MC_PARALLEL_WORKERS,
    ):
        if max_simulations < 1:
            raise InvalidInputError(f"max_simulations must be >= 1, got {max_simulations}")
        if not 1 <= min_simulations <= max_simulations:
            raise InvalidInputError(
                f"min_simulations must be in [1, {max_simulations}], got {min_simulations}"
            )
        if early_stop_window < 1:
            raise InvalidInputError(f"early_stop_window must be >= 1, got {early_stop_window}")
        if target_standard_error <= 0:
            raise InvalidInputError(
                f"target_standard_error must be > 0, got {target_standard_error}"
            )
        if stable_checks < 1:
            raise InvalidInputError(f"stable_checks must be >= 1, got {stable_checks}")
        if stability_tolerance < 0:
            raise InvalidInputError(
                f"stability_tolerance must be >= 0, got {stability_tolerance}"
            )
        if n_workers < 1:
            raise InvalidInputError(f"n_workers must be >= 1, got {n_workers}")

        self.max_simulations = max_simulations
        self.min_simulations = min_simulations
        self.target_standard_error = target_standard_error
        self.early_stop_window = early_stop_window
        self.stable_checks = stable_checks
        self.stability_tolerance = stability_tolerance
        self.n_workers = n_workers

    def estimate(
        self,
        lineup: Sequence[PlayerProjection],
        opponent: OpponentProjection,
        seed: int,
        structure: Optional[CorrelationStructure] = None,
    ) -> MCResult:
        """
        Simulate ``lineup total - opponent total`` until converged or capped.

        Stops when the binomial standard error reaches the target, when
        the win rate moved less than ``stability_tolerance`` for
        ``stable_checks`` consecutive checks, or at ``max_simulations``
        (``converged=False``). Convergence is only checked once
        ``min_simulations`` draws are in.
        """
        sampler = GaussianCopulaSampler.from_players(lineup, structure)
        seed_seq = np.random.SeedSequence(seed)

        chunks = []
        n = 0
        wins = 0
        last_wp = None
        stable = 0
        converged = False
        reason = ""

        executor = ProcessPoolExecutor(max_workers=self.n_workers) if self.n_workers > 1 else None
        try:
            while n < self.max_simulations:
                sizes = []
                remaining = self.max_simulations - n
                for _ in range(self.n_workers):
                    size = min(self.early_stop_window, remaining - sum(sizes))
                    if size <= 0:
                        break
                    sizes.append(size)

                children = seed_seq.spawn(len(sizes))
                batch_args = [(sampler, opponent, child, size) for child, size in zip(children, sizes)]
                if executor is not None:
                    batches = list(executor.map(_simulate_batch, batch_args))
                else:
                    batches = [_simulate_batch(args) for args in batch_args]

                for margins in batches:
                    chunks.append(margins)
                    wins += int(np.count_nonzero(margins > 0))
                    n += len(margins)

                if n < self.min_simulations:
                    continue

                wp = wins / n
                se = math.sqrt(wp * (1.0 - wp) / n)
                if se <= self.target_standard_error:
                    converged = True
                    reason = f"standard error {se:.4f} reached target {self.target_standard_error}"
                    break

                if last_wp is not None and abs(wp - last_wp) < self.stability_tolerance:
                    stable += 1
                else:
                    stable = 0
                last_wp = wp
                if stable >= self.stable_checks:
                    converged = True
                    reason = f"win probability stable for {stable} consecutive checks"
                    break
        finally:
            if executor is not None:
                executor.shutdown()

        if not converged:
            reason = f"reached max_simulations ({self.max_simulations}) without converging"
            logger.warning("Monte Carlo estimate: %s", reason)

        margins = np.sort(np.concatenate(chunks))
        wp = wins / n
        result = MCResult(
            win_probability=wp,
            standard_error=math.sqrt(wp * (1.0 - wp) / n),
            expected_margin=float(margins.mean()),
            margin_std=float(margins.std(ddof=1)) if n > 1 else 0.0,
            percentiles={key: percentile(margins, q) for key, q in PERCENTILE_LADDER.items()},
            n_simulations=n,
            converged=converged,
            reason=reason,
        )
        logger.debug(
            "Monte Carlo: wp=%.4f se=%.4f after %d simulations (%s)",
            result.win_probability, result.standard_error, n, reason,
        )
        return result
