"""Win-probability lineup optimizer.

Pipeline for one call to :meth:`LineupOptimizer.optimize`:

1. validate inputs and filter the pool (excluded, inactive, zero confidence);
2. generate diverse candidates with the strategy's preset sweep;
3. screen every candidate with the correlation-aware analytic win probability;
4. re-score the top candidates by Monte Carlo using one shared seed;
5. if the winner's win probability calls for a different strategy, run a
   second pass with that strategy's presets and keep the overall best.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from src.errors import InvalidInputError, LineupOptimizerError
from src.lineup_builder.candidate_generator import (
    KBestLineupGenerator,
    LineupCandidate,
    generate_diverse,
)
from src.lineup_builder.dp_state import Slot
from src.lineup_builder.roster_requirements import RosterRequirements
from src.lineup_builder.roster_validator import RosterValidator
from src.lineup_builder.scoring import strategy_presets
from src.optimizer.config import (
    DEFAULT_STRATEGY,
    FLOOR_CEILING_Z,
    MAX_SIMULATED_CANDIDATES,
    OPTIMIZATION_METHODS,
)
from src.projections.models import PlayerProjection
from src.simulation_engine.config import MC_DEFAULT_SEED
from src.simulation_engine.correlation import (
    CorrelationBreakdown,
    CorrelationStructure,
    build_correlation_structure,
    correlation_breakdown,
    lineup_variance,
)
from src.simulation_engine.opponent import OpponentProjection
from src.simulation_engine.win_probability import (
    MCResult,
    MonteCarloEstimator,
    analytic_win_probability,
    determine_strategy,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateEvaluation:
    """One candidate lineup scored against the opponent."""

    candidate: LineupCandidate
    expected_points: float
    variance: float
    analytic_win_probability: float
    structure: CorrelationStructure = field(compare=False, repr=False)
    mc_result: Optional[MCResult] = None
    strategy_hint: str = DEFAULT_STRATEGY

    @property
    def win_probability(self) -> float:
        if self.mc_result is not None:
            return self.mc_result.win_probability
        return self.analytic_win_probability

    @property
    def rank_key(self):
        """Simulated candidates first, then by win probability and mean."""
        return (
            self.mc_result is None,
            -self.win_probability,
            -self.expected_points,
            tuple(sorted(self.candidate.member_ids)),
        )


@dataclass(frozen=True)
class OptimizedLineup:
    """The chosen lineup and everything known about it."""

    starters: Tuple[Tuple[Slot, PlayerProjection], ...]
    bench: Tuple[PlayerProjection, ...]
    expected_points: float
    floor: float
    ceiling: float
    variance: float
    win_probability: float
    analytic_win_probability: float
    correlation: CorrelationBreakdown
    mc_result: Optional[MCResult]
    strategy: str
    strategy_hint: str
    candidates_evaluated: int
    truncated: bool = False
    truncation_reason: str = ""
    evaluations: Tuple[CandidateEvaluation, ...] = field(default=(), repr=False)

    @property
    def players(self) -> Tuple[PlayerProjection, ...]:
        return tuple(player for _, player in self.starters)


@dataclass
class _PassResult:
    strategy: str
    evaluations: List[CandidateEvaluation]
    truncated: bool
    reason: str


class LineupOptimizer:
    """Picks the lineup with the best chance of beating an opponent."""

    def __init__(
        self,
        generator: Optional[KBestLineupGenerator] = None,
        estimator: Optional[MonteCarloEstimator] = None,
        max_simulated_candidates: int = MAX_SIMULATED_CANDIDATES,
        diversity_target: float = 0.0,
        n_workers: int = 1,
        strategy_feedback: bool = True,
    ):
        if max_simulated_candidates < 1:
            raise InvalidInputError(
                f"max_simulated_candidates must be >= 1, got {max_simulated_candidates}"
            )
        self.generator = generator or KBestLineupGenerator()
        self.estimator = estimator or MonteCarloEstimator()
        self.max_simulated_candidates = max_simulated_candidates
        self.diversity_target = diversity_target
        self.n_workers = n_workers
        self.strategy_feedback = strategy_feedback

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def optimize(
        self,
        players: Sequence[PlayerProjection],
        opponent: OpponentProjection,
        requirements: Optional[RosterRequirements] = None,
        locked: Iterable[str] = (),
        excluded: Iterable[str] = (),
        strategy: str = DEFAULT_STRATEGY,
        seed: int = MC_DEFAULT_SEED,
        method: str = "simulation",
    ) -> OptimizedLineup:
        """
        Choose the starting lineup that maximizes win probability.

        Args:
            players: Candidate pool.
            opponent: Opponent total to beat.
            requirements: Lineup shape; defaults to the standard roster.
            locked: Player ids that must start.
            excluded: Player ids that must not start.
            strategy: Preset sweep to start from (``balanced``, ``ceiling``, ``floor``).
            seed: Seeds candidate jitter and every Monte Carlo run.
            method: ``"simulation"`` re-scores the top candidates by Monte
                Carlo, ``"analytic"`` uses the normal approximation only.

        Returns:
            OptimizedLineup for the best candidate.

        Raises:
            InvalidInputError: For an empty pool, bad ids, strategy or method.
            InfeasibleRosterError: If no complete lineup can be built.
        """
        requirements = requirements or RosterRequirements.default()
        locked = frozenset(locked)
        excluded = frozenset(excluded)
        pool = self._filter_pool(players, locked, excluded, method, strategy)
        logger.info(
            "Optimizing over %d players (%d locked, %d excluded), strategy=%s, method=%s",
            len(pool), len(locked), len(excluded), strategy, method,
        )

        rng = np.random.default_rng(seed)
        first = self._run_pass(pool, opponent, requirements, locked, strategy, rng, seed, method)
        passes = [first]
        best = min(first.evaluations, key=lambda e: e.rank_key)

        hint = determine_strategy(best.win_probability)
        if self.strategy_feedback and hint != strategy:
            logger.info(
                "Win probability %.3f suggests the %s strategy; running a second pass",
                best.win_probability, hint,
            )
            known = {e.candidate.member_ids for e in first.evaluations}
            second = self._run_pass(
                pool, opponent, requirements, locked, hint, rng, seed, method, skip=known
            )
            passes.append(second)

        evaluations = sorted(
            (e for p in passes for e in p.evaluations), key=lambda e: e.rank_key
        )
        best = evaluations[0]
        truncated = any(p.truncated for p in passes)
        reason = "; ".join(p.reason for p in passes if p.reason)
        return self._finalize(best, pool, requirements, evaluations, truncated, reason)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _filter_pool(
        self,
        players: Sequence[PlayerProjection],
        locked: frozenset,
        excluded: frozenset,
        method: str,
        strategy: str,
    ) -> List[PlayerProjection]:
        if not players:
            raise InvalidInputError("Player pool is empty")
        if method not in OPTIMIZATION_METHODS:
            raise InvalidInputError(
                f"Invalid method: {method!r}. Must be one of {list(OPTIMIZATION_METHODS)}."
            )
        strategy_presets(strategy)

        overlap = locked & excluded
        if overlap:
            raise InvalidInputError(f"Players both locked and excluded: {sorted(overlap)}")

        by_id: Dict[str, PlayerProjection] = {}
        for player in players:
            if player.player_id in by_id:
                raise InvalidInputError(f"Duplicate player_id in pool: {player.player_id!r}")
            by_id[player.player_id] = player

        unknown = locked - set(by_id)
        if unknown:
            raise InvalidInputError(f"Locked players not in pool: {sorted(unknown)}")
        for pid in sorted(locked):
            player = by_id[pid]
            if not player.is_active or player.projection.confidence <= 0:
                raise InvalidInputError(f"Locked player {pid} is inactive or has zero confidence")

        pool = []
        for player in players:
            if player.player_id in excluded:
                continue
            if not player.is_active:
                logger.debug("Skipping inactive player %s", player.player_id)
                continue
            if player.projection.confidence <= 0:
                logger.debug("Skipping zero-confidence player %s", player.player_id)
                continue
            pool.append(player)
        return pool

    def _run_pass(
        self,
        pool: List[PlayerProjection],
        opponent: OpponentProjection,
        requirements: RosterRequirements,
        locked: frozenset,
        strategy: str,
        rng: np.random.Generator,
        seed: int,
        method: str,
        skip: frozenset = frozenset(),
    ) -> _PassResult:
        generated = generate_diverse(
            pool,
            requirements,
            strategy_presets(strategy),
            rng,
            locked=locked,
            diversity_target=self.diversity_target,
            n_workers=self.n_workers,
            generator=self.generator,
        )
        if not generated.candidates:
            RosterValidator(requirements).raise_infeasible(pool, locked)

        evaluations = [
            self._screen(cand, opponent, strategy)
            for cand in generated.candidates
            if cand.member_ids not in skip
        ]
        evaluations.sort(key=lambda e: e.rank_key)

        if method == "simulation":
            top = self.max_simulated_candidates
            for i, evaluation in enumerate(evaluations[:top]):
                # Same seed for every candidate so they see the same draws
                mc = self.estimator.estimate(
                    evaluation.candidate.players, opponent, seed, evaluation.structure
                )
                evaluations[i] = replace(evaluation, mc_result=mc)
            evaluations.sort(key=lambda e: e.rank_key)

        logger.info(
            "%s pass: %d candidates screened, best win probability %.3f",
            strategy, len(evaluations),
            evaluations[0].win_probability if evaluations else float("nan"),
        )
        return _PassResult(strategy, evaluations, generated.truncated, generated.reason)

    def _screen(
        self, candidate: LineupCandidate, opponent: OpponentProjection, strategy: str
    ) -> CandidateEvaluation:
        players = candidate.players
        structure = build_correlation_structure(players)
        mean = candidate.expected_points
        variance = lineup_variance(players, structure)
        wp = analytic_win_probability(mean, variance, opponent.mean, opponent.variance)
        return CandidateEvaluation(
            candidate=candidate,
            expected_points=mean,
            variance=variance,
            analytic_win_probability=wp,
            structure=structure,
            strategy_hint=strategy,
        )

    def _finalize(
        self,
        best: CandidateEvaluation,
        pool: List[PlayerProjection],
        requirements: RosterRequirements,
        evaluations: List[CandidateEvaluation],
        truncated: bool,
        reason: str,
    ) -> OptimizedLineup:
        candidate = best.candidate
        is_valid, errors = RosterValidator(requirements).validate_lineup(candidate.starters)
        if not is_valid:
            raise LineupOptimizerError(f"Chosen lineup failed validation: {errors}")

        bench = select_bench(pool, candidate.member_ids, requirements.bench)
        sd = math.sqrt(best.variance)

        result = OptimizedLineup(
            starters=candidate.starters,
            bench=bench,
            expected_points=best.expected_points,
            floor=best.expected_points - FLOOR_CEILING_Z * sd,
            ceiling=best.expected_points + FLOOR_CEILING_Z * sd,
            variance=best.variance,
            win_probability=best.win_probability,
            analytic_win_probability=best.analytic_win_probability,
            correlation=correlation_breakdown(candidate.players, best.structure),
            mc_result=best.mc_result,
            strategy=best.strategy_hint,
            strategy_hint=determine_strategy(best.win_probability),
            candidates_evaluated=len(evaluations),
            truncated=truncated,
            truncation_reason=reason,
            evaluations=tuple(evaluations),
        )
        logger.info(
            "Chosen lineup: %.1f projected points, win probability %.3f (hint: %s)",
            result.expected_points, result.win_probability, result.strategy_hint,
        )
        return result


def select_bench(
    pool: Sequence[PlayerProjection], starter_ids: Iterable[str], size: int
) -> Tuple[PlayerProjection, ...]:
    """Best remaining players by mean, up to *size*."""
    starter_ids = set(starter_ids)
    remaining = [p for p in pool if p.player_id not in starter_ids]
    remaining.sort(key=lambda p: (-p.mean, p.player_id))
    return tuple(remaining[:size])
