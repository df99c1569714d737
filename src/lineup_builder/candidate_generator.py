"""K-best dynamic programming over lineup states.

Players are visited in descending strategy value. The frontier maps each
:class:`DPState` (filled count per slot) to the best ``k`` partial lineups
that reach it. Every partial lineup may skip the current player or place
it in any eligible slot that still has room. States the remaining players
can no longer complete are dropped. Partial lineups that fill every slot
exactly are terminal; the best ``k`` distinct player sets among them are
returned.

Running the DP once per scoring strategy and pooling the results gives a
diverse candidate set for the win-probability screen.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from src.errors import InvalidInputError
from src.lineup_builder.config import DP_K, DP_MAX_GLOBAL
from src.lineup_builder.dp_state import DPState, Slot
from src.lineup_builder.roster_requirements import RosterRequirements
from src.lineup_builder.roster_validator import RosterValidator
from src.lineup_builder.scoring import ScoringStrategy
from src.projections.models import PlayerProjection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineupCandidate:
    """A (partial or complete) starting lineup produced by the DP."""

    starters: Tuple[Tuple[Slot, PlayerProjection], ...] = ()
    member_ids: FrozenSet[str] = frozenset()
    score: float = 0.0
    state: DPState = DPState()
    strategy: str = ""
    diversity_score: float = 1.0
    bench: Tuple[PlayerProjection, ...] = ()

    @property
    def players(self) -> Tuple[PlayerProjection, ...]:
        return tuple(player for _, player in self.starters)

    @property
    def expected_points(self) -> float:
        return float(sum(p.mean for p in self.players))

    @property
    def sort_key(self):
        """Best first: higher score, then player ids for a stable tie-break."""
        return (-self.score, tuple(sorted(self.member_ids)))

    def extend(self, slot: Slot, player: PlayerProjection, value: float) -> "LineupCandidate":
        return replace(
            self,
            starters=self.starters + ((slot, player),),
            member_ids=self.member_ids | {player.player_id},
            score=self.score + value,
            state=self.state.add(slot),
        )


@dataclass(frozen=True)
class GenerationResult:
    """Terminal candidates, best first, plus whether the global cap was hit."""

    candidates: Tuple[LineupCandidate, ...]
    truncated: bool = False
    reason: str = ""

    @property
    def best(self) -> Optional[LineupCandidate]:
        return self.candidates[0] if self.candidates else None

    def require_best(
        self,
        players: Sequence[PlayerProjection],
        requirements: RosterRequirements,
        locked: Iterable[str] = (),
    ) -> LineupCandidate:
        """Best candidate, or raise InfeasibleRosterError with shortfalls."""
        if not self.candidates:
            RosterValidator(requirements).raise_infeasible(players, locked)
        return self.candidates[0]


def _best_per_player_set(candidates: Iterable[LineupCandidate]) -> List[LineupCandidate]:
    """Sort best first and keep one candidate per distinct player set."""
    seen = set()
    unique = []
    for cand in sorted(candidates, key=lambda c: c.sort_key):
        if cand.member_ids in seen:
            continue
        seen.add(cand.member_ids)
        unique.append(cand)
    return unique


class KBestLineupGenerator:
    """Generates the top-K lineups for a scoring strategy."""

    def __init__(self, k: int = DP_K, max_global: int = DP_MAX_GLOBAL):
        if k < 1:
            raise InvalidInputError(f"k must be >= 1, got {k}")
        if max_global < k:
            raise InvalidInputError(f"max_global ({max_global}) must be >= k ({k})")
        self.k = k
        self.max_global = max_global

    def generate(
        self,
        players: Sequence[PlayerProjection],
        requirements: RosterRequirements,
        strategy: ScoringStrategy,
        rng: Optional[np.random.Generator] = None,
        locked: Iterable[str] = (),
    ) -> GenerationResult:
        """
        Run the DP for one strategy.

        Args:
            players: Candidate pool (unique player ids).
            requirements: Lineup shape to fill.
            strategy: How to value each player.
            rng: Generator for strategy jitter (required when the strategy jitters).
            locked: Player ids every returned lineup must start.

        Returns:
            GenerationResult with up to ``k`` distinct terminal candidates.
            An empty result means no complete lineup exists.
        """
        players = list(players)
        _check_unique_ids(players)
        locked = frozenset(locked)
        unknown = locked - {p.player_id for p in players}
        if unknown:
            raise InvalidInputError(f"Locked players not in pool: {sorted(unknown)}")

        values = strategy.score_players(players, rng)
        order = sorted(range(len(players)), key=lambda i: (-values[i], players[i].player_id))
        required = requirements.slot_requirements()
        slots_by_player = {
            i: requirements.eligible_slots(players[i].eligible_positions) for i in order
        }
        remaining = _remaining_capacity([slots_by_player[i] for i in order])

        frontier: Dict[DPState, List[LineupCandidate]] = {
            DPState(): [LineupCandidate(strategy=strategy.label)]
        }
        truncated = False
        reason = ""

        for step, i in enumerate(order, start=1):
            player = players[i]
            value = float(values[i])
            slots = slots_by_player[i]
            must_place = player.player_id in locked

            next_frontier: Dict[DPState, List[LineupCandidate]] = {}
            for state, candidates in frontier.items():
                open_slots = [s for s in slots if state.has_room(s, required)]
                for cand in candidates:
                    if not must_place:
                        next_frontier.setdefault(state, []).append(cand)
                    for slot in open_slots:
                        extended = cand.extend(slot, player, value)
                        next_frontier.setdefault(extended.state, []).append(extended)

            # Drop states the players still to come can no longer complete
            frontier = {
                state: _best_per_player_set(cands)[: self.k]
                for state, cands in next_frontier.items()
                if _can_complete(state, required, remaining[step])
            }

            total = sum(len(c) for c in frontier.values())
            if total > self.max_global:
                frontier = self._prune_global(frontier)
                if not truncated:
                    reason = (
                        f"Frontier exceeded {self.max_global} candidates at player "
                        f"{player.player_id}; kept the best {self.max_global}"
                    )
                    logger.warning("K-best DP (%s): %s", strategy.label, reason)
                truncated = True

        terminal = [
            cand
            for state, cands in frontier.items()
            if state.is_terminal(required)
            for cand in cands
        ]
        candidates = tuple(_best_per_player_set(terminal)[: self.k])
        logger.debug(
            "K-best DP (%s): %d players, %d terminal candidates",
            strategy.label, len(players), len(candidates),
        )
        return GenerationResult(candidates, truncated, reason)

    def _prune_global(
        self, frontier: Dict[DPState, List[LineupCandidate]]
    ) -> Dict[DPState, List[LineupCandidate]]:
        """Keep only the best ``max_global`` candidates across all states."""
        everything = sorted(
            (cand for cands in frontier.values() for cand in cands),
            key=lambda c: c.sort_key,
        )[: self.max_global]
        pruned: Dict[DPState, List[LineupCandidate]] = {}
        for cand in everything:
            pruned.setdefault(cand.state, []).append(cand)
        return pruned


def _remaining_capacity(slot_lists: Sequence[List[Slot]]) -> List[Tuple[int, Dict[Slot, int]]]:
    """For each step, how many players are still to come in total and per slot.

    Entry ``t`` describes the players after the first ``t`` in visiting order.
    """
    total = 0
    per_slot: Dict[Slot, int] = {}
    out = [(total, dict(per_slot))]
    for slots in reversed(slot_lists):
        total += 1
        for slot in slots:
            per_slot[slot] = per_slot.get(slot, 0) + 1
        out.append((total, dict(per_slot)))
    out.reverse()
    return out


def _can_complete(
    state: DPState, required: Dict[Slot, int], remaining: Tuple[int, Dict[Slot, int]]
) -> bool:
    """Necessary condition for *state* to still reach a terminal state."""
    total_left, per_slot = remaining
    need_total = 0
    for slot, count in required.items():
        need = count - state.filled(slot)
        if need > per_slot.get(slot, 0):
            return False
        need_total += need
    return need_total <= total_left


def _check_unique_ids(players: Sequence[PlayerProjection]) -> None:
    seen = set()
    for player in players:
        if player.player_id in seen:
            raise InvalidInputError(f"Duplicate player_id in pool: {player.player_id!r}")
        seen.add(player.player_id)


# ------------------------------------------------------------------
# Diverse generation
# ------------------------------------------------------------------


def _generate_worker(args) -> GenerationResult:
    """Top-level so it can be pickled for ProcessPoolExecutor."""
    k, max_global, players, requirements, strategy, seed, locked = args
    generator = KBestLineupGenerator(k=k, max_global=max_global)
    return generator.generate(
        players, requirements, strategy, rng=np.random.default_rng(seed), locked=locked
    )


def diversity_scores(candidates: Sequence[LineupCandidate]) -> List[float]:
    """Mean of ``1 / (1 + reuse_count)`` over each candidate's players.

    ``reuse_count`` is the number of earlier candidates (in the given
    order) that already start the player, so the first candidate scores 1.
    """
    usage: Dict[str, int] = {}
    scores = []
    for cand in candidates:
        ids = cand.member_ids
        if ids:
            scores.append(sum(1.0 / (1 + usage.get(pid, 0)) for pid in ids) / len(ids))
        else:
            scores.append(1.0)
        for pid in ids:
            usage[pid] = usage.get(pid, 0) + 1
    return scores


def generate_diverse(
    players: Sequence[PlayerProjection],
    requirements: RosterRequirements,
    strategies: Sequence[ScoringStrategy],
    rng: np.random.Generator,
    locked: Iterable[str] = (),
    diversity_target: float = 0.0,
    n_workers: int = 1,
    generator: Optional[KBestLineupGenerator] = None,
) -> GenerationResult:
    """
    Run the DP once per strategy and pool the distinct lineups.

    Each strategy draws its jitter from a child seed spawned off *rng*, so
    the result does not depend on ``n_workers``.

    Args:
        diversity_target: When > 0, candidates whose diversity score falls
            below it are dropped (the best candidate is always kept).
        n_workers: Run strategies on a process pool when > 1.
    """
    if not strategies:
        raise InvalidInputError("generate_diverse needs at least one strategy")
    if not 0.0 <= diversity_target <= 1.0:
        raise InvalidInputError(f"diversity_target must be in [0, 1], got {diversity_target}")

    generator = generator or KBestLineupGenerator()
    players = tuple(players)
    locked = frozenset(locked)
    seed_seq = np.random.SeedSequence(int(rng.integers(0, 2**63 - 1)))
    child_seeds = seed_seq.spawn(len(strategies))

    worker_args = [
        (generator.k, generator.max_global, players, requirements, strategy, child, locked)
        for strategy, child in zip(strategies, child_seeds)
    ]
    if n_workers > 1 and len(worker_args) > 1:
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            results = list(executor.map(_generate_worker, worker_args))
    else:
        results = [_generate_worker(args) for args in worker_args]

    pooled = _best_per_player_set(c for r in results for c in r.candidates)
    scores = diversity_scores(pooled)

    candidates = []
    for rank, (cand, score) in enumerate(zip(pooled, scores)):
        if diversity_target > 0 and rank > 0 and score < diversity_target:
            continue
        candidates.append(replace(cand, diversity_score=score))

    truncated = any(r.truncated for r in results)
    reason = "; ".join(r.reason for r in results if r.reason)
    logger.info(
        "Generated %d distinct candidates from %d strategies (%d dropped for diversity)",
        len(candidates), len(strategies), len(pooled) - len(candidates),
    )
    return GenerationResult(tuple(candidates), truncated, reason)
