"""Tabu search refinement of an existing plan.

Neighbours are built from same-day moves only: swapping two workers' cells or
moving one worker to a different task. Every neighbour respects the hard rules
and never fills fewer demanded slots than the current plan. Recently reversed
moves are tabu unless they would produce a new best plan.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Optional

from eligibility import check_eligibility
from logger import get_logger
from models import ObjectiveWeights
from objectives import calculate_objectives
from plan_state import PlanState
from scheduler_builders import PlanningContext
from utils import Deadline

logger = get_logger('tabu_refiner')

SCORE_EPSILON = 1e-9


@dataclass(frozen=True)
class Move:
    kind: str  # 'swap' or 'reassign'
    day: int
    worker: int
    other: Optional[int] = None   # swap partner
    task_id: Optional[str] = None  # reassign target

    def reverse_key(self, previous_task: Optional[str]) -> tuple:
        """Key of the move that would undo this one."""
        if self.kind == 'swap':
            return ('swap', self.day, min(self.worker, self.other), max(self.worker, self.other))
        return ('reassign', self.day, self.worker, previous_task)

    def key(self) -> tuple:
        if self.kind == 'swap':
            return ('swap', self.day, min(self.worker, self.other), max(self.worker, self.other))
        return ('reassign', self.day, self.worker, self.task_id)


@dataclass
class TabuOutcome:
    schedule: PlanState
    initial_score: float
    final_score: float
    iterations_run: int
    partial: bool = False
    improvements: int = 0

    def to_dict(self) -> dict:
        return {
            "initial_score": round(self.initial_score, 4),
            "final_score": round(self.final_score, 4),
            "iterations_run": self.iterations_run,
            "improvements": self.improvements,
        }


def _movable(plan: PlanState, w: int, d: int) -> bool:
    return not plan.is_frozen(w, d)


def enumerate_moves(ctx: PlanningContext, plan: PlanState) -> list[Move]:
    """Every structurally possible move, in deterministic order."""
    moves: list[Move] = []
    for d in range(ctx.num_days):
        tasks = ctx.tasks_with_demand(d)
        movable = [w for w in range(ctx.num_workers) if _movable(plan, w, d)]
        for i, a in enumerate(movable):
            for b in movable[i + 1:]:
                ta, tb = plan.task_at(a, d), plan.task_at(b, d)
                if ta != tb:
                    moves.append(Move('swap', d, a, other=b))
        for w in movable:
            current = plan.task_at(w, d)
            for t in tasks:
                if t != current:
                    moves.append(Move('reassign', d, w, task_id=t))
    return moves


def _apply(ctx, plan: PlanState, move: Move) -> Optional[list[tuple[int, Optional[str]]]]:
    """Apply a move if it is legal. Returns an undo log, or None if illegal."""
    d = move.day
    if move.kind == 'swap':
        a, b = move.worker, move.other
        ta, tb = plan.task_at(a, d), plan.task_at(b, d)
        plan.unassign(a, d)
        plan.unassign(b, d)
        ok = (
            (tb is None or check_eligibility(ctx, plan, a, tb, d, enforce_capacity=False).ok)
            and (ta is None or check_eligibility(ctx, plan, b, ta, d, enforce_capacity=False).ok)
        )
        if not ok:
            plan.assign(a, d, ta)
            plan.assign(b, d, tb)
            return None
        plan.assign(a, d, tb)
        plan.assign(b, d, ta)
        return [(a, ta), (b, tb)]

    w = move.worker
    current = plan.task_at(w, d)
    if not check_eligibility(ctx, plan, w, move.task_id, d, replacing=True).ok:
        return None
    plan.assign(w, d, move.task_id)
    return [(w, current)]


def _undo(plan: PlanState, d: int, log: list[tuple[int, Optional[str]]]) -> None:
    for w, task_id in log:
        plan.assign(w, d, task_id)


def refine_with_tabu(
    ctx: PlanningContext,
    plan: PlanState,
    rng,
    weights: Optional[ObjectiveWeights] = None,
    max_iterations: Optional[int] = None,
    tabu_list_size: Optional[int] = None,
    neighborhood_size: Optional[int] = None,
    stagnation_limit: Optional[int] = None,
    deadline: Optional[Deadline] = None,
) -> TabuOutcome:
    """Improve `plan` by tabu search. The input plan is not modified."""
    config = ctx.config
    weights = weights or config.weights
    max_iterations = config.tabu_max_iterations if max_iterations is None else max_iterations
    tabu_list_size = tabu_list_size or config.tabu_list_size
    neighborhood_size = config.tabu_neighborhood_size if neighborhood_size is None else neighborhood_size
    stagnation_limit = config.tabu_stagnation_limit if stagnation_limit is None else stagnation_limit
    deadline = deadline or Deadline(config.timeout_ms)

    current = plan.copy()
    initial_score = calculate_objectives(ctx, current, weights).total_score
    best = current.copy()
    best_score = initial_score
    tabu: deque = deque(maxlen=tabu_list_size)
    stagnation = 0
    iterations = 0
    improvements = 0
    partial = False

    for _ in range(max_iterations):
        if deadline.expired():
            partial = True
            break
        iterations += 1

        moves = enumerate_moves(ctx, current)
        if neighborhood_size and len(moves) > neighborhood_size:
            moves = rng.sample(moves, neighborhood_size)

        filled_by_day = [current.filled_slots(d) for d in range(ctx.num_days)]
        chosen = None
        chosen_score = None
        chosen_reverse = None
        for move in moves:
            d = move.day
            previous = current.task_at(move.worker, d)
            log = _apply(ctx, current, move)
            if log is None:
                continue
            if current.filled_slots(d) < filled_by_day[d]:
                _undo(current, d, log)
                continue
            s = calculate_objectives(ctx, current, weights).total_score
            _undo(current, d, log)

            is_tabu = move.key() in tabu
            if is_tabu and s <= best_score + SCORE_EPSILON:
                continue
            if chosen_score is None or s > chosen_score + SCORE_EPSILON:
                chosen, chosen_score = move, s
                chosen_reverse = move.reverse_key(previous)

        if chosen is None:
            logger.debug(f"Tabu: no admissible neighbour at iteration {iterations}")
            break

        _apply(ctx, current, chosen)
        tabu.append(chosen_reverse)

        if chosen_score > best_score + SCORE_EPSILON:
            best = current.copy()
            best_score = chosen_score
            improvements += 1
            stagnation = 0
        else:
            stagnation += 1
            if stagnation_limit and stagnation >= stagnation_limit:
                break

    logger.info(
        f"Tabu: {iterations} iteration(s), score {initial_score:.2f} -> {best_score:.2f}"
        f"{' (time budget reached)' if partial else ''}"
    )
    return TabuOutcome(
        schedule=best,
        initial_score=initial_score,
        final_score=best_score,
        iterations_run=iterations,
        partial=partial,
        improvements=improvements,
    )
