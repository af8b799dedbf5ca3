"""Greedy assignment builder.

Day by day, every open slot (in requirement declaration order) goes to the
eligible worker with the best score. Ties are broken with one draw per
candidate from the call's seeded generator, so repeated runs with different
seeds vary while a fixed seed is reproducible. Coordinator-only tasks are left
to the coordinator rotation solver.
"""

from __future__ import annotations

from typing import Optional

from eligibility import check_eligibility
from history_view import HistoryView
from logger import get_logger, timed
from models import ObjectiveWeights
from plan_state import PlanState
from scheduler_builders import PlanningContext, expand_slots
from scoring import score_assignment

logger = get_logger('greedy_solver')


def _pick_best(ctx, plan, candidates, task_id, d, rng, weights) -> Optional[int]:
    best = None
    best_key = None
    for w in candidates:
        s = score_assignment(ctx, HistoryView(plan, w), task_id, d, weights).score
        key = (s, rng.random())
        if best_key is None or key > best_key:
            best_key = key
            best = w
    return best


def fill_open_slots(
    ctx: PlanningContext,
    plan: PlanState,
    d: int,
    rng,
    weights: Optional[ObjectiveWeights] = None,
) -> int:
    """Primary pass for one day. Returns the number of unfilled slots."""
    unfilled = 0
    for task_id in ctx.tasks_with_demand(d, coordinator=False):
        for slot in expand_slots(d, task_id, plan.open_slots(d, task_id)):
            candidates = [
                w for w in range(ctx.num_workers)
                if check_eligibility(ctx, plan, w, task_id, d, slot_type=slot.operator_type).ok
            ]
            best = _pick_best(ctx, plan, candidates, task_id, d, rng, weights)
            if best is None:
                unfilled += 1
                continue
            plan.assign(best, d, task_id)
    return unfilled


def fill_idle_cells(
    ctx: PlanningContext,
    plan: PlanState,
    d: int,
    rng,
    weights: Optional[ObjectiveWeights] = None,
) -> int:
    """Utilization pass: put still-idle workers on any task running that day.

    Capacity is not enforced here, so this pass may overstaff a task, but a
    task only takes the operator types it asks for. Returns the number of
    cells filled.
    """
    filled = 0
    tasks = ctx.tasks_with_demand(d, coordinator=False)
    if not tasks:
        return 0
    for w in range(ctx.num_workers):
        if not plan.is_idle(w, d) or plan.is_frozen(w, d):
            continue
        options = [t for t in tasks if check_eligibility(ctx, plan, w, t, d, enforce_capacity=False).ok]
        if not options:
            continue
        history = HistoryView(plan, w)
        best_task = None
        best_key = None
        for t in options:
            key = (score_assignment(ctx, history, t, d, weights).score, rng.random())
            if best_key is None or key > best_key:
                best_key = key
                best_task = t
        plan.assign(w, d, best_task)
        filled += 1
    return filled


@timed
def build_greedy_schedule(
    ctx: PlanningContext,
    plan: PlanState,
    rng,
    weights: Optional[ObjectiveWeights] = None,
    fill_idle: Optional[bool] = None,
) -> dict:
    """Run the greedy builder over the whole week. Mutates `plan`."""
    if fill_idle is None:
        fill_idle = ctx.config.fill_idle_cells

    unfilled = 0
    idle_filled = 0
    for d in range(ctx.num_days):
        unfilled += fill_open_slots(ctx, plan, d, rng, weights)
    if fill_idle:
        for d in range(ctx.num_days):
            idle_filled += fill_idle_cells(ctx, plan, d, rng, weights)

    logger.info(f"Greedy: {unfilled} slot(s) left open, {idle_filled} idle cell(s) put to work")
    return {"unfilled_slots": unfilled, "idle_cells_filled": idle_filled}
