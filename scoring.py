"""Per-assignment soft scoring.

`score_assignment` rates how desirable it is to put one worker on one task on
one day, given the week so far. Higher is better. The score is a pure function
of the candidate and the plan snapshot; every term family is scaled by its
objective weight relative to the default weight.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from constants import (
    ABOVE_AVERAGE_WORKLOAD_PENALTY,
    BELOW_AVERAGE_WORKLOAD_BONUS,
    CONSECUTIVE_HEAVY_PENALTY,
    HEAVY_ABOVE_AVERAGE_PENALTY,
    HEAVY_BELOW_AVERAGE_BONUS,
    LIGHTLY_USED_SKILL_BONUS,
    MANY_UNUSED_SKILLS_BONUS,
    MANY_UNUSED_SKILLS_THRESHOLD,
    PREFERRED_TASK_BONUS,
    SAME_TASK_DECAY,
    SAME_TASK_LIMIT_PENALTY,
    SCARCE_SKILL_RESERVE_PENALTY,
    SCORE_BASE,
    TYPE_FULL_PENALTY,
    TYPE_MATCH_BONUS,
    UNUSED_SKILL_BONUS,
    WORKLOAD_TOLERANCE,
)
from eligibility import could_ever_work
from history_view import HistoryView
from models import ObjectiveWeights
from plan_state import PlanState
from scheduler_builders import PlanningContext


@dataclass
class AssignmentScore:
    score: float
    reasons: list[str] = field(default_factory=list)

    def add(self, amount: float, reason: str) -> None:
        if amount:
            self.score += amount
            self.reasons.append(f"{reason} ({amount:+.1f})")


def _is_rotation_exempt(history: HistoryView) -> bool:
    # A single-skill Flex operator has nothing to rotate through
    worker = history.worker
    return worker.is_flex and len(worker.skills) <= 1


def score_assignment(
    ctx: PlanningContext,
    history: HistoryView,
    task_id: str,
    day_index: int,
    weights: Optional[ObjectiveWeights] = None,
) -> AssignmentScore:
    config = ctx.config
    weights = weights or config.weights
    plan = history.plan
    worker = history.worker
    task = ctx.tasks[task_id]
    result = AssignmentScore(float(SCORE_BASE))

    # Variety: staleness decay and under-used skills
    variety = weights.relative('variety')
    if not _is_rotation_exempt(history):
        run = history.consecutive_run(task_id, day_index)
        result.add(-SAME_TASK_DECAY * run * variety, f"{run} day(s) in a row on {task_id}")
        if run >= config.max_consecutive_same_task:
            result.add(-SAME_TASK_LIMIT_PENALTY * variety, "same-task limit reached")

    used = history.skill_use_counts(exclude_day=day_index)
    uses = used.get(task.required_skill, 0)
    if uses == 0:
        result.add(UNUSED_SKILL_BONUS * variety, f"skill {task.required_skill} unused this week")
    elif uses == 1:
        result.add(LIGHTLY_USED_SKILL_BONUS * variety, f"skill {task.required_skill} used once")
    unused_skills = sum(1 for s in worker.skills if used.get(s, 0) == 0)
    if unused_skills >= MANY_UNUSED_SKILLS_THRESHOLD:
        result.add(MANY_UNUSED_SKILLS_BONUS * variety, f"{unused_skills} skills unused")

    # Workload balance
    if config.balance_workload:
        balance = weights.relative('workload_balance')
        load = history.workload()
        if history.task_on(day_index) is not None:
            load -= 1
        avg = plan.average_workload()
        if load < avg:
            result.add(BELOW_AVERAGE_WORKLOAD_BONUS * balance, "below average workload")
        elif load > avg + WORKLOAD_TOLERANCE:
            result.add(-ABOVE_AVERAGE_WORKLOAD_PENALTY * balance, "above average workload")

    # Heavy-task fairness
    if config.fair_distribution and task.heavy:
        fairness = weights.relative('fairness')
        heavy = history.heavy_count()
        avg_heavy = plan.average_heavy()
        if heavy > avg_heavy:
            result.add(-HEAVY_ABOVE_AVERAGE_PENALTY * fairness, "more heavy tasks than average")
        elif heavy < avg_heavy:
            result.add(HEAVY_BELOW_AVERAGE_BONUS * fairness, "fewer heavy tasks than average")

    # Operator-type match and configured preferences
    skill_match = weights.relative('skill_match')
    demand = ctx.demand_for(day_index, task_id)
    if worker.operator_type in demand:
        assigned = plan.assigned_by_type(day_index, task_id).get(worker.operator_type, 0)
        if history.task_on(day_index) == task_id:
            assigned -= 1
        if assigned < demand[worker.operator_type]:
            result.add(TYPE_MATCH_BONUS * skill_match, f"{worker.operator_type} slot open")
        elif None not in demand:
            result.add(-TYPE_FULL_PENALTY * skill_match, f"{worker.operator_type} slots full")
    for pref in config.type_preferences:
        if pref.operator_type != worker.operator_type:
            continue
        if pref.task_id == task_id:
            result.add(pref.bonus * skill_match, f"{worker.operator_type} priority task")
        elif pref.penalty:
            result.add(-pref.penalty * skill_match, f"{worker.operator_type} away from priority task")
    if task_id in worker.preferred_tasks:
        result.add(PREFERRED_TASK_BONUS * skill_match, "preferred task")

    # Scarce-skill reservation: keep workers free for open slots few others can take
    for other_id in _scarce_tasks_needing(ctx, plan, history.worker_index, task_id, day_index):
        result.add(-SCARCE_SKILL_RESERVE_PENALTY * skill_match, f"needed for scarce task {other_id}")

    # Heavy-task spacing: smallest term, applied last
    if task.heavy and not config.allow_consecutive_heavy and history.neighbour_is_heavy(day_index):
        spacing = weights.relative('heavy_task_spacing')
        result.add(-CONSECUTIVE_HEAVY_PENALTY * spacing, "heavy task on a consecutive day")

    return result


def score(ctx, plan: PlanState, w: int, task_id: str, day_index: int, weights=None) -> float:
    """Shorthand returning only the numeric score."""
    return score_assignment(ctx, HistoryView(plan, w), task_id, day_index, weights).score


def _scarce_tasks_needing(ctx, plan: PlanState, w: int, task_id: str, day_index: int) -> list[str]:
    """Other open tasks today that cannot be staffed without worker `w`."""
    worker = ctx.workers[w]
    needing = []
    for other_id in ctx.tasks_with_demand(day_index):
        if other_id == task_id or plan.task_at(w, day_index) == other_id:
            continue
        if ctx.tasks[other_id].required_skill not in worker.skills:
            continue
        missing = plan.missing(day_index, other_id)
        if not missing:
            continue
        supply = sum(
            1 for v in range(ctx.num_workers)
            if v != w
            and plan.is_idle(v, day_index)
            and not plan.is_frozen(v, day_index)
            and could_ever_work(ctx, v, other_id, day_index)
        )
        if supply < missing:
            needing.append(other_id)
    return needing
