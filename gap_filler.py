"""Gap filler: put idle worker-days to use without undoing met requirements.

Cells are visited day by day in roster order. Every idle, unprotected cell of
an available worker gets a task running that day. Tasks with an open
requirement slot come first, then the task that breaks the fewest important
soft rules, then the higher score. Headcount does not cap the filler unless
`allow_overstaffing` is off, so idle workers can be put to use past demand.
When no task can be placed the cell is reported as unfillable together with
the reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from constants import (
    AVOID_CONSECUTIVE_HEAVY,
    AVOID_CONSECUTIVE_SAME_TASK,
    TASK_VARIETY,
    UNFILLABLE_NO_CAPACITY,
    UNFILLABLE_NO_SKILL_MATCH,
    UNFILLABLE_UNAVAILABLE,
    WORKLOAD_BALANCE,
    WORKLOAD_OVERLOAD_FACTOR,
)
from eligibility import check_eligibility, could_ever_work
from history_view import HistoryView
from logger import get_logger
from models import ObjectiveWeights
from plan_state import PlanState
from scheduler_builders import PlanningContext
from scoring import score_assignment

logger = get_logger('gap_filler')

NONE_CONFIGURED = 'none_configured'
ALL_MET = 'all_met'
UNMET = 'unmet'


@dataclass
class GapFillAssignment:
    worker_id: str
    day: str
    task_id: str
    score: float
    broken_rules: list[str] = field(default_factory=list)

    @property
    def followed_all_rules(self) -> bool:
        return not self.broken_rules

    def to_dict(self) -> dict:
        return {
            "worker_id": self.worker_id,
            "day": self.day,
            "task_id": self.task_id,
            "score": round(self.score, 4),
            "broken_rules": list(self.broken_rules),
            "followed_all_rules": self.followed_all_rules,
        }


@dataclass
class UnfillableCell:
    worker_id: str
    day: str
    reason: str

    def to_dict(self) -> dict:
        return {"worker_id": self.worker_id, "day": self.day, "reason": self.reason}


@dataclass
class GapFillResult:
    schedule: PlanState
    assignments: list[GapFillAssignment] = field(default_factory=list)
    unfillable: list[UnfillableCell] = field(default_factory=list)
    stats: dict = field(default_factory=dict)


def broken_soft_rules(ctx: PlanningContext, history: HistoryView, task_id: str, d: int, rules) -> list[str]:
    """Ids of the enabled soft rules that placing `task_id` on day `d` would break."""
    plan = history.plan
    task = ctx.tasks[task_id]
    broken = []
    for rule in rules:
        if rule.id == AVOID_CONSECUTIVE_SAME_TASK:
            if task_id in history.adjacent_tasks(d):
                broken.append(rule.id)
        elif rule.id == TASK_VARIETY:
            others = set(history.task_ids(exclude_day=d))
            if others == {task_id}:
                broken.append(rule.id)
        elif rule.id == WORKLOAD_BALANCE:
            if history.workload() > plan.average_workload() * WORKLOAD_OVERLOAD_FACTOR:
                broken.append(rule.id)
        elif rule.id == AVOID_CONSECUTIVE_HEAVY:
            if task.heavy and history.neighbour_is_heavy(d):
                broken.append(rule.id)
    return broken


def _unfillable_reason(ctx, plan, w, d, tasks) -> str:
    # No task running that day means no capacity, not a skill problem
    if not tasks or any(could_ever_work(ctx, w, t, d) for t in tasks):
        return UNFILLABLE_NO_CAPACITY
    return UNFILLABLE_NO_SKILL_MATCH


def fill_gaps(
    ctx: PlanningContext,
    plan: PlanState,
    weights: Optional[ObjectiveWeights] = None,
    allow_overstaffing: Optional[bool] = None,
) -> GapFillResult:
    """Fill idle cells of a copy of `plan` and report what happened."""
    config = ctx.config
    if allow_overstaffing is None:
        allow_overstaffing = config.allow_overstaffing
    rules = config.enabled_soft_rules()
    schedule = plan.copy()
    result = GapFillResult(schedule=schedule)

    rule_compliance = {rule.id: {"followed": 0, "broken": 0} for rule in rules}
    by_day = {day: {"filled": 0, "unfilled": 0} for day in ctx.days}

    if not ctx.requirements_configured:
        # No demand anywhere: there are no gaps to speak of
        result.stats = _stats(ctx, schedule, result, by_day, rule_compliance, configured=False)
        logger.info("Gap filler: no requirements configured, nothing to fill")
        return result

    for d, day in enumerate(ctx.days):
        tasks = ctx.tasks_with_demand(d)
        if config.gap_fill_exclude_heavy:
            tasks = [t for t in tasks if not ctx.tasks[t].heavy]
        for w, worker in enumerate(ctx.workers):
            if not schedule.is_idle(w, d) or schedule.is_frozen(w, d):
                continue
            if not worker.is_available(day):
                continue
            if not worker.is_active:
                result.unfillable.append(UnfillableCell(worker.id, day, UNFILLABLE_UNAVAILABLE))
                by_day[day]["unfilled"] += 1
                continue

            options = [
                t for t in tasks
                if check_eligibility(ctx, schedule, w, t, d, enforce_capacity=not allow_overstaffing).ok
            ]
            if not options:
                reason = _unfillable_reason(ctx, schedule, w, d, tasks)
                result.unfillable.append(UnfillableCell(worker.id, day, reason))
                by_day[day]["unfilled"] += 1
                continue

            history = HistoryView(schedule, w)
            best = None
            for t in options:
                broken = broken_soft_rules(ctx, history, t, d, rules)
                s = score_assignment(ctx, history, t, d, weights).score
                # Rules are listed most important first, so the flag tuple
                # compares lexicographically by importance
                open_slot = schedule.has_room(d, t, worker.operator_type)
                key = (not open_slot, tuple(r.id in broken for r in rules), -s)
                if best is None or key < best[0]:
                    best = (key, t, s, broken)

            _, task_id, s, broken = best
            schedule.assign(w, d, task_id)
            result.assignments.append(GapFillAssignment(worker.id, day, task_id, s, broken))
            by_day[day]["filled"] += 1
            for rule in rules:
                rule_compliance[rule.id]["broken" if rule.id in broken else "followed"] += 1

    result.stats = _stats(ctx, schedule, result, by_day, rule_compliance, configured=True)
    logger.info(
        f"Gap filler: filled {result.stats['filled_cells']}/{result.stats['total_empty_cells']} "
        f"empty cell(s), {result.stats['required_relaxing']} needed a soft rule relaxed"
    )
    return result


def _stats(ctx, schedule, result, by_day, rule_compliance, configured: bool) -> dict:
    filled = len(result.assignments)
    unfilled = len(result.unfillable)
    followed = sum(1 for a in result.assignments if a.followed_all_rules)
    gaps = schedule.total_missing() if configured else 0
    if not configured:
        status = NONE_CONFIGURED
    elif gaps == 0:
        status = ALL_MET
    else:
        status = UNMET
    return {
        "total_empty_cells": filled + unfilled,
        "filled_cells": filled,
        "unfilled_cells": unfilled,
        "followed_all_rules": followed,
        "required_relaxing": filled - followed,
        "by_day": by_day,
        "rule_compliance": rule_compliance,
        "requirements_configured": configured,
        "remaining_requirement_gaps": gaps,
        "requirement_status": status,
    }
