"""Hard-constraint evaluator.

`check_eligibility` answers "can worker W take task T on day D given the
current plan?" and, when the answer is no, says why. It never mutates the plan.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from plan_state import PlanState
from scheduler_builders import PlanningContext

# Rejection reasons
TASK_EXCLUDED = 'task_excluded'
INACTIVE = 'inactive'
UNAVAILABLE = 'unavailable'
FROZEN = 'frozen'
ALREADY_ASSIGNED = 'already_assigned'
COORDINATOR_RESTRICTION = 'coordinator_restriction'
SKILL_MISMATCH = 'skill_mismatch'
TYPE_NOT_REQUIRED = 'type_not_required'
NO_CAPACITY = 'no_capacity'

_MISSING = object()


@dataclass(frozen=True)
class Eligibility:
    ok: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


ELIGIBLE = Eligibility(True)


def check_eligibility(
    ctx: PlanningContext,
    plan: PlanState,
    w: int,
    task_id: str,
    d: int,
    *,
    replacing: bool = False,
    slot_type=_MISSING,
    enforce_capacity: bool = True,
) -> Eligibility:
    """Evaluate every hard rule for placing worker index `w` on `task_id`, day `d`.

    Args:
        replacing: the worker may already hold a task that day and is asking
            whether it could switch to `task_id`.
        slot_type: when given, the worker must fit a unit of this operator type
            (None = any type).
        enforce_capacity: check that the task still has an open unit for the
            worker's type that day. The utilization passes turn this off.
    """
    worker = ctx.workers[w]
    task = ctx.tasks[task_id]
    current = plan.task_at(w, d)

    if plan.is_frozen(w, d):
        # A protected cell is only "eligible" for the value it already holds
        return ELIGIBLE if current == task_id else Eligibility(False, FROZEN)
    if task_id not in ctx.in_scope:
        return Eligibility(False, TASK_EXCLUDED)
    if not worker.is_active:
        return Eligibility(False, INACTIVE)
    if not worker.is_available(ctx.days[d]):
        return Eligibility(False, UNAVAILABLE)
    if current is not None and not replacing:
        return Eligibility(False, ALREADY_ASSIGNED)
    if worker.is_coordinator != task.coordinator_only:
        return Eligibility(False, COORDINATOR_RESTRICTION)
    if ctx.config.strict_skill_matching and task.required_skill not in worker.skills:
        return Eligibility(False, SKILL_MISMATCH)
    if slot_type is not _MISSING and slot_type is not None and slot_type != worker.operator_type:
        return Eligibility(False, TYPE_NOT_REQUIRED)

    if not plan.type_allowed(d, task_id, worker.operator_type):
        return Eligibility(False, TYPE_NOT_REQUIRED)

    if enforce_capacity:
        if current == task_id:
            # Already counted in the task's headcount
            return ELIGIBLE
        if not plan.has_room(d, task_id, worker.operator_type):
            return Eligibility(False, NO_CAPACITY)

    return ELIGIBLE


def is_eligible(ctx, plan, w, task_id, d, **kwargs) -> bool:
    return check_eligibility(ctx, plan, w, task_id, d, **kwargs).ok


def could_ever_work(ctx: PlanningContext, w: int, task_id: str, d: int) -> bool:
    """Static eligibility: availability, status, coordinator and skill rules only."""
    worker = ctx.workers[w]
    task = ctx.tasks[task_id]
    if task_id not in ctx.in_scope or not worker.can_work(ctx.days[d]):
        return False
    if worker.is_coordinator != task.coordinator_only:
        return False
    return not ctx.config.strict_skill_matching or task.required_skill in worker.skills


def eligible_workers(ctx, plan, task_id, d, **kwargs) -> list[int]:
    return [w for w in range(ctx.num_workers) if is_eligible(ctx, plan, w, task_id, d, **kwargs)]
