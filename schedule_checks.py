"""Post-solve checks.

`collect_warnings` turns a finished plan into caller-facing warnings.
`assert_plan_invariants` guards against solver defects and raises
InvariantViolation when a hard rule is broken by a non-protected cell.
"""

from __future__ import annotations

from collections import defaultdict

from constants import (
    AVAILABILITY_CONFLICT,
    DOUBLE_ASSIGNMENT,
    OVERSTAFFED,
    SKILL_MISMATCH,
    UNDERSTAFFED,
)
from logger import get_logger
from models import AssignmentCell, ScheduleWarning
from plan_state import PlanState
from scheduler_builders import PlanningContext
from validation import InvariantViolation

logger = get_logger('schedule_checks')


def _type_label(op_type) -> str:
    return op_type if op_type is not None else "any"


def validate_assignments(ctx: PlanningContext, cells: list[AssignmentCell]) -> list[ScheduleWarning]:
    """Warnings for an arbitrary list of cells (may contain duplicates)."""
    warnings: list[ScheduleWarning] = []
    workers = {w.id: w for w in ctx.workers}
    day_index = {day: i for i, day in enumerate(ctx.days)}

    # (day, task) -> [cells]
    by_task: dict[tuple[str, str], list[AssignmentCell]] = defaultdict(list)
    per_worker_day: dict[tuple[str, str], list[AssignmentCell]] = defaultdict(list)

    for cell in cells:
        if cell.task_id is None:
            continue
        worker = workers.get(cell.worker_id)
        task = ctx.tasks.get(cell.task_id)
        if worker is None or task is None or cell.day not in day_index:
            continue
        per_worker_day[(cell.worker_id, cell.day)].append(cell)
        by_task[(cell.day, cell.task_id)].append(cell)

        if task.required_skill not in worker.skills:
            warnings.append(ScheduleWarning(
                kind=SKILL_MISMATCH,
                message=f"{worker.name} lacks skill {task.required_skill} for {task.name} on {cell.day}",
                day=cell.day, task_id=task.id, worker_id=worker.id,
            ))
        if not worker.can_work(cell.day):
            why = "is not active" if not worker.is_active else "is unavailable"
            warnings.append(ScheduleWarning(
                kind=AVAILABILITY_CONFLICT,
                message=f"{worker.name} {why} on {cell.day} but is assigned to {task.name}",
                day=cell.day, task_id=task.id, worker_id=worker.id,
            ))

    for (worker_id, day), assigned in per_worker_day.items():
        if len(assigned) > 1:
            names = ", ".join(c.task_id for c in assigned)
            warnings.append(ScheduleWarning(
                kind=DOUBLE_ASSIGNMENT,
                message=f"{workers[worker_id].name} has {len(assigned)} tasks on {day}: {names}",
                day=day, worker_id=worker_id,
            ))

    for d, day in enumerate(ctx.days):
        for task_id in ctx.tasks_with_demand(d):
            assigned = by_task.get((day, task_id), [])
            # Staffing on a task made only of protected cells is the caller's decision
            if assigned and all(c.frozen for c in assigned):
                continue
            warnings.extend(_staffing_warnings(ctx, d, task_id, assigned, workers))

    return warnings


def _staffing_warnings(ctx, d, task_id, assigned, workers) -> list[ScheduleWarning]:
    day = ctx.days[d]
    task = ctx.tasks[task_id]
    demand = ctx.demand_for(d, task_id)
    counts: dict[str, int] = defaultdict(int)
    for cell in assigned:
        counts[workers[cell.worker_id].operator_type] += 1

    out = []
    overflow = sum(max(0, n - demand.get(t, 0)) for t, n in counts.items())
    for op_type, wanted in demand.items():
        have = min(wanted, overflow) if op_type is None else min(wanted, counts.get(op_type, 0))
        if have < wanted:
            out.append(ScheduleWarning(
                kind=UNDERSTAFFED,
                message=f"{task.name} on {day} needs {wanted} {_type_label(op_type)} operator(s), has {have}",
                day=day, task_id=task_id,
            ))
    total_wanted = sum(demand.values())
    if len(assigned) > total_wanted:
        out.append(ScheduleWarning(
            kind=OVERSTAFFED,
            message=f"{task.name} on {day} has {len(assigned)} operator(s), needs {total_wanted}",
            day=day, task_id=task_id,
        ))
    return out


def collect_warnings(ctx: PlanningContext, plan: PlanState) -> list[ScheduleWarning]:
    return validate_assignments(ctx, plan.to_cells())


def assert_plan_invariants(ctx: PlanningContext, plan: PlanState, baseline: dict) -> None:
    """Raise InvariantViolation if the plan breaks a hard rule.

    Args:
        baseline: {(w, d): task_id} for the protected cells the solver was given.
    """
    problems = []
    for (w, d), task_id in baseline.items():
        if plan.grid[w][d] != task_id:
            problems.append(
                f"protected cell ({ctx.workers[w].id}, {ctx.days[d]}) changed "
                f"from {task_id!r} to {plan.grid[w][d]!r}"
            )

    strict = ctx.config.strict_skill_matching
    for w, worker in enumerate(ctx.workers):
        for d, task_id in enumerate(plan.grid[w]):
            if task_id is None or (w, d) in baseline:
                continue
            task = ctx.tasks[task_id]
            where = f"({worker.id}, {ctx.days[d]}, {task_id})"
            if worker.is_coordinator != task.coordinator_only:
                problems.append(f"coordinator exclusivity broken at {where}")
            if strict and task.required_skill not in worker.skills:
                problems.append(f"skill mismatch at {where}")
            if not worker.can_work(ctx.days[d]):
                problems.append(f"unavailable worker assigned at {where}")
            if not plan.type_allowed(d, task_id, worker.operator_type):
                problems.append(f"operator type {worker.operator_type} not required at {where}")
            if task_id not in ctx.in_scope:
                problems.append(f"excluded task assigned at {where}")

    cells = plan.to_cells()
    keys = [(c.worker_id, c.day) for c in cells]
    if len(keys) != len(set(keys)):
        problems.append("more than one cell for a worker and day")

    if problems:
        for p in problems:
            logger.error(f"Invariant violation: {p}")
        raise InvariantViolation("; ".join(problems))
