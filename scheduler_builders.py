"""Pure builder helpers for schedule generation.

This module turns a validated ScheduleRequest into a PlanningContext: the
ordered roster, the in-scope tasks in declaration order and the per-day demand
table every solver reads. Nothing here mutates the request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from constants import WEEKDAYS
from models import Task, Worker
from utils import are_consecutive_days, order_days

# Demand maps operator type (None = any eligible type) to headcount, in declaration order
Demand = dict


@dataclass(frozen=True)
class Slot:
    """One unit of headcount: (day, task, operator type)."""
    day_index: int
    task_id: str
    operator_type: Optional[str] = None

    def accepts(self, worker: Worker) -> bool:
        return self.operator_type is None or self.operator_type == worker.operator_type


@dataclass
class PlanningContext:
    workers: list[Worker]
    tasks: dict[str, Task]
    task_order: list[str]
    days: tuple[str, ...]
    demand: list[dict[str, Demand]]
    in_scope: frozenset
    coordinator_skills: frozenset
    requirements_configured: bool
    config: object
    worker_index: dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        if not self.worker_index:
            self.worker_index = {w.id: i for i, w in enumerate(self.workers)}

    @property
    def num_days(self) -> int:
        return len(self.days)

    @property
    def num_workers(self) -> int:
        return len(self.workers)

    @property
    def weights(self):
        return self.config.weights

    def task(self, task_id: str) -> Task:
        return self.tasks[task_id]

    def demand_for(self, day_index: int, task_id: str) -> Demand:
        return self.demand[day_index].get(task_id, {})

    def total_demand(self, day_index: int, task_id: Optional[str] = None) -> int:
        if task_id is not None:
            return sum(self.demand_for(day_index, task_id).values())
        return sum(sum(d.values()) for d in self.demand[day_index].values())

    def tasks_with_demand(self, day_index: int, coordinator: Optional[bool] = None) -> list[str]:
        """In-scope task ids with demand on the day, in declaration order.

        coordinator=True/False restricts to coordinator-only / regular tasks.
        """
        out = []
        for task_id in self.task_order:
            if task_id not in self.demand[day_index]:
                continue
            if coordinator is not None and self.tasks[task_id].coordinator_only != coordinator:
                continue
            out.append(task_id)
        return out

    def scoped_tasks(self, coordinator: Optional[bool] = None) -> list[str]:
        return [
            t for t in self.task_order
            if coordinator is None or self.tasks[t].coordinator_only == coordinator
        ]

    def consecutive(self, earlier: int, later: int) -> bool:
        """True when day `later` directly follows day `earlier` in the week."""
        if not (0 <= earlier < self.num_days and 0 <= later < self.num_days):
            return False
        return are_consecutive_days(self.days[earlier], self.days[later])

    def has_any_demand(self) -> bool:
        return any(self.demand[d] for d in range(self.num_days))


def resolve_days(days) -> tuple[str, ...]:
    """Planning days in week order; an empty selection means the full week."""
    if not days:
        return WEEKDAYS
    return order_days(days)


def task_declaration_order(tasks: list[Task], requirements) -> list[str]:
    """Tasks covered by requirements first (requirement order), then the rest."""
    known = {t.id for t in tasks}
    order: list[str] = []
    for req in requirements:
        if req.task_id in known and req.task_id not in order:
            order.append(req.task_id)
    for t in tasks:
        if t.id not in order:
            order.append(t.id)
    return order


def build_demand_table(tasks: list[Task], requirements, days, in_scope) -> list[dict[str, Demand]]:
    """Return one {task_id: {operator_type|None: count}} mapping per day.

    Enabled requirements provide typed demand. Tasks without a requirement fall
    back to their untyped `required_operators`. Zero counts are dropped so that
    a task appears on a day only when somebody is actually needed.
    """
    by_task = {req.task_id: req for req in requirements}
    order = task_declaration_order(tasks, requirements)
    task_map = {t.id: t for t in tasks}

    table: list[dict[str, Demand]] = []
    for day in days:
        day_demand: dict[str, Demand] = {}
        for task_id in order:
            if task_id not in in_scope:
                continue
            req = by_task.get(task_id)
            demand: Demand = {}
            if req is not None:
                for tc in req.counts_for(day):
                    if tc.count > 0:
                        demand[tc.operator_type] = demand.get(tc.operator_type, 0) + tc.count
            else:
                headcount = task_map[task_id].headcount_for(day)
                if headcount:
                    demand[None] = headcount
            if demand:
                day_demand[task_id] = demand
        table.append(day_demand)
    return table


def build_planning_context(request) -> PlanningContext:
    """Assemble the read-only context shared by every solver for one call."""
    days = resolve_days(request.days)
    tasks = {t.id: t for t in request.tasks}
    excluded = set(request.excluded_tasks)
    excluded.update(req.task_id for req in request.requirements if not req.enabled)
    in_scope = frozenset(t.id for t in request.tasks if t.id not in excluded)

    order = [t for t in task_declaration_order(request.tasks, request.requirements) if t in in_scope]
    demand = build_demand_table(request.tasks, request.requirements, days, in_scope)

    requirements_configured = (
        any(req.enabled and req.task_id in in_scope for req in request.requirements)
        or any(tasks[t].required_operators is not None for t in in_scope)
    )

    return PlanningContext(
        workers=list(request.workers),
        tasks=tasks,
        task_order=order,
        days=days,
        demand=demand,
        in_scope=in_scope,
        coordinator_skills=frozenset(t.required_skill for t in request.tasks if t.coordinator_only),
        requirements_configured=requirements_configured,
        config=request.config,
    )


def expand_slots(day_index: int, task_id: str, open_counts: dict) -> list[Slot]:
    """One Slot per missing unit; typed units first, untyped last."""
    slots = []
    for op_type, missing in open_counts.items():
        if op_type is None:
            continue
        slots.extend(Slot(day_index, task_id, op_type) for _ in range(missing))
    slots.extend(Slot(day_index, task_id, None) for _ in range(open_counts.get(None, 0)))
    return slots
