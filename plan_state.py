"""Mutable working grid shared by the solvers of one planning call.

The grid is a fixed-size worker x day array (None = idle), so "same day" and
"consecutive day" lookups are plain index arithmetic. Per-day, per-task,
per-operator-type headcounts and per-worker workloads are kept in step with
every assign/unassign so that capacity queries stay O(types).
"""

from __future__ import annotations

from typing import Iterable, Optional

from models import AssignmentCell, ScheduleResult
from scheduler_builders import PlanningContext


class PlanState:
    def __init__(self, ctx: PlanningContext):
        self.ctx = ctx
        n_workers, n_days = ctx.num_workers, ctx.num_days
        self.grid: list[list[Optional[str]]] = [[None] * n_days for _ in range(n_workers)]
        self.locked = [[False] * n_days for _ in range(n_workers)]
        self.pinned = [[False] * n_days for _ in range(n_workers)]
        # type_counts[day][task_id][operator_type] -> assigned workers
        self.type_counts: list[dict[str, dict[str, int]]] = [{} for _ in range(n_days)]
        self.workloads = [0] * n_workers
        self.heavy_counts = [0] * n_workers

    @classmethod
    def from_cells(cls, ctx: PlanningContext, cells: Iterable[AssignmentCell], frozen_only: bool = False) -> "PlanState":
        """Seed a plan from caller-supplied cells.

        With frozen_only=True, unlocked and unpinned cells are dropped so the
        solver starts from a clean grid around the protected cells.
        """
        plan = cls(ctx)
        day_index = {day: i for i, day in enumerate(ctx.days)}
        for cell in cells:
            if frozen_only and not cell.frozen:
                continue
            w = ctx.worker_index[cell.worker_id]
            d = day_index[cell.day]
            plan.locked[w][d] = cell.locked
            plan.pinned[w][d] = cell.pinned
            if cell.task_id is not None:
                plan.assign(w, d, cell.task_id)
        return plan

    def copy(self) -> "PlanState":
        clone = PlanState.__new__(PlanState)
        clone.ctx = self.ctx
        clone.grid = [row[:] for row in self.grid]
        clone.locked = self.locked  # never mutated after seeding
        clone.pinned = self.pinned
        clone.type_counts = [
            {task_id: dict(counts) for task_id, counts in day.items()}
            for day in self.type_counts
        ]
        clone.workloads = self.workloads[:]
        clone.heavy_counts = self.heavy_counts[:]
        return clone

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def task_at(self, w: int, d: int) -> Optional[str]:
        return self.grid[w][d]

    def is_frozen(self, w: int, d: int) -> bool:
        return self.locked[w][d] or self.pinned[w][d]

    def is_idle(self, w: int, d: int) -> bool:
        return self.grid[w][d] is None

    def assign(self, w: int, d: int, task_id: Optional[str]) -> Optional[str]:
        """Set the cell and return its previous value."""
        previous = self.grid[w][d]
        if previous == task_id:
            return previous
        if previous is not None:
            self._count(w, d, previous, -1)
        self.grid[w][d] = task_id
        if task_id is not None:
            self._count(w, d, task_id, 1)
        return previous

    def unassign(self, w: int, d: int) -> Optional[str]:
        return self.assign(w, d, None)

    def _count(self, w: int, d: int, task_id: str, delta: int) -> None:
        op_type = self.ctx.workers[w].operator_type
        counts = self.type_counts[d].setdefault(task_id, {})
        counts[op_type] = counts.get(op_type, 0) + delta
        self.workloads[w] += delta
        if self.ctx.tasks[task_id].heavy:
            self.heavy_counts[w] += delta

    # ------------------------------------------------------------------
    # Staffing queries
    # ------------------------------------------------------------------

    def assigned_by_type(self, d: int, task_id: str) -> dict[str, int]:
        return {t: n for t, n in self.type_counts[d].get(task_id, {}).items() if n > 0}

    def headcount(self, d: int, task_id: str) -> int:
        return sum(self.type_counts[d].get(task_id, {}).values())

    def workers_on(self, d: int, task_id: str) -> list[int]:
        return [w for w in range(self.ctx.num_workers) if self.grid[w][d] == task_id]

    def _allocation(self, d: int, task_id: str) -> tuple[int, int, dict]:
        """(typed units filled, untyped units filled, demand).

        Workers fill their own typed units first; anyone left over (including
        types the demand does not name) spills into the untyped units.
        """
        demand = self.ctx.demand_for(d, task_id)
        counts = self.type_counts[d].get(task_id, {})
        typed = 0
        overflow = 0
        for op_type, n in counts.items():
            wanted = demand.get(op_type, 0)
            typed += min(n, wanted)
            overflow += max(0, n - wanted)
        untyped = min(demand.get(None, 0), overflow)
        return typed, untyped, demand

    def filled_slots(self, d: int, task_id: Optional[str] = None) -> int:
        if task_id is None:
            return sum(self.filled_slots(d, t) for t in self.ctx.demand[d])
        typed, untyped, _ = self._allocation(d, task_id)
        return typed + untyped

    def open_slots(self, d: int, task_id: str) -> dict:
        """Missing headcount per operator type (None = any), zero entries dropped."""
        demand = self.ctx.demand_for(d, task_id)
        counts = self.type_counts[d].get(task_id, {})
        missing = {}
        overflow = 0
        for op_type, n in counts.items():
            overflow += max(0, n - demand.get(op_type, 0))
        for op_type, wanted in demand.items():
            if op_type is None:
                gap = wanted - min(wanted, overflow)
            else:
                gap = wanted - min(wanted, counts.get(op_type, 0))
            if gap > 0:
                missing[op_type] = gap
        return missing

    def missing(self, d: int, task_id: Optional[str] = None) -> int:
        if task_id is None:
            return sum(self.missing(d, t) for t in self.ctx.demand[d])
        return sum(self.open_slots(d, task_id).values())

    def type_allowed(self, d: int, task_id: str, op_type: str) -> bool:
        demand = self.ctx.demand_for(d, task_id)
        return op_type in demand or None in demand

    def has_room(self, d: int, task_id: str, op_type: str) -> bool:
        open_counts = self.open_slots(d, task_id)
        return open_counts.get(op_type, 0) > 0 or open_counts.get(None, 0) > 0

    def total_filled(self) -> int:
        return sum(self.filled_slots(d) for d in range(self.ctx.num_days))

    def total_demand(self) -> int:
        return sum(self.ctx.total_demand(d) for d in range(self.ctx.num_days))

    def total_missing(self) -> int:
        return sum(self.missing(d) for d in range(self.ctx.num_days))

    # ------------------------------------------------------------------
    # Worker queries
    # ------------------------------------------------------------------

    def average_workload(self) -> float:
        active = [self.workloads[w] for w, worker in enumerate(self.ctx.workers) if worker.is_active]
        return sum(active) / len(active) if active else 0.0

    def average_heavy(self) -> float:
        active = [self.heavy_counts[w] for w, worker in enumerate(self.ctx.workers) if worker.is_active]
        return sum(active) / len(active) if active else 0.0

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def signature(self) -> tuple:
        return tuple(tuple(row) for row in self.grid)

    def frozen_snapshot(self) -> dict[tuple[int, int], Optional[str]]:
        return {
            (w, d): self.grid[w][d]
            for w in range(self.ctx.num_workers)
            for d in range(self.ctx.num_days)
            if self.is_frozen(w, d)
        }

    def to_cells(self) -> list[AssignmentCell]:
        cells = []
        for d, day in enumerate(self.ctx.days):
            for w, worker in enumerate(self.ctx.workers):
                cells.append(AssignmentCell(
                    worker_id=worker.id,
                    day=day,
                    task_id=self.grid[w][d],
                    locked=self.locked[w][d],
                    pinned=self.pinned[w][d],
                ))
        return cells

    def to_result(self, algorithm: str, warnings=None, partial: bool = False, stats=None) -> ScheduleResult:
        return ScheduleResult(
            assignments=self.to_cells(),
            warnings=list(warnings or []),
            partial=partial,
            algorithm=algorithm,
            stats=dict(stats or {}),
        )
