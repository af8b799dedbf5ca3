"""History access adapter.

Scoring and soft-rule checks ask questions about one worker's week so far:
what did they do yesterday, how long have they been on this task, which skills
have they used. This module answers them from the day-indexed PlanState grid,
so scoring logic never has to know the grid layout.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from models import Task, Worker
from plan_state import PlanState


@dataclass(frozen=True)
class HistoryView:
    plan: PlanState
    worker_index: int

    @property
    def worker(self) -> Worker:
        return self.plan.ctx.workers[self.worker_index]

    @property
    def row(self) -> list:
        return self.plan.grid[self.worker_index]

    def task_on(self, day_index: int) -> Optional[str]:
        if 0 <= day_index < len(self.row):
            return self.row[day_index]
        return None

    def iter_assignments(self, exclude_day: Optional[int] = None) -> Iterator[Tuple[int, Task]]:
        tasks = self.plan.ctx.tasks
        for d, task_id in enumerate(self.row):
            if task_id is None or d == exclude_day:
                continue
            yield d, tasks[task_id]

    def previous_task(self, day_index: int) -> Optional[str]:
        """Task on the directly preceding weekday, if that day is in the plan."""
        if self.plan.ctx.consecutive(day_index - 1, day_index):
            return self.row[day_index - 1]
        return None

    def next_task(self, day_index: int) -> Optional[str]:
        if self.plan.ctx.consecutive(day_index, day_index + 1):
            return self.row[day_index + 1]
        return None

    def adjacent_tasks(self, day_index: int) -> list[str]:
        return [t for t in (self.previous_task(day_index), self.next_task(day_index)) if t is not None]

    def consecutive_run(self, task_id: str, day_index: int) -> int:
        """How many directly preceding days this worker spent on `task_id`."""
        run = 0
        d = day_index
        while self.plan.ctx.consecutive(d - 1, d) and self.row[d - 1] == task_id:
            run += 1
            d -= 1
        return run

    def skill_use_counts(self, exclude_day: Optional[int] = None) -> Counter:
        return Counter(task.required_skill for _, task in self.iter_assignments(exclude_day))

    def task_ids(self, exclude_day: Optional[int] = None) -> list[str]:
        return [task.id for _, task in self.iter_assignments(exclude_day)]

    def workload(self) -> int:
        return self.plan.workloads[self.worker_index]

    def heavy_count(self) -> int:
        return self.plan.heavy_counts[self.worker_index]

    def neighbour_is_heavy(self, day_index: int) -> bool:
        tasks = self.plan.ctx.tasks
        return any(tasks[t].heavy for t in self.adjacent_tasks(day_index))
