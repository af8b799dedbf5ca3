"""Constraint-propagation solver with bounded backtracking.

Each day is solved independently:

1. The maximum-matching ceiling tells how many open slots can be filled at
   all. The gap between open slots and that ceiling is the "skip budget":
   slots the search is allowed to leave empty.
2. When every slot can be filled, forced assignments are made first: a slot
   group with exactly as many candidates as open units must take all of them.
3. The remaining groups are handled most-constrained first (fewest
   candidates), trying the best-scoring candidate first, with an explicit
   choice-point stack instead of recursion. Running out of backtracks or wall
   clock keeps the best partial assignment and marks the result partial.

Because a group holding a scarce skill has few candidates, it is served before
common groups can claim the multi-skilled workers it depends on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from eligibility import check_eligibility
from history_view import HistoryView
from logger import get_logger
from matching_solver import build_day_graph, max_bipartite_matching
from models import ObjectiveWeights
from plan_state import PlanState
from scheduler_builders import PlanningContext
from scoring import score_assignment
from utils import Deadline

logger = get_logger('propagation_solver')

SKIP = -1  # choice: leave one unit of the group empty


@dataclass
class _ChoicePoint:
    group: int
    options: list[int]
    cursor: int = 0
    applied: Optional[int] = None

    def tried(self) -> set[int]:
        """Worker options already explored (and undone) at this point."""
        done = self.options[:self.cursor - 1] if self.applied is not None else self.options[:self.cursor]
        return {w for w in done if w != SKIP}


@dataclass
class DayOutcome:
    day: str
    open_units: int
    ceiling: int
    forced: int = 0
    filled: int = 0
    backtracks: int = 0
    partial: bool = False


@dataclass
class PropagationStats:
    days: list[DayOutcome] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return any(d.partial for d in self.days)

    def to_dict(self) -> dict:
        return {
            "partial": self.partial,
            "forced_assignments": sum(d.forced for d in self.days),
            "backtracks": sum(d.backtracks for d in self.days),
            "open_slots": sum(d.open_units for d in self.days),
            "filled_slots": sum(d.filled for d in self.days),
            "matching_ceiling": sum(d.ceiling for d in self.days),
        }


class _DaySearch:
    """Search state for one day. Works directly on the shared PlanState."""

    def __init__(self, ctx, plan, d, weights, deadline, max_backtracks):
        self.ctx = ctx
        self.plan = plan
        self.d = d
        self.weights = weights
        self.deadline = deadline
        self.max_backtracks = max_backtracks

        self.groups: list[tuple[str, Optional[str]]] = []
        self.need: list[int] = []
        for task_id in ctx.tasks_with_demand(d, coordinator=False):
            for op_type, missing in plan.open_slots(d, task_id).items():
                self.groups.append((task_id, op_type))
                self.need.append(missing)

        self.open_units = sum(self.need)
        slots, workers, adjacency = build_day_graph(ctx, plan, d, coordinator=False)
        self.ceiling = sum(1 for m in max_bipartite_matching(adjacency, len(workers)) if m is not None)
        self.skip_budget = self.open_units - self.ceiling
        self.skips = 0
        self.outcome = DayOutcome(day=ctx.days[d], open_units=self.open_units, ceiling=self.ceiling)

    # -- helpers -------------------------------------------------------

    def candidates(self, g: int) -> list[int]:
        task_id, op_type = self.groups[g]
        return [
            w for w in range(self.ctx.num_workers)
            if check_eligibility(self.ctx, self.plan, w, task_id, self.d,
                                 slot_type=op_type, enforce_capacity=False).ok
        ]

    def survey(self) -> dict[int, list[int]]:
        return {g: self.candidates(g) for g, n in enumerate(self.need) if n > 0}

    def deficit(self, survey: dict[int, list[int]]) -> int:
        """Units that cannot be filled even ignoring worker conflicts."""
        return sum(max(0, self.need[g] - len(c)) for g, c in survey.items())

    def place(self, w: int, g: int) -> None:
        self.plan.assign(w, self.d, self.groups[g][0])
        self.need[g] -= 1

    def apply(self, frame: _ChoicePoint, choice: int) -> None:
        if choice == SKIP:
            self.skips += 1
            self.need[frame.group] -= 1
        else:
            self.place(choice, frame.group)
        frame.applied = choice

    def undo(self, frame: _ChoicePoint) -> None:
        if frame.applied == SKIP:
            self.skips -= 1
        else:
            self.plan.unassign(frame.applied, self.d)
        self.need[frame.group] += 1
        frame.applied = None

    def ordered(self, g: int, workers: list[int]) -> list[int]:
        task_id = self.groups[g][0]
        scored = [
            (-score_assignment(self.ctx, HistoryView(self.plan, w), task_id, self.d, self.weights).score, w)
            for w in workers
        ]
        return [w for _, w in sorted(scored)]

    def open_frame(self, stack: list[_ChoicePoint], survey: dict[int, list[int]]) -> _ChoicePoint:
        # Most constrained group first; declaration order breaks ties
        g = min(survey, key=lambda k: (len(survey[k]), k))
        excluded: set[int] = set()
        for frame in stack:
            if frame.group == g:
                excluded |= frame.tried()
        options = self.ordered(g, [w for w in survey[g] if w not in excluded])
        if self.skips < self.skip_budget:
            options.append(SKIP)
        return _ChoicePoint(group=g, options=options)

    # -- phases --------------------------------------------------------

    def propagate_forced(self) -> None:
        changed = True
        while changed:
            changed = False
            for g, cands in self.survey().items():
                if len(cands) < self.need[g]:
                    return
                if len(cands) == self.need[g]:
                    for w in cands:
                        self.place(w, g)
                        self.outcome.forced += 1
                    changed = True
                    break

    def search(self) -> None:
        stack: list[_ChoicePoint] = []
        best_filled = 0
        best_snapshot: list[tuple[int, str]] = []
        complete = False

        survey = self.survey()
        if not survey:
            complete = True
        else:
            stack.append(self.open_frame(stack, survey))

        while stack:
            if self.deadline.expired():
                self.outcome.partial = True
                break
            frame = stack[-1]
            if frame.applied is not None:
                self.undo(frame)
            if frame.cursor >= len(frame.options):
                stack.pop()
                if stack:
                    # Returning to an earlier choice point
                    self.outcome.backtracks += 1
                    if self.outcome.backtracks > self.max_backtracks:
                        self.outcome.partial = True
                        break
                continue
            choice = frame.options[frame.cursor]
            frame.cursor += 1
            self.apply(frame, choice)

            placed = [(f.applied, self.groups[f.group][0]) for f in stack if f.applied not in (None, SKIP)]
            if len(placed) > best_filled:
                best_filled = len(placed)
                best_snapshot = placed

            survey = self.survey()
            if not survey:
                complete = True
                break
            if self.deficit(survey) > self.skip_budget - self.skips:
                continue
            stack.append(self.open_frame(stack, survey))

        if not complete:
            for frame in reversed(stack):
                if frame.applied is not None:
                    self.undo(frame)
            for w, task_id in best_snapshot:
                self.plan.assign(w, self.d, task_id)

    def run(self) -> DayOutcome:
        if self.open_units == 0:
            return self.outcome
        before = sum(self.plan.filled_slots(self.d, t) for t in self.ctx.tasks_with_demand(self.d, False))
        if self.skip_budget == 0:
            self.propagate_forced()
        self.search()
        after = sum(self.plan.filled_slots(self.d, t) for t in self.ctx.tasks_with_demand(self.d, False))
        self.outcome.filled = after - before
        return self.outcome


def solve_constraint_propagation(
    ctx: PlanningContext,
    plan: PlanState,
    deadline: Optional[Deadline] = None,
    weights: Optional[ObjectiveWeights] = None,
    max_backtracks: Optional[int] = None,
) -> PropagationStats:
    """Fill non-coordinator slots day by day. Mutates `plan`."""
    deadline = deadline or Deadline(ctx.config.timeout_ms)
    if max_backtracks is None:
        max_backtracks = ctx.config.max_backtracks

    stats = PropagationStats()
    for d in range(ctx.num_days):
        outcome = _DaySearch(ctx, plan, d, weights, deadline, max_backtracks).run()
        stats.days.append(outcome)
        if outcome.partial:
            logger.warning(
                f"{outcome.day}: search budget exhausted after {outcome.backtracks} backtrack(s), "
                f"keeping best partial ({outcome.filled}/{outcome.ceiling})"
            )
        else:
            logger.debug(
                f"{outcome.day}: filled {outcome.filled}/{outcome.open_units} "
                f"(ceiling {outcome.ceiling}, forced {outcome.forced}, backtracks {outcome.backtracks})"
            )
    return stats
