"""Initial-schedule strategies.

Every strategy fills coordinator-only tasks with the rotation solver first and
then staffs the remaining tasks its own way. Coordinators and the other
operator types never share a task, so the two halves are independent.
"""

from __future__ import annotations

from typing import Optional

from constants import CONSTRAINT_PROPAGATION, GREEDY, MAX_MATCHING
from coordinator_solver import solve_coordinator_rotation
from greedy_solver import build_greedy_schedule, fill_idle_cells
from logger import get_logger
from matching_solver import solve_max_matching
from models import ObjectiveWeights
from plan_state import PlanState
from propagation_solver import solve_constraint_propagation
from scheduler_builders import PlanningContext
from utils import Deadline

logger = get_logger('strategies')


class InitialScheduleStrategy:
    """Produces a first complete plan from the protected cells in `plan`."""

    name = ''

    def produce_initial_schedule(
        self,
        ctx: PlanningContext,
        plan: PlanState,
        rng,
        weights: Optional[ObjectiveWeights] = None,
        deadline: Optional[Deadline] = None,
    ) -> tuple[PlanState, dict]:
        """Return a new plan and solver statistics. `plan` is left untouched."""
        schedule = plan.copy()
        stats = dict(solve_coordinator_rotation(ctx, schedule, rng))
        stats.update(self.staff_tasks(ctx, schedule, rng, weights, deadline or Deadline(ctx.config.timeout_ms)))
        stats.setdefault("partial", False)
        return schedule, stats

    def staff_tasks(self, ctx, plan, rng, weights, deadline) -> dict:
        raise NotImplementedError


class GreedyStrategy(InitialScheduleStrategy):
    name = GREEDY

    def staff_tasks(self, ctx, plan, rng, weights, deadline) -> dict:
        return build_greedy_schedule(ctx, plan, rng, weights)


class ConstraintPropagationStrategy(InitialScheduleStrategy):
    name = CONSTRAINT_PROPAGATION

    def staff_tasks(self, ctx, plan, rng, weights, deadline) -> dict:
        stats = solve_constraint_propagation(ctx, plan, deadline=deadline, weights=weights).to_dict()
        if ctx.config.fill_idle_cells:
            stats["idle_cells_filled"] = sum(
                fill_idle_cells(ctx, plan, d, rng, weights) for d in range(ctx.num_days)
            )
        return stats


class MaxMatchingStrategy(InitialScheduleStrategy):
    """Maximum slot count per day. Ignores scoring weights entirely."""

    name = MAX_MATCHING

    def staff_tasks(self, ctx, plan, rng, weights, deadline) -> dict:
        return solve_max_matching(ctx, plan, coordinator=False)


STRATEGIES: dict[str, InitialScheduleStrategy] = {
    strategy.name: strategy
    for strategy in (GreedyStrategy(), ConstraintPropagationStrategy(), MaxMatchingStrategy())
}


def get_strategy(name: str) -> InitialScheduleStrategy:
    try:
        return STRATEGIES[name]
    except KeyError:
        raise ValueError(f"Unknown initial algorithm '{name}'. Choose from: {', '.join(STRATEGIES)}") from None
