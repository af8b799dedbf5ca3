"""Weekly planning entry point.

`plan_week` validates a request, builds the planning context and dispatches to
the configured algorithm:

- greedy / constraint_propagation / max_matching: an initial strategy
- tabu: the configured initial strategy, refined with tabu search
- pareto: several initial plans under varied weights, best one gap-filled
- gap_fill: the gap filler on top of the caller's current assignments

Every call is independent: nothing survives between calls and all randomness
comes from the request's seed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from constants import GAP_FILL, PARETO, TABU
from gap_filler import fill_gaps
from logger import PerformanceTracker, get_logger
from models import ScheduleResult
from pareto import build_pareto_front
from plan_state import PlanState
from schedule_checks import assert_plan_invariants, collect_warnings
from scheduler_builders import PlanningContext, build_planning_context
from scheduler_config import ScheduleRequest
from strategies import get_strategy
from tabu_refiner import refine_with_tabu
from utils import Deadline, make_rng
from validation import validate_request

logger = get_logger('scheduling_engine')


@dataclass
class PlanOutcome:
    """Result of one planning call, with the extras of the chosen algorithm."""
    result: ScheduleResult
    candidates: Optional[list[dict]] = None    # pareto
    tabu: Optional[dict] = None                # tabu
    unfillable: Optional[list[dict]] = None    # gap_fill and pareto
    gap_fill_stats: Optional[dict] = None
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return self.result.partial

    def to_dict(self) -> dict:
        data = self.result.to_dict()
        if self.candidates is not None:
            data["candidates"] = self.candidates
        if self.tabu is not None:
            data["initial_score"] = self.tabu["initial_score"]
            data["final_score"] = self.tabu["final_score"]
            data["iterations_run"] = self.tabu["iterations_run"]
        if self.unfillable is not None:
            data["unfillable"] = self.unfillable
            data["stats"] = self.gap_fill_stats
        return data


def _seed_plan(ctx: PlanningContext, request: ScheduleRequest) -> tuple[PlanState, dict]:
    """Starting plan and the cells no solver may change."""
    if request.config.algorithm == GAP_FILL:
        plan = PlanState.from_cells(ctx, request.current_assignments)
        baseline = {
            (w, d): plan.task_at(w, d)
            for w in range(ctx.num_workers)
            for d in range(ctx.num_days)
            if plan.is_frozen(w, d) or not plan.is_idle(w, d)
        }
        return plan, baseline
    plan = PlanState.from_cells(ctx, request.current_assignments, frozen_only=True)
    return plan, plan.frozen_snapshot()


def _run_initial(ctx, plan, algorithm, rng):
    strategy = get_strategy(algorithm)
    return strategy.produce_initial_schedule(ctx, plan, rng, ctx.config.weights, Deadline(ctx.config.timeout_ms))


def plan_week(request: ScheduleRequest) -> PlanOutcome:
    """Produce a weekly plan for `request`.

    Raises:
        ValidationError: the request is malformed. Nothing has been solved.
        InvariantViolation: a solver broke a hard rule (a defect, never data).
    """
    tracker = PerformanceTracker(logger)
    config = request.config

    with tracker.track("validate"):
        validate_request(request)
    with tracker.track("build_context"):
        ctx = build_planning_context(request)
        plan, baseline = _seed_plan(ctx, request)

    algorithm = config.algorithm
    rng = make_rng(config.seed)
    logger.info(
        f"Planning {len(ctx.days)} day(s) for {ctx.num_workers} worker(s) and "
        f"{len(ctx.in_scope)} task(s) with '{algorithm}' (seed {config.seed})"
    )

    outcome_extras: dict[str, Any] = {}
    with tracker.track(algorithm):
        if algorithm == TABU:
            initial, stats = _run_initial(ctx, plan, config.initial_algorithm, rng)
            refined = refine_with_tabu(ctx, initial, rng)
            schedule = refined.schedule
            partial = stats["partial"] or refined.partial
            stats.update(refined.to_dict())
            outcome_extras["tabu"] = refined.to_dict()
        elif algorithm == PARETO:
            front = build_pareto_front(ctx, plan)
            schedule = front.schedule
            partial = front.partial
            stats = {
                "candidates_generated": front.generated,
                "candidates_unique": front.unique,
                "front_size": len(front.front),
                **front.gap_fill.stats,
            }
            outcome_extras["candidates"] = [
                {"schedule": [cell.to_dict() for cell in c.plan.to_cells()], **c.to_dict()}
                for c in front.front
            ]
            outcome_extras["unfillable"] = [u.to_dict() for u in front.gap_fill.unfillable]
            outcome_extras["gap_fill_stats"] = front.gap_fill.stats
        elif algorithm == GAP_FILL:
            filled = fill_gaps(ctx, plan)
            schedule = filled.schedule
            partial = False
            stats = dict(filled.stats)
            outcome_extras["unfillable"] = [u.to_dict() for u in filled.unfillable]
            outcome_extras["gap_fill_stats"] = filled.stats
            stats["assignments_made"] = [a.to_dict() for a in filled.assignments]
        else:
            schedule, stats = _run_initial(ctx, plan, algorithm, rng)
            partial = stats["partial"]

    if config.check_invariants:
        with tracker.track("invariants"):
            assert_plan_invariants(ctx, schedule, baseline)

    with tracker.track("warnings"):
        warnings = collect_warnings(ctx, schedule)

    stats["timings_ms"] = tracker.summary()
    stats["filled_slots"] = schedule.total_filled()
    stats["demanded_slots"] = schedule.total_demand()
    tracker.report(f"plan_week ({algorithm})")

    result = schedule.to_result(algorithm, warnings, partial, stats)
    logger.info(
        f"📊 {algorithm}: {stats['filled_slots']}/{stats['demanded_slots']} slot(s) filled, "
        f"{len(warnings)} warning(s){' (partial)' if partial else ''}"
    )
    return PlanOutcome(result=result, stats=stats, **outcome_extras)
