"""Coordinator rotation solver.

Coordinator-only tasks and Coordinator workers form a small closed world. Per
day we list every coordinator -> task mapping that fills the maximum possible
number of coordinator slots (sampling when the space is too large), then pick
the combination of daily mappings that rotates each coordinator through the
tasks as evenly as possible over the week.
"""

from __future__ import annotations

import itertools
import math
from collections import Counter

from constants import (
    COORDINATOR,
    COORDINATOR_REPEAT_PENALTY,
    COORDINATOR_SAMPLE_ATTEMPTS,
    COORDINATOR_SPREAD_PENALTY,
    COORDINATOR_VARIETY_BONUS,
    MAX_DAILY_PERMUTATIONS,
    MAX_WEEK_COMBINATIONS,
)
from eligibility import check_eligibility, could_ever_work
from logger import get_logger
from matching_solver import build_day_graph, max_bipartite_matching
from plan_state import PlanState
from scheduler_builders import PlanningContext

logger = get_logger('coordinator_solver')

# A day option is a sorted tuple of (worker index, task id) pairs
DayOption = tuple


def _coordinator_capacity(plan: PlanState, d: int, task_id: str) -> int:
    open_counts = plan.open_slots(d, task_id)
    return open_counts.get(COORDINATOR, 0) + open_counts.get(None, 0)


def _eligible_tasks(ctx, plan, w, d, tasks, capacity) -> list[str]:
    return [
        t for t in tasks
        if capacity[t] > 0
        and plan.type_allowed(d, t, COORDINATOR)
        and check_eligibility(ctx, plan, w, t, d, enforce_capacity=False).ok
    ]


def _matching_option(ctx, plan, d) -> tuple[int, DayOption]:
    slots, workers, adjacency = build_day_graph(ctx, plan, d, coordinator=True)
    matched = max_bipartite_matching(adjacency, len(workers))
    pairs = tuple(sorted((workers[j], slot.task_id) for slot, j in zip(slots, matched) if j is not None))
    return len(pairs), pairs


def _enumerate_options(free, eligible, capacity, target) -> list[DayOption]:
    options = []
    choices = [eligible[w] + [None] for w in free]
    for combo in itertools.product(*choices):
        used = Counter(t for t in combo if t is not None)
        if sum(used.values()) != target:
            continue
        if any(n > capacity[t] for t, n in used.items()):
            continue
        options.append(tuple((w, t) for w, t in zip(free, combo) if t is not None))
    return options


def _sample_options(free, eligible, capacity, target, baseline, rng) -> list[DayOption]:
    seen = {baseline}
    options = [baseline]
    for _ in range(COORDINATOR_SAMPLE_ATTEMPTS):
        if len(options) >= MAX_DAILY_PERMUTATIONS:
            break
        order = list(free)
        rng.shuffle(order)
        remaining = dict(capacity)
        pairs = []
        for w in order:
            open_tasks = [t for t in eligible[w] if remaining[t] > 0]
            if not open_tasks:
                continue
            t = rng.choice(open_tasks)
            remaining[t] -= 1
            pairs.append((w, t))
        option = tuple(sorted(pairs))
        if len(option) == target and option not in seen:
            seen.add(option)
            options.append(option)
    return options


def day_options(ctx: PlanningContext, plan: PlanState, d: int, rng) -> tuple[list[DayOption], bool]:
    """All maximum-cardinality coordinator mappings for day `d`.

    Returns (options, sampled). Options are never empty; a day with nothing to
    do yields the single empty mapping.
    """
    tasks = ctx.tasks_with_demand(d, coordinator=True)
    free = [
        w for w, worker in enumerate(ctx.workers)
        if worker.is_coordinator and plan.is_idle(w, d) and not plan.is_frozen(w, d)
        and worker.can_work(ctx.days[d])
    ]
    if not tasks or not free:
        return [()], False

    capacity = {t: _coordinator_capacity(plan, d, t) for t in tasks}
    eligible = {w: _eligible_tasks(ctx, plan, w, d, tasks, capacity) for w in free}
    target, baseline = _matching_option(ctx, plan, d)
    if target == 0:
        return [()], False

    space = math.prod(len(eligible[w]) + 1 for w in free)
    if space <= MAX_DAILY_PERMUTATIONS:
        return _enumerate_options(free, eligible, capacity, target), False
    logger.debug(f"{ctx.days[d]}: {space} coordinator mappings, sampling")
    return _sample_options(free, eligible, capacity, target, baseline, rng), True


def qualified_tasks(ctx: PlanningContext) -> dict[int, list[str]]:
    """Coordinator-only tasks each coordinator could work on some day of the week."""
    return {
        w: [
            t for t in ctx.scoped_tasks(coordinator=True)
            if any(could_ever_work(ctx, w, t, d) for d in range(ctx.num_days))
        ]
        for w, worker in enumerate(ctx.workers) if worker.is_coordinator
    }


def week_score(ctx: PlanningContext, plan: PlanState, chosen: dict[int, DayOption], qualified=None) -> int:
    """Rotation quality of the plan's coordinator rows overlaid with `chosen`."""
    if qualified is None:
        qualified = qualified_tasks(ctx)
    coordinators = [w for w, worker in enumerate(ctx.workers) if worker.is_coordinator]
    rows = {w: list(plan.grid[w]) for w in coordinators}
    for d, option in chosen.items():
        for w, task_id in option:
            rows[w][d] = task_id

    total = 0
    for w in coordinators:
        row = rows[w]
        repeats = sum(
            1 for d in range(1, ctx.num_days)
            if row[d] is not None and row[d] == row[d - 1] and ctx.consecutive(d - 1, d)
        )
        counts = Counter(t for t in row if t is not None)
        spread = 0
        if counts and len(qualified[w]) > 1:
            per_task = [counts.get(t, 0) for t in qualified[w]]
            spread = max(per_task) - min(per_task)
        total -= COORDINATOR_REPEAT_PENALTY * repeats
        total -= COORDINATOR_SPREAD_PENALTY * spread
        total += COORDINATOR_VARIETY_BONUS * len(counts)
    return total


def solve_coordinator_rotation(ctx: PlanningContext, plan: PlanState, rng) -> dict:
    """Assign coordinator-only tasks for the whole week. Mutates `plan`."""
    options_by_day = [day_options(ctx, plan, d, rng) for d in range(ctx.num_days)]
    options = [opts for opts, _ in options_by_day]
    sampled_days = [ctx.days[d] for d, (_, sampled) in enumerate(options_by_day) if sampled]

    combinations = math.prod(len(o) for o in options)
    qualified = qualified_tasks(ctx)
    chosen: dict[int, DayOption] = {}
    if combinations <= MAX_WEEK_COMBINATIONS:
        best_score = None
        for combo in itertools.product(*options):
            candidate = dict(enumerate(combo))
            s = week_score(ctx, plan, candidate, qualified)
            # Strictly greater keeps the first best in enumeration order
            if best_score is None or s > best_score:
                best_score = s
                chosen = candidate
        search = 'exhaustive'
    else:
        for d, day_opts in enumerate(options):
            best_option = day_opts[0]
            best_score = None
            for option in day_opts:
                s = week_score(ctx, plan, {**chosen, d: option}, qualified)
                if best_score is None or s > best_score:
                    best_score = s
                    best_option = option
            chosen[d] = best_option
        search = 'day_by_day'

    assigned = 0
    for d, option in chosen.items():
        for w, task_id in option:
            plan.assign(w, d, task_id)
            assigned += 1

    if assigned:
        logger.info(f"Coordinator rotation: {assigned} assignment(s), {combinations} combination(s), {search}")
    return {
        "coordinator_assignments": assigned,
        "coordinator_combinations": combinations,
        "coordinator_search": search,
        "coordinator_sampled_days": sampled_days,
    }
