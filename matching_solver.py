"""Maximum bipartite matching between free workers and open slots.

Per day the open headcount is expanded into unit slots and every free worker
is connected to the slots it could legally fill. Kuhn's augmenting-path
algorithm then yields the maximum number of slots that can be filled that day.
The result only depends on the eligibility graph: scoring weights and seeds
play no part.
"""

from __future__ import annotations

from typing import Optional

from eligibility import check_eligibility
from logger import get_logger
from plan_state import PlanState
from scheduler_builders import PlanningContext, Slot, expand_slots

logger = get_logger('matching_solver')


def _augment(adjacency: list[list[int]], match_right: list[Optional[int]], root: int) -> bool:
    """Look for an augmenting path from left node `root` and flip it if found.

    Depth-first over an explicit stack of [left node, next edge] frames;
    path[i] is the right node that links frame i to frame i + 1.
    """
    visited: set[int] = set()
    stack = [[root, 0]]
    path: list[int] = []
    while stack:
        frame = stack[-1]
        u, i = frame
        edges = adjacency[u]
        while i < len(edges) and edges[i] in visited:
            i += 1
        if i == len(edges):
            stack.pop()
            if path:
                path.pop()
            continue
        v = edges[i]
        frame[1] = i + 1
        visited.add(v)
        path.append(v)
        if match_right[v] is None:
            for (left, _), right in zip(stack, path):
                match_right[right] = left
            return True
        stack.append([match_right[v], 0])
    return False


def max_bipartite_matching(adjacency: list[list[int]], num_right: int) -> list[Optional[int]]:
    """Return, for each left node, the matched right node (or None).

    Left nodes are tried in index order and their edges in list order, so the
    matching is deterministic for a given graph.
    """
    match_right: list[Optional[int]] = [None] * num_right
    for u in range(len(adjacency)):
        _augment(adjacency, match_right, u)

    match_left: list[Optional[int]] = [None] * len(adjacency)
    for v, u in enumerate(match_right):
        if u is not None:
            match_left[u] = v
    return match_left


def free_workers(ctx: PlanningContext, plan: PlanState, d: int) -> list[int]:
    return [w for w in range(ctx.num_workers) if plan.is_idle(w, d) and not plan.is_frozen(w, d)]


def open_day_slots(ctx: PlanningContext, plan: PlanState, d: int, coordinator: Optional[bool] = None) -> list[Slot]:
    slots: list[Slot] = []
    for task_id in ctx.tasks_with_demand(d, coordinator):
        slots.extend(expand_slots(d, task_id, plan.open_slots(d, task_id)))
    return slots


def build_day_graph(ctx: PlanningContext, plan: PlanState, d: int, coordinator: Optional[bool] = None):
    """Return (slots, workers, adjacency) with adjacency[slot] -> worker positions."""
    slots = open_day_slots(ctx, plan, d, coordinator)
    workers = free_workers(ctx, plan, d)
    adjacency = [
        [
            j for j, w in enumerate(workers)
            if check_eligibility(ctx, plan, w, slot.task_id, d,
                                 slot_type=slot.operator_type, enforce_capacity=False).ok
        ]
        for slot in slots
    ]
    return slots, workers, adjacency


def max_filled_slots(ctx: PlanningContext, plan: PlanState, d: int, coordinator: Optional[bool] = None) -> int:
    """Ceiling on filled slots for day `d`, given the cells already placed."""
    already = sum(plan.filled_slots(d, t) for t in ctx.tasks_with_demand(d, coordinator))
    slots, workers, adjacency = build_day_graph(ctx, plan, d, coordinator)
    matched = max_bipartite_matching(adjacency, len(workers))
    return already + sum(1 for m in matched if m is not None)


def solve_max_matching(ctx: PlanningContext, plan: PlanState, coordinator: Optional[bool] = False) -> dict:
    """Fill every day with a maximum matching. Mutates `plan`."""
    filled = 0
    open_total = 0
    for d in range(ctx.num_days):
        slots, workers, adjacency = build_day_graph(ctx, plan, d, coordinator)
        matched = max_bipartite_matching(adjacency, len(workers))
        open_total += len(slots)
        for slot, j in zip(slots, matched):
            if j is None:
                continue
            plan.assign(workers[j], d, slot.task_id)
            filled += 1
        logger.debug(f"{ctx.days[d]}: matched {sum(m is not None for m in matched)}/{len(slots)} open slots")

    logger.info(f"Max matching filled {filled}/{open_total} open slots")
    return {"open_slots": open_total, "matched_slots": filled}
