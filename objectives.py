"""Schedule-level objective calculators.

These functions rate a whole weekly plan on the named soft objectives. Each
raw value is normalised to 0..100 (higher is better) so that objectives can be
weighted together, compared for Pareto dominance and explained to a user.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from constants import (
    FAIRNESS_STDDEV_SCALE,
    HEAVY_PAIR_PENALTY,
    OBJECTIVE_NAMES,
    VARIETY_MAX_UNIQUE,
    WORKLOAD_RANGE_SCALE,
)
from logger import get_logger
from models import ObjectiveWeights
from plan_state import PlanState
from scheduler_builders import PlanningContext
from utils import clamp, mean, pstdev

logger = get_logger('objectives')


@dataclass
class ObjectiveScores:
    # Raw values
    fairness: float = 0.0            # stddev of assignments per worker
    workload_balance: float = 0.0    # max - min assignments per worker
    skill_match: float = 100.0       # % of assignments whose worker holds the skill
    variety: float = 0.0             # average unique tasks per working worker
    heavy_task_spacing: float = 0.0  # heavy tasks on consecutive days, summed over workers
    coverage: float = 100.0          # % of demanded slots filled
    normalized: dict[str, float] = field(default_factory=dict)
    total_score: float = 0.0

    def vector(self) -> tuple[float, ...]:
        """Higher-is-better vector used for dominance: objectives then coverage."""
        return tuple(self.normalized[name] for name in OBJECTIVE_NAMES) + (self.coverage,)

    def to_dict(self) -> dict:
        return {
            "fairness": round(self.fairness, 4),
            "workload_balance": round(self.workload_balance, 4),
            "skill_match": round(self.skill_match, 4),
            "variety": round(self.variety, 4),
            "heavy_task_spacing": round(self.heavy_task_spacing, 4),
            "coverage": round(self.coverage, 4),
            "normalized": {k: round(v, 4) for k, v in self.normalized.items()},
            "total_score": round(self.total_score, 4),
        }


def _worker_rows(ctx: PlanningContext, plan: PlanState):
    """Rows of active workers; inactive workers are not part of fairness."""
    return [(w, plan.grid[w]) for w, worker in enumerate(ctx.workers) if worker.is_active]


def calculate_fairness(ctx, plan) -> float:
    return pstdev(plan.workloads[w] for w, _ in _worker_rows(ctx, plan))


def calculate_workload_balance(ctx, plan) -> float:
    loads = [plan.workloads[w] for w, _ in _worker_rows(ctx, plan)]
    return float(max(loads) - min(loads)) if loads else 0.0


def calculate_skill_match(ctx, plan) -> float:
    total = 0
    matched = 0
    for w, row in enumerate(plan.grid):
        skills = ctx.workers[w].skills
        for task_id in row:
            if task_id is None:
                continue
            total += 1
            if ctx.tasks[task_id].required_skill in skills:
                matched += 1
    return 100.0 if total == 0 else matched / total * 100.0


def calculate_variety(ctx, plan) -> float:
    per_worker = [len({t for t in row if t is not None}) for _, row in _worker_rows(ctx, plan)]
    working = [n for n in per_worker if n > 0]
    return mean(working)


def calculate_heavy_pairs(ctx, plan) -> int:
    pairs = 0
    for row in plan.grid:
        for d in range(1, ctx.num_days):
            prev_task, task_id = row[d - 1], row[d]
            if prev_task is None or task_id is None or not ctx.consecutive(d - 1, d):
                continue
            if ctx.tasks[prev_task].heavy and ctx.tasks[task_id].heavy:
                pairs += 1
    return pairs


def calculate_coverage(ctx, plan) -> float:
    demand = plan.total_demand()
    if demand == 0:
        return 100.0
    return plan.total_filled() / demand * 100.0


def normalize(raw: dict) -> dict[str, float]:
    return {
        'fairness': clamp(100.0 - raw['fairness'] / FAIRNESS_STDDEV_SCALE * 100.0),
        'workload_balance': clamp(100.0 - raw['workload_balance'] / WORKLOAD_RANGE_SCALE * 100.0),
        'skill_match': clamp(raw['skill_match']),
        'variety': clamp((raw['variety'] - 1.0) / (VARIETY_MAX_UNIQUE - 1.0) * 100.0),
        'heavy_task_spacing': clamp(100.0 - raw['heavy_task_spacing'] * HEAVY_PAIR_PENALTY),
    }


def calculate_objectives(
    ctx: PlanningContext,
    plan: PlanState,
    weights: Optional[ObjectiveWeights] = None,
) -> ObjectiveScores:
    """Score a whole plan.

    total_score is the weight-averaged normalised objectives scaled by
    coverage, so a plan never scores higher by leaving demanded slots open.
    """
    weights = weights or ctx.config.weights
    raw = {
        'fairness': calculate_fairness(ctx, plan),
        'workload_balance': calculate_workload_balance(ctx, plan),
        'skill_match': calculate_skill_match(ctx, plan),
        'variety': calculate_variety(ctx, plan),
        'heavy_task_spacing': float(calculate_heavy_pairs(ctx, plan)),
    }
    normalized = normalize(raw)
    coverage = calculate_coverage(ctx, plan)

    weight_map = weights.as_dict()
    weight_total = sum(weight_map.values()) or 1.0
    weighted = sum(normalized[name] * weight_map[name] for name in OBJECTIVE_NAMES) / weight_total
    total = weighted * coverage / 100.0

    return ObjectiveScores(
        coverage=coverage,
        normalized=normalized,
        total_score=total,
        **raw,
    )


def dominates(a: ObjectiveScores, b: ObjectiveScores) -> bool:
    """A dominates B: at least as good everywhere and strictly better somewhere."""
    va, vb = a.vector(), b.vector()
    return all(x >= y for x, y in zip(va, vb)) and any(x > y for x, y in zip(va, vb))


def explain_objectives(scores: ObjectiveScores) -> list[str]:
    """Human-readable one-liners for a score breakdown."""
    lines = [
        f"Coverage: {scores.coverage:.1f}% of demanded slots filled",
        f"Fairness: workload stddev {scores.fairness:.2f} ({scores.normalized['fairness']:.0f}/100)",
        f"Workload balance: spread {scores.workload_balance:.0f} "
        f"({scores.normalized['workload_balance']:.0f}/100)",
        f"Skill match: {scores.skill_match:.1f}%",
        f"Variety: {scores.variety:.2f} unique tasks per worker ({scores.normalized['variety']:.0f}/100)",
        f"Heavy-task spacing: {scores.heavy_task_spacing:.0f} consecutive heavy pair(s) "
        f"({scores.normalized['heavy_task_spacing']:.0f}/100)",
        f"Total score: {scores.total_score:.2f}",
    ]
    return lines
