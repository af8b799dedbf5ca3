"""Pareto front builder.

Candidates come from re-running the initial strategy under different weight
vectors and seeds: the configured weights first, then one preset emphasising
each objective, then seeded random weight samples. Identical plans are
collapsed, dominated plans are dropped and the best remaining plan is passed
through the gap filler.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

from constants import OBJECTIVE_NAMES
from gap_filler import GapFillResult, fill_gaps
from logger import get_logger, timed
from models import ObjectiveWeights
from objectives import ObjectiveScores, calculate_objectives, dominates
from plan_state import PlanState
from scheduler_builders import PlanningContext
from strategies import get_strategy
from utils import Deadline, make_rng

logger = get_logger('pareto')

EMPHASIS_SHARE = 0.6


@dataclass
class ParetoCandidate:
    plan: PlanState
    weights: ObjectiveWeights
    seed: int
    scores: ObjectiveScores
    label: str = ''

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "seed": self.seed,
            "weights": self.weights.to_dict(),
            "score_vector": self.scores.to_dict(),
        }


@dataclass
class ParetoOutcome:
    front: list[ParetoCandidate] = field(default_factory=list)
    schedule: Optional[PlanState] = None
    gap_fill: Optional[GapFillResult] = None
    generated: int = 0
    unique: int = 0
    partial: bool = False

    @property
    def best(self) -> Optional[ParetoCandidate]:
        return self.front[0] if self.front else None


def weight_presets(base: ObjectiveWeights) -> list[tuple[str, ObjectiveWeights]]:
    """The configured weights, then one preset per emphasised objective."""
    presets = [('configured', base)]
    rest = (1.0 - EMPHASIS_SHARE) / (len(OBJECTIVE_NAMES) - 1)
    for name in OBJECTIVE_NAMES:
        values = {other: rest for other in OBJECTIVE_NAMES}
        values[name] = EMPHASIS_SHARE
        presets.append((f'emphasis:{name}', ObjectiveWeights.from_dict(values)))
    return presets


def sample_weights(rng) -> ObjectiveWeights:
    raw = {name: rng.uniform(0.05, 1.0) for name in OBJECTIVE_NAMES}
    total = sum(raw.values())
    return ObjectiveWeights.from_dict({name: value / total for name, value in raw.items()})


def candidate_settings(ctx: PlanningContext, count: int) -> list[tuple[str, ObjectiveWeights, int]]:
    """(label, weights, seed) for every candidate, fixed up front for reproducibility."""
    seed = ctx.config.seed
    rng = make_rng(seed)
    settings = []
    presets = weight_presets(ctx.config.weights)
    for i in range(count):
        if i < len(presets):
            label, weights = presets[i]
        else:
            label, weights = f'sample:{i}', sample_weights(rng)
        settings.append((label, weights, seed + i))
    return settings


def non_dominated(candidates: list[ParetoCandidate]) -> list[ParetoCandidate]:
    return [
        c for c in candidates
        if not any(dominates(other.scores, c.scores) for other in candidates if other is not c)
    ]


@timed(name="pareto front")
def build_pareto_front(
    ctx: PlanningContext,
    plan: PlanState,
    candidates: Optional[int] = None,
    deadline: Optional[Deadline] = None,
    workers: Optional[int] = None,
) -> ParetoOutcome:
    """Generate candidates from `plan`, keep the non-dominated ones, gap-fill the best."""
    config = ctx.config
    count = config.pareto_candidates if candidates is None else candidates
    workers = config.pareto_workers if workers is None else workers
    deadline = deadline or Deadline(config.pareto_timeout_ms)
    strategy = get_strategy(config.initial_algorithm)
    settings = candidate_settings(ctx, count)

    def generate(setting, first: bool) -> Optional[ParetoCandidate]:
        label, weights, seed = setting
        # The first candidate is always built so there is something to return
        if not first and deadline.expired():
            return None
        schedule, _ = strategy.produce_initial_schedule(
            ctx, plan, make_rng(seed), weights, Deadline(config.timeout_ms),
        )
        # Every candidate is judged with the configured weights
        scores = calculate_objectives(ctx, schedule, config.weights)
        return ParetoCandidate(schedule, weights, seed, scores, label)

    if workers > 1 and len(settings) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(generate, s, i == 0) for i, s in enumerate(settings)]
            results = [f.result() for f in futures]
    else:
        results = [generate(s, i == 0) for i, s in enumerate(settings)]

    generated = [c for c in results if c is not None]
    outcome = ParetoOutcome(generated=len(generated), partial=len(generated) < len(settings))

    seen = set()
    unique = []
    for candidate in generated:
        signature = candidate.plan.signature()
        if signature in seen:
            continue
        seen.add(signature)
        unique.append(candidate)
    outcome.unique = len(unique)

    front = non_dominated(unique)
    # sorted() is stable, so equal scores keep generation order
    outcome.front = sorted(front, key=lambda c: -c.scores.total_score)

    if outcome.best is not None:
        outcome.gap_fill = fill_gaps(ctx, outcome.best.plan)
        outcome.schedule = outcome.gap_fill.schedule

    logger.info(
        f"📊 Pareto: {outcome.generated} candidate(s), {outcome.unique} unique, "
        f"{len(outcome.front)} on the front"
        f"{' (time budget reached)' if outcome.partial else ''}"
    )
    return outcome
