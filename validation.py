"""Entry-boundary validation and engine error types.

Malformed input is rejected here, before any solver runs. Infeasible but
well-formed input is never an error: it shows up as warnings on the result.
"""

from __future__ import annotations

from collections import Counter

from constants import ALGORITHMS, INITIAL_ALGORITHMS, OPERATOR_TYPES, SOFT_RULE_IDS, WEEKDAYS, WORKER_STATUSES
from logger import get_logger

logger = get_logger('validation')


class ValidationError(ValueError):
    """Raised when a planning request is malformed."""

    def __init__(self, problems):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("Invalid planning request: " + "; ".join(self.problems))


class InvariantViolation(RuntimeError):
    """Raised when a solver output breaks a hard rule. Always a solver defect."""


def _check_weekday(day, where, problems):
    if day not in WEEKDAYS:
        problems.append(f"{where}: unknown weekday {day!r}")


def _check_counts(counts, where, problems):
    for tc in counts:
        if tc.operator_type not in OPERATOR_TYPES:
            problems.append(f"{where}: unknown operator type {tc.operator_type!r}")
        if not isinstance(tc.count, int) or isinstance(tc.count, bool) or tc.count < 0:
            problems.append(f"{where}: count for {tc.operator_type} must be a non-negative integer, got {tc.count!r}")


def _validate_workers(workers, problems):
    for wid, n in Counter(w.id for w in workers).items():
        if n > 1:
            problems.append(f"Duplicate worker id {wid!r}")
    for w in workers:
        if w.operator_type not in OPERATOR_TYPES:
            problems.append(f"Worker {w.id}: unknown operator type {w.operator_type!r}")
        if w.status not in WORKER_STATUSES:
            problems.append(f"Worker {w.id}: unknown status {w.status!r}")
        for day in w.availability:
            _check_weekday(day, f"Worker {w.id} availability", problems)


def _validate_tasks(tasks, problems):
    for tid, n in Counter(t.id for t in tasks).items():
        if n > 1:
            problems.append(f"Duplicate task id {tid!r}")
    for t in tasks:
        spec = t.required_operators
        values = []
        if isinstance(spec, dict):
            for day, value in spec.items():
                _check_weekday(day, f"Task {t.id} required_operators", problems)
                values.append(value)
        elif spec is not None:
            values.append(spec)
        for value in values:
            if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 0):
                problems.append(f"Task {t.id}: required_operators must be non-negative integers, got {value!r}")


def _validate_coordinator_skills(workers, tasks, problems):
    """Coordinator skills and regular skills must not overlap."""
    coordinator_skills = {t.required_skill for t in tasks if t.coordinator_only}
    regular_skills = {t.required_skill for t in tasks if not t.coordinator_only}
    shared = coordinator_skills & regular_skills
    if shared:
        problems.append(f"Skills required by both coordinator-only and regular tasks: {sorted(shared)}")
    for w in workers:
        if w.is_coordinator:
            foreign = w.skills & regular_skills
            if foreign:
                problems.append(f"Coordinator {w.id} holds non-coordinator skills {sorted(foreign)}")
        else:
            foreign = w.skills & coordinator_skills
            if foreign:
                problems.append(f"{w.operator_type} worker {w.id} holds coordinator-only skills {sorted(foreign)}")


def _validate_config(config, problems):
    if config.algorithm not in ALGORITHMS:
        problems.append(f"Unknown algorithm {config.algorithm!r}; expected one of {', '.join(ALGORITHMS)}")
    if config.initial_algorithm not in INITIAL_ALGORITHMS:
        problems.append(
            f"Unknown initial algorithm {config.initial_algorithm!r}; expected one of {', '.join(INITIAL_ALGORITHMS)}"
        )
    for name in ('max_consecutive_same_task', 'tabu_list_size', 'pareto_candidates', 'pareto_workers',
                 'timeout_ms', 'pareto_timeout_ms'):
        if getattr(config, name) < 1:
            problems.append(f"Config {name} must be >= 1")
    for name in ('max_backtracks', 'tabu_max_iterations', 'tabu_neighborhood_size', 'tabu_stagnation_limit'):
        if getattr(config, name) < 0:
            problems.append(f"Config {name} must be >= 0")
    for name, value in config.weights.as_dict().items():
        if value < 0:
            problems.append(f"Objective weight {name} must be >= 0")
    if config.weights.total() <= 0:
        problems.append("At least one objective weight must be positive")
    for rule in config.soft_rules:
        if rule.id not in SOFT_RULE_IDS:
            problems.append(f"Unknown soft rule {rule.id!r}")
    for pref in config.type_preferences:
        if pref.operator_type not in OPERATOR_TYPES:
            problems.append(f"Type preference: unknown operator type {pref.operator_type!r}")


def validate_request(request) -> None:
    """Raise ValidationError listing every problem found in `request`."""
    problems: list[str] = []
    workers = request.workers
    tasks = request.tasks

    _validate_workers(workers, problems)
    _validate_tasks(tasks, problems)
    _validate_coordinator_skills(workers, tasks, problems)
    _validate_config(request.config, problems)

    if not request.days:
        problems.append("At least one planning day is required")
    for day, n in Counter(request.days).items():
        _check_weekday(day, "Planning days", problems)
        if n > 1:
            problems.append(f"Planning day {day!r} listed more than once")

    worker_ids = {w.id for w in workers}
    task_ids = {t.id for t in tasks}

    for tid, n in Counter(r.task_id for r in request.requirements).items():
        if n > 1:
            problems.append(f"More than one requirement for task {tid!r}")
    for req in request.requirements:
        if req.task_id not in task_ids:
            problems.append(f"Requirement references unknown task {req.task_id!r}")
        _check_counts(req.default_counts, f"Requirement {req.task_id}", problems)
        for day, counts in req.daily_overrides.items():
            _check_weekday(day, f"Requirement {req.task_id} override", problems)
            _check_counts(counts, f"Requirement {req.task_id} on {day}", problems)

    for tid in request.excluded_tasks:
        if tid not in task_ids:
            problems.append(f"Excluded task {tid!r} does not exist")

    seen_cells = set()
    for cell in request.current_assignments:
        where = f"Assignment ({cell.worker_id}, {cell.day})"
        if cell.worker_id not in worker_ids:
            problems.append(f"{where}: unknown worker")
        if cell.task_id is not None and cell.task_id not in task_ids:
            problems.append(f"{where}: unknown task {cell.task_id!r}")
        if cell.day not in request.days:
            problems.append(f"{where}: day is not part of the planning window")
        key = (cell.worker_id, cell.day)
        if key in seen_cells:
            problems.append(f"{where}: more than one cell for the same worker and day")
        seen_cells.add(key)

    if problems:
        for p in problems:
            logger.error(f"Validation: {p}")
        raise ValidationError(problems)
