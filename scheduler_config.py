"""Planning configuration and request payloads.

SchedulingConfig carries every knob a planning call understands. Defaults come
from constants.py and can be overridden from a YAML file (see config.yaml) or
per request.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Optional

import yaml

from constants import (
    DEFAULT_MAX_BACKTRACKS,
    DEFAULT_MAX_CONSECUTIVE_SAME_TASK,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_TYPE_PREFERENCES,
    GREEDY,
    PARETO_CANDIDATES,
    PARETO_MAX_WORKERS,
    PARETO_TIMEOUT_MS,
    SOFT_RULE_METADATA,
    TABU_LIST_SIZE,
    TABU_MAX_ITERATIONS,
    TABU_NEIGHBORHOOD_SIZE,
    TABU_STAGNATION_LIMIT,
    WEEKDAYS,
)
from logger import get_logger
from models import AssignmentCell, ObjectiveWeights, Requirement, Task, Worker

logger = get_logger('scheduler_config')


@dataclass
class SoftRule:
    """A gap-filler soft rule. Lower priority number = more important."""
    id: str
    enabled: bool = True
    priority: int = 1

    def to_dict(self) -> dict:
        return {"id": self.id, "enabled": self.enabled, "priority": self.priority}

    @classmethod
    def from_dict(cls, data: dict) -> "SoftRule":
        rule_id = data["id"]
        default_priority = SOFT_RULE_METADATA.get(rule_id, {}).get('default_priority', 1)
        return cls(
            id=rule_id,
            enabled=bool(data.get("enabled", True)),
            priority=int(data.get("priority", default_priority)),
        )


def default_soft_rules() -> list[SoftRule]:
    return [SoftRule(id=rule_id, enabled=True, priority=meta['default_priority'])
            for rule_id, meta in SOFT_RULE_METADATA.items()]


@dataclass
class TypePreference:
    """Scoring affinity between an operator type and one task.

    Workers of `operator_type` gain `bonus` on `task_id` and lose `penalty` on
    every other task (e.g. Flex operators kept on a spillover task).
    """
    operator_type: str
    task_id: str
    bonus: float = 5.0
    penalty: float = 0.0

    def to_dict(self) -> dict:
        return {
            "operator_type": self.operator_type,
            "task_id": self.task_id,
            "bonus": self.bonus,
            "penalty": self.penalty,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TypePreference":
        return cls(
            operator_type=data["operator_type"],
            task_id=data["task_id"],
            bonus=float(data.get("bonus", 5.0)),
            penalty=float(data.get("penalty", 0.0)),
        )


@dataclass
class SchedulingConfig:
    # Hard-rule switches
    strict_skill_matching: bool = True
    allow_overstaffing: bool = True

    # Soft-rule switches
    allow_consecutive_heavy: bool = False
    max_consecutive_same_task: int = DEFAULT_MAX_CONSECUTIVE_SAME_TASK
    fair_distribution: bool = True
    balance_workload: bool = True
    weights: ObjectiveWeights = field(default_factory=ObjectiveWeights)
    type_preferences: list[TypePreference] = field(
        default_factory=lambda: [TypePreference(*p) for p in DEFAULT_TYPE_PREFERENCES]
    )
    soft_rules: list[SoftRule] = field(default_factory=default_soft_rules)

    # Algorithm selection
    algorithm: str = GREEDY
    initial_algorithm: str = GREEDY  # feeds tabu and pareto
    fill_idle_cells: bool = True     # greedy utilization pass
    gap_fill_exclude_heavy: bool = False

    # Reproducibility and budgets
    seed: int = 0
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_backtracks: int = DEFAULT_MAX_BACKTRACKS
    tabu_max_iterations: int = TABU_MAX_ITERATIONS
    tabu_list_size: int = TABU_LIST_SIZE
    tabu_neighborhood_size: int = TABU_NEIGHBORHOOD_SIZE
    tabu_stagnation_limit: int = TABU_STAGNATION_LIMIT
    pareto_candidates: int = PARETO_CANDIDATES
    pareto_timeout_ms: int = PARETO_TIMEOUT_MS
    pareto_workers: int = PARETO_MAX_WORKERS

    # Raise InvariantViolation when a solver output breaks a hard rule
    check_invariants: bool = True

    def enabled_soft_rules(self) -> list[SoftRule]:
        """Enabled rules, most important first."""
        rules = [r for r in self.soft_rules if r.enabled]
        return sorted(rules, key=lambda r: r.priority)

    def with_overrides(self, **overrides) -> "SchedulingConfig":
        return replace(self, **overrides)

    def to_dict(self) -> dict:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == 'weights':
                value = value.to_dict()
            elif f.name in ('type_preferences', 'soft_rules'):
                value = [item.to_dict() for item in value]
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict], base: Optional["SchedulingConfig"] = None) -> "SchedulingConfig":
        """Build a config from a mapping, starting from `base` (or defaults).

        Unknown keys are logged and ignored so that older config files keep loading.
        """
        config = base if base is not None else cls()
        if not data:
            return replace(config)

        known = {f.name for f in fields(cls)}
        overrides: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            if key == 'weights':
                merged = config.weights.as_dict()
                merged.update(value or {})
                value = ObjectiveWeights.from_dict(merged)
            elif key == 'type_preferences':
                value = [TypePreference.from_dict(p) for p in (value or [])]
            elif key == 'soft_rules':
                value = [SoftRule.from_dict(r) for r in (value or [])]
            overrides[key] = value
        return replace(config, **overrides)


@dataclass
class ScheduleRequest:
    """Everything one planning call needs; nothing else is read."""
    workers: list[Worker]
    tasks: list[Task]
    days: tuple[str, ...] = WEEKDAYS
    requirements: list[Requirement] = field(default_factory=list)
    current_assignments: list[AssignmentCell] = field(default_factory=list)
    excluded_tasks: list[str] = field(default_factory=list)
    config: SchedulingConfig = field(default_factory=SchedulingConfig)

    @classmethod
    def from_dict(cls, data: dict, base_config: Optional[SchedulingConfig] = None) -> "ScheduleRequest":
        return cls(
            workers=[Worker.from_dict(w) for w in data.get("workers", [])],
            tasks=[Task.from_dict(t) for t in data.get("tasks", [])],
            days=tuple(data.get("days") or WEEKDAYS),
            requirements=[Requirement.from_dict(r) for r in data.get("requirements", [])],
            current_assignments=[AssignmentCell.from_dict(c) for c in data.get("current_assignments", [])],
            excluded_tasks=list(data.get("excluded_tasks", [])),
            config=SchedulingConfig.from_dict(data.get("config"), base=base_config),
        )


def default_config_path() -> str:
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "config.yaml")


def load_config(path: Optional[str] = None) -> SchedulingConfig:
    """Load planning defaults from YAML. A missing file yields built-in defaults."""
    path = path or default_config_path()
    if not os.path.exists(path):
        logger.info(f"Config file not found at {path}, using defaults")
        return SchedulingConfig()

    with open(path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(raw).__name__}")

    config = SchedulingConfig.from_dict(raw.get('scheduling', raw))
    logger.info(f"Configuration loaded from {path}")
    return config


def save_config(config: SchedulingConfig, path: Optional[str] = None) -> bool:
    """Save planning defaults to YAML.

    Returns:
        True if save was successful, False otherwise.
    """
    path = path or default_config_path()
    try:
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump({'scheduling': config.to_dict()}, f,
                      default_flow_style=False, allow_unicode=True, sort_keys=False)
        logger.info(f"Configuration saved to {path}")
        return True
    except OSError as e:
        logger.error(f"Could not save config file: {e}")
        return False
