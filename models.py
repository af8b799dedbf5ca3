"""Domain entities exchanged with the planning engine.

Every entity is a plain dataclass with `to_dict` / `from_dict` helpers so that
callers can hand the engine JSON-like payloads. The engine never mutates the
entities it is given; solvers work on their own PlanState copies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from constants import (
    ACTIVE,
    COORDINATOR,
    DEFAULT_OBJECTIVE_WEIGHTS,
    FLEX,
    OBJECTIVE_NAMES,
    REGULAR,
    WEEKDAYS,
)


@dataclass
class Worker:
    """A rota member who can be assigned at most one task per day."""
    id: str
    name: str
    skills: frozenset = field(default_factory=frozenset)
    operator_type: str = REGULAR
    status: str = ACTIVE
    availability: dict[str, bool] = field(default_factory=dict)
    preferred_tasks: tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.skills, frozenset):
            self.skills = frozenset(self.skills)
        if not isinstance(self.preferred_tasks, tuple):
            self.preferred_tasks = tuple(self.preferred_tasks)

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    @property
    def is_coordinator(self) -> bool:
        return self.operator_type == COORDINATOR

    @property
    def is_flex(self) -> bool:
        return self.operator_type == FLEX

    def is_available(self, day: str) -> bool:
        # Days missing from the availability map count as available
        return bool(self.availability.get(day, True))

    def can_work(self, day: str) -> bool:
        return self.is_active and self.is_available(day)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "skills": sorted(self.skills),
            "operator_type": self.operator_type,
            "status": self.status,
            "availability": {day: self.is_available(day) for day in WEEKDAYS},
            "preferred_tasks": list(self.preferred_tasks),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Worker":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            skills=frozenset(data.get("skills", ())),
            operator_type=data.get("operator_type", REGULAR),
            status=data.get("status", ACTIVE),
            availability=dict(data.get("availability") or {}),
            preferred_tasks=tuple(data.get("preferred_tasks", ())),
        )


HeadcountSpec = Union[None, int, dict]


@dataclass
class Task:
    """A daily task. `required_operators` is an untyped headcount used when no
    Requirement covers the task: None, a scalar, or a per-weekday mapping."""
    id: str
    name: str
    required_skill: str
    required_operators: HeadcountSpec = None
    coordinator_only: bool = False
    heavy: bool = False

    def headcount_for(self, day: str) -> Optional[int]:
        spec = self.required_operators
        if spec is None:
            return None
        if isinstance(spec, dict):
            value = spec.get(day)
            return None if value is None else int(value)
        return int(spec)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "required_skill": self.required_skill,
            "required_operators": self.required_operators,
            "coordinator_only": self.coordinator_only,
            "heavy": self.heavy,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        required = data.get("required_operators")
        if isinstance(required, dict):
            required = dict(required)
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            required_skill=data["required_skill"],
            required_operators=required,
            coordinator_only=bool(data.get("coordinator_only", False)),
            heavy=bool(data.get("heavy", False)),
        )


@dataclass
class TypeCount:
    operator_type: str
    count: int

    def to_dict(self) -> dict:
        return {"operator_type": self.operator_type, "count": self.count}

    @classmethod
    def from_dict(cls, data: dict) -> "TypeCount":
        return cls(operator_type=data["operator_type"], count=data["count"])


@dataclass
class Requirement:
    """Typed staffing requirement for one task, with optional per-day overrides."""
    task_id: str
    default_counts: list[TypeCount] = field(default_factory=list)
    daily_overrides: dict[str, list[TypeCount]] = field(default_factory=dict)
    enabled: bool = True

    def counts_for(self, day: str) -> list[TypeCount]:
        if day in self.daily_overrides:
            return self.daily_overrides[day]
        return self.default_counts

    def total_for(self, day: str) -> int:
        return sum(tc.count for tc in self.counts_for(day))

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "default_counts": [tc.to_dict() for tc in self.default_counts],
            "daily_overrides": {
                day: [tc.to_dict() for tc in counts]
                for day, counts in self.daily_overrides.items()
            },
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Requirement":
        return cls(
            task_id=data["task_id"],
            default_counts=[TypeCount.from_dict(tc) for tc in data.get("default_counts", [])],
            daily_overrides={
                day: [TypeCount.from_dict(tc) for tc in counts]
                for day, counts in (data.get("daily_overrides") or {}).items()
            },
            enabled=bool(data.get("enabled", True)),
        )


@dataclass
class AssignmentCell:
    """One (worker, day) cell; task_id None means idle."""
    worker_id: str
    day: str
    task_id: Optional[str] = None
    locked: bool = False
    pinned: bool = False

    @property
    def frozen(self) -> bool:
        """Locked and pinned cells are both left alone by every solver."""
        return self.locked or self.pinned

    def to_dict(self) -> dict:
        return {
            "worker_id": self.worker_id,
            "day": self.day,
            "task_id": self.task_id,
            "locked": self.locked,
            "pinned": self.pinned,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AssignmentCell":
        return cls(
            worker_id=data["worker_id"],
            day=data["day"],
            task_id=data.get("task_id"),
            locked=bool(data.get("locked", False)),
            pinned=bool(data.get("pinned", False)),
        )


@dataclass
class ScheduleWarning:
    kind: str
    message: str
    day: Optional[str] = None
    task_id: Optional[str] = None
    worker_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "day": self.day,
            "task_id": self.task_id,
            "worker_id": self.worker_id,
            "message": self.message,
        }


@dataclass
class ScheduleResult:
    """Full weekly grid (day order, then roster order) plus warnings."""
    assignments: list[AssignmentCell] = field(default_factory=list)
    warnings: list[ScheduleWarning] = field(default_factory=list)
    partial: bool = False
    algorithm: str = ""
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def assigned_cells(self) -> list[AssignmentCell]:
        return [c for c in self.assignments if c.task_id is not None]

    def cell(self, worker_id: str, day: str) -> Optional[AssignmentCell]:
        for c in self.assignments:
            if c.worker_id == worker_id and c.day == day:
                return c
        return None

    def warnings_of(self, kind: str) -> list[ScheduleWarning]:
        return [w for w in self.warnings if w.kind == kind]

    def to_dict(self) -> dict:
        return {
            "assignments": [c.to_dict() for c in self.assignments],
            "warnings": [w.to_dict() for w in self.warnings],
            "partial": self.partial,
            "algorithm": self.algorithm,
        }


@dataclass
class ObjectiveWeights:
    fairness: float = DEFAULT_OBJECTIVE_WEIGHTS['fairness']
    workload_balance: float = DEFAULT_OBJECTIVE_WEIGHTS['workload_balance']
    skill_match: float = DEFAULT_OBJECTIVE_WEIGHTS['skill_match']
    variety: float = DEFAULT_OBJECTIVE_WEIGHTS['variety']
    heavy_task_spacing: float = DEFAULT_OBJECTIVE_WEIGHTS['heavy_task_spacing']

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in OBJECTIVE_NAMES}

    def to_dict(self) -> dict:
        return self.as_dict()

    def relative(self, name: str) -> float:
        """Weight of one criterion relative to its default (1.0 = default)."""
        return getattr(self, name) / DEFAULT_OBJECTIVE_WEIGHTS[name]

    def total(self) -> float:
        return sum(self.as_dict().values())

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ObjectiveWeights":
        data = data or {}
        return cls(**{name: float(data[name]) for name in OBJECTIVE_NAMES if name in data})
