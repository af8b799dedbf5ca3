"""
Pytest fixtures and configuration for taskrota tests.
"""

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from constants import COORDINATOR, FLEX, REGULAR
from models import Requirement, Task, TypeCount, Worker
from scheduler_builders import build_planning_context
from scheduler_config import ScheduleRequest, SchedulingConfig


def make_worker(worker_id, skills, operator_type=REGULAR, **kwargs):
    return Worker(id=worker_id, name=worker_id.title(), skills=frozenset(skills),
                  operator_type=operator_type, **kwargs)


@pytest.fixture
def build_context():
    """Turn a ScheduleRequest into a PlanningContext."""
    return build_planning_context


@pytest.fixture
def team_workers():
    """Five operators and two coordinators."""
    return [
        make_worker("ana", {"pack", "load"}),
        make_worker("ben", {"pack"}),
        make_worker("cid", {"load", "clean"}, availability={"Wed": False}),
        make_worker("dia", {"clean"}, FLEX),
        make_worker("eli", {"pack", "clean"}, FLEX),
        make_worker("fay", {"coord"}, COORDINATOR),
        make_worker("gus", {"coord"}, COORDINATOR),
    ]


@pytest.fixture
def team_tasks():
    return [
        Task(id="pack", name="Packing", required_skill="pack"),
        Task(id="load", name="Loading", required_skill="load", heavy=True),
        Task(id="clean", name="Cleaning", required_skill="clean"),
        Task(id="lead", name="Shift Lead", required_skill="coord", coordinator_only=True),
        Task(id="desk", name="Front Desk", required_skill="coord", coordinator_only=True),
    ]


@pytest.fixture
def team_requirements():
    """Four operator slots and up to two coordinator slots per day."""
    return [
        Requirement("pack", [TypeCount(REGULAR, 1), TypeCount(FLEX, 1)]),
        Requirement("load", [TypeCount(REGULAR, 1)]),
        Requirement("clean", [TypeCount(FLEX, 1)]),
        Requirement("lead", [TypeCount(COORDINATOR, 1)]),
        Requirement("desk", [TypeCount(COORDINATOR, 1)], daily_overrides={"Fri": []}),
    ]


@pytest.fixture
def team_request(team_workers, team_tasks, team_requirements):
    """A realistic small week used by engine-level tests."""
    return ScheduleRequest(
        workers=team_workers,
        tasks=team_tasks,
        requirements=team_requirements,
        config=SchedulingConfig(seed=7),
    )


@pytest.fixture
def scarce_skill_request():
    """{A,B}, {A} and {B} workers, one A slot and one B slot on Monday only."""
    workers = [
        make_worker("dual", {"A", "B"}),
        make_worker("only_a", {"A"}),
        make_worker("only_b", {"B"}),
    ]
    tasks = [
        Task(id="task_a", name="Task A", required_skill="A"),
        Task(id="task_b", name="Task B", required_skill="B"),
    ]
    requirements = [
        Requirement("task_a", [], daily_overrides={"Mon": [TypeCount(REGULAR, 1)]}),
        Requirement("task_b", [], daily_overrides={"Mon": [TypeCount(REGULAR, 1)]}),
    ]
    return ScheduleRequest(
        workers=workers,
        tasks=tasks,
        days=("Mon",),
        requirements=requirements,
        config=SchedulingConfig(fill_idle_cells=False),
    )


@pytest.fixture
def lone_worker_request():
    """One single-skill worker, one task needing that skill every day."""
    return ScheduleRequest(
        workers=[make_worker("solo", {"sort"})],
        tasks=[Task(id="sort", name="Sorting", required_skill="sort", required_operators=1)],
        config=SchedulingConfig(algorithm="gap_fill"),
    )
