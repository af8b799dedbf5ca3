"""
Tests for scheduling_engine.py - the plan_week entry point
"""

import copy

import pytest

from conftest import make_worker
from constants import (
    ALGORITHMS,
    FLEX,
    GAP_FILL,
    OVERSTAFFED,
    PARETO,
    REGULAR,
    SKILL_MISMATCH,
    TABU,
    UNDERSTAFFED,
)
from models import AssignmentCell, Requirement, Task, TypeCount
from scheduler_builders import build_planning_context
from scheduler_config import ScheduleRequest, SchedulingConfig
from scheduling_engine import plan_week
from validation import ValidationError


def _config(algorithm, **kwargs):
    """Wall-clock budgets far beyond any test run, so results depend on the seed alone."""
    return SchedulingConfig(algorithm=algorithm, seed=7, timeout_ms=600_000, pareto_timeout_ms=600_000,
                            tabu_max_iterations=20, pareto_candidates=6, **kwargs)


def _assert_hard_rules(request, result):
    ctx = build_planning_context(request)
    workers = {w.id: w for w in request.workers}
    tasks = {t.id: t for t in request.tasks}
    keys = [(c.worker_id, c.day) for c in result.assignments]
    assert len(keys) == len(set(keys)), "a worker holds two cells on one day"
    assert len(keys) == len(request.workers) * len(request.days)
    for cell in result.assigned_cells:
        if cell.frozen:
            continue
        worker, task = workers[cell.worker_id], tasks[cell.task_id]
        assert task.required_skill in worker.skills
        assert worker.can_work(cell.day)
        assert worker.is_coordinator == task.coordinator_only
        demand = ctx.demand_for(ctx.days.index(cell.day), cell.task_id)
        assert worker.operator_type in demand or None in demand


@pytest.mark.parametrize("algorithm", ALGORITHMS)
class TestEveryAlgorithm:
    """Behaviour every algorithm shares."""

    def test_hard_rules(self, team_request, algorithm):
        team_request.config = _config(algorithm)
        outcome = plan_week(team_request)
        assert outcome.result.algorithm == algorithm
        _assert_hard_rules(team_request, outcome.result)

    def test_same_seed_same_plan(self, team_request, algorithm):
        team_request.config = _config(algorithm)
        first = plan_week(team_request).to_dict()
        second = plan_week(copy.deepcopy(team_request)).to_dict()
        assert first == second

    def test_protected_cells_survive(self, team_request, algorithm):
        team_request.config = _config(algorithm)
        team_request.current_assignments = [
            AssignmentCell("ana", "Mon", "pack", locked=True),
            AssignmentCell("ben", "Tue", None, pinned=True),
        ]
        result = plan_week(team_request).result
        ana = result.cell("ana", "Mon")
        assert (ana.task_id, ana.locked) == ("pack", True)
        ben = result.cell("ben", "Tue")
        assert (ben.task_id, ben.pinned) == (None, True)

    def test_excluded_task_never_assigned(self, team_request, algorithm):
        team_request.config = _config(algorithm)
        team_request.excluded_tasks = ["clean"]
        result = plan_week(team_request).result
        assert all(c.task_id != "clean" for c in result.assignments)

    def test_shortage_is_reported_not_raised(self, team_request, algorithm):
        team_request.config = _config(algorithm)
        team_request.workers[0].availability = {"Mon": False}
        team_request.workers[2].status = "Sick"
        outcome = plan_week(team_request)
        understaffed = outcome.result.warnings_of(UNDERSTAFFED)
        assert any(w.day == "Mon" and w.task_id == "load" for w in understaffed)
        assert outcome.stats["filled_slots"] < outcome.stats["demanded_slots"]

    def test_request_is_not_mutated(self, team_request, algorithm):
        team_request.config = _config(algorithm)
        team_request.current_assignments = [AssignmentCell("ana", "Mon", "pack", locked=True)]
        before = copy.deepcopy(team_request)
        plan_week(team_request)
        assert team_request == before


def _single_task_request(algorithm, workers, **kwargs):
    """One task x on Monday that asks for a single Regular operator."""
    return ScheduleRequest(
        workers=workers,
        tasks=[Task(id="x", name="X", required_skill="x")],
        requirements=[Requirement("x", [TypeCount(REGULAR, 1)])],
        days=("Mon",),
        config=_config(algorithm, **kwargs),
    )


class TestPlanWeek:

    def test_validation_error_before_solving(self, team_request, caplog):
        team_request.excluded_tasks = ["ghost"]
        with pytest.raises(ValidationError):
            plan_week(team_request)
        assert "Planning" not in caplog.text

    def test_full_coverage_on_a_healthy_team(self, team_request):
        team_request.config = _config("max_matching")
        outcome = plan_week(team_request)
        assert outcome.stats["filled_slots"] == outcome.stats["demanded_slots"] == 29
        assert outcome.result.warnings_of(UNDERSTAFFED) == []

    def test_different_seeds_are_independent_calls(self, team_request):
        """Calls share no state: replaying the first seed gives the first plan back."""
        team_request.config = _config("greedy")
        first = plan_week(team_request).to_dict()
        team_request.config = _config("greedy").with_overrides(seed=99)
        plan_week(team_request)
        team_request.config = _config("greedy")
        assert plan_week(team_request).to_dict() == first

    def test_locked_cell_breaking_a_rule_is_a_warning(self, team_request):
        team_request.config = _config("greedy")
        team_request.current_assignments = [AssignmentCell("ben", "Mon", "load", locked=True)]
        outcome = plan_week(team_request)
        mismatches = outcome.result.warnings_of(SKILL_MISMATCH)
        assert [(w.worker_id, w.day) for w in mismatches] == [("ben", "Mon")]

    @pytest.mark.parametrize("algorithm", ALGORITHMS)
    def test_flex_worker_stays_off_a_regular_only_task(self, algorithm):
        request = _single_task_request(algorithm, [make_worker("reg", {"x"}), make_worker("flx", {"x"}, FLEX)])
        outcome = plan_week(request)
        cells = {(c.worker_id, c.task_id) for c in outcome.result.assigned_cells}
        assert cells == {("reg", "x")}
        assert outcome.result.warnings_of(OVERSTAFFED) == []
        _assert_hard_rules(request, outcome.result)

    def test_stats_and_timings(self, team_request, caplog):
        team_request.config = _config("constraint_propagation")
        outcome = plan_week(team_request)
        assert {"validate", "build_context", "constraint_propagation", "warnings"} <= set(outcome.stats["timings_ms"])
        assert "📊 constraint_propagation:" in caplog.text
        assert "stats" not in outcome.to_dict()


class TestAlgorithmExtras:
    """Each composite algorithm adds its own keys to the serialized outcome."""

    def test_tabu(self, team_request):
        team_request.config = _config(TABU)
        data = plan_week(team_request).to_dict()
        assert data["final_score"] >= data["initial_score"]
        assert 0 <= data["iterations_run"] <= 20

    def test_tabu_over_matching(self, team_request):
        team_request.config = _config(TABU, initial_algorithm="max_matching")
        outcome = plan_week(team_request)
        assert outcome.stats["filled_slots"] == 29

    def test_pareto(self, team_request):
        team_request.config = _config(PARETO)
        data = plan_week(team_request).to_dict()
        assert 1 <= len(data["candidates"]) <= 6
        top = data["candidates"][0]
        assert {"schedule", "label", "seed", "weights", "score_vector"} <= set(top)
        assert "unfillable" in data
        assert "requirement_status" in data["stats"]

    def test_pareto_puts_every_worker_to_use(self):
        """Matching fills the one demanded slot; the final gap fill takes the spare worker."""
        request = _single_task_request(PARETO, [make_worker("a", {"x"}), make_worker("b", {"x"})],
                                       initial_algorithm="max_matching")
        data = plan_week(request).to_dict()
        assert sorted(c["worker_id"] for c in data["assignments"] if c["task_id"] == "x") == ["a", "b"]
        assert data["unfillable"] == []
        assert data["stats"]["requirement_status"] == "all_met"

    def test_gap_fill_keeps_existing_cells(self, team_request):
        team_request.config = _config(GAP_FILL)
        team_request.current_assignments = [AssignmentCell("ana", "Mon", "load")]
        outcome = plan_week(team_request)
        assert outcome.result.cell("ana", "Mon").task_id == "load"
        data = outcome.to_dict()
        assert isinstance(data["unfillable"], list)
        assert data["stats"]["filled_cells"] == len(outcome.stats["assignments_made"])

    def test_lone_worker_gap_fill(self, lone_worker_request):
        outcome = plan_week(lone_worker_request)
        assert [c.task_id for c in outcome.result.assignments] == ["sort"] * 5
        assert outcome.to_dict()["stats"]["requirement_status"] == "all_met"
