"""
Tests for constraint_diagnostics.py - staffing shortage analysis
"""

import logging

import pytest

from constraint_diagnostics import (
    ConstraintDiagnostics,
    ConstraintViolation,
    DiagnosticReport,
    run_diagnostics,
)
from matching_solver import max_filled_slots
from models import AssignmentCell
from plan_state import PlanState


@pytest.fixture
def short_request(team_request):
    """Monday loading has no regular operator left: ana is off, cid is sick."""
    team_request.workers[0].availability = {"Mon": False}
    team_request.workers[2].status = "Sick"
    return team_request


class TestReportDataclasses:

    def test_violation_str(self):
        v = ConstraintViolation("coverage", "error", "Loading on Mon is short")
        assert str(v) == "[ERROR] coverage: Loading on Mon is short"

    def test_errors_and_warnings_split(self):
        report = DiagnosticReport(is_feasible=False)
        report.add_violation(ConstraintViolation("coverage", "error", "a"))
        report.add_violation(ConstraintViolation("coverage", "warning", "b"))
        assert [v.message for v in report.get_errors()] == ["a"]
        assert [v.message for v in report.get_warnings()] == ["b"]

    def test_to_dict(self):
        report = DiagnosticReport(is_feasible=True, coverage_ceiling=3, total_demand=3)
        data = report.to_dict()
        assert data["is_feasible"] is True
        assert data["coverage_ceiling"] == 3
        assert data["violations"] == []

    def test_format_report(self):
        report = DiagnosticReport(is_feasible=False, coverage_ceiling=2, total_demand=3,
                                  relaxation_results={"availability": True}, summary="1 short")
        report.add_violation(ConstraintViolation("capacity", "error", "Mon is short", {"day": "Mon"}))
        text = report.format_report()
        assert "STAFFING DIAGNOSTIC REPORT" in text
        assert "Coverage ceiling: 2/3 slots" in text
        assert "[capacity] Mon is short" in text
        assert "day: Mon" in text
        assert "Without 'availability': ✓ full coverage" in text


class TestPreSolve:

    def test_healthy_team(self, team_request, build_context):
        report = ConstraintDiagnostics(build_context(team_request)).analyze_pre_solve()
        assert report.is_feasible
        assert report.get_errors() == []
        assert report.total_demand == 29

    def test_shortage_detected(self, short_request, build_context):
        report = ConstraintDiagnostics(build_context(short_request)).analyze_pre_solve()
        assert not report.is_feasible
        categories = {v.category for v in report.get_errors()}
        assert {"coverage", "capacity"} <= categories
        coverage = [v for v in report.get_errors() if v.category == "coverage"]
        assert coverage[0].details["task_id"] == "load"
        assert coverage[0].details["day"] == "Mon"

    def test_inactive_worker_warning(self, short_request, build_context):
        report = ConstraintDiagnostics(build_context(short_request)).analyze_pre_solve()
        assert any(v.category == "availability" and v.details["worker_id"] == "cid"
                   for v in report.get_warnings())

    def test_no_coordinators(self, team_request, build_context):
        team_request.workers = [w for w in team_request.workers if not w.is_coordinator]
        report = ConstraintDiagnostics(build_context(team_request)).analyze_pre_solve()
        assert any(v.category == "coordinator" for v in report.get_errors())


class TestCoverageCeiling:
    """The CP-SAT ceiling agrees with the per-day matching bound."""

    def test_full_team(self, team_request, build_context):
        ctx = build_context(team_request)
        assert ConstraintDiagnostics(ctx).coverage_ceiling() == 29

    def test_matches_bipartite_bound(self, short_request, build_context):
        ctx = build_context(short_request)
        matching = sum(max_filled_slots(ctx, PlanState(ctx), d) for d in range(ctx.num_days))
        assert ConstraintDiagnostics(ctx).coverage_ceiling() == matching == 28

    def test_protected_cells_count(self, team_request, build_context):
        team_request.current_assignments = [AssignmentCell("ana", "Mon", "load", locked=True)]
        ctx = build_context(team_request)
        plan = PlanState.from_cells(ctx, team_request.current_assignments, frozen_only=True)
        assert ConstraintDiagnostics(ctx, plan).coverage_ceiling() == 29

    def test_relaxations(self, short_request, build_context):
        ctx = build_context(short_request)
        diagnostics = ConstraintDiagnostics(ctx)
        assert diagnostics.coverage_ceiling(relax="availability") == 29
        assert diagnostics.coverage_ceiling(relax="skill_matching") == 28
        assert diagnostics.coverage_ceiling(relax="operator_types") == 28


class TestRunDiagnostics:

    def test_full_analysis(self, short_request, build_context):
        report = run_diagnostics(build_context(short_request))
        assert not report.is_feasible
        assert report.coverage_ceiling == 28
        assert report.relaxation_results == {
            "skill_matching": False,
            "availability": True,
            "operator_types": False,
        }
        assert "availability" in report.summary

    def test_feasible_skips_relaxation(self, team_request, build_context):
        report = run_diagnostics(build_context(team_request))
        assert report.is_feasible
        assert report.relaxation_results == {}

    def test_quick_analysis_has_no_ceiling(self, short_request, build_context):
        report = run_diagnostics(build_context(short_request), full_analysis=False)
        assert report.coverage_ceiling is None

    def test_logs_violations(self, short_request, build_context, caplog):
        logger = logging.getLogger("taskrota.tests")
        with caplog.at_level(logging.INFO, logger="taskrota"):
            run_diagnostics(build_context(short_request), logger=logger)
        assert "[ERROR] coverage:" in caplog.text
        assert "dropping 'availability' allows full coverage" in caplog.text
