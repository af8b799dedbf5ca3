"""Tests for request validation and plan invariant checks."""

import pytest

from constants import (
    AVAILABILITY_CONFLICT,
    COORDINATOR,
    DOUBLE_ASSIGNMENT,
    OVERSTAFFED,
    REGULAR,
    SKILL_MISMATCH,
    UNDERSTAFFED,
)
from conftest import make_worker
from models import AssignmentCell, ObjectiveWeights, Requirement, TypeCount
from plan_state import PlanState
from schedule_checks import assert_plan_invariants, collect_warnings, validate_assignments
from scheduler_config import SchedulingConfig, SoftRule
from validation import InvariantViolation, ValidationError, validate_request


class TestValidateRequest:
    """Malformed input is rejected before any solver runs."""

    def test_valid_request_passes(self, team_request):
        validate_request(team_request)

    def test_duplicate_worker_ids(self, team_request):
        team_request.workers.append(make_worker("ana", {"pack"}))
        with pytest.raises(ValidationError) as exc:
            validate_request(team_request)
        assert "Duplicate worker id 'ana'" in exc.value.problems

    def test_unknown_task_in_requirement(self, team_request):
        team_request.requirements.append(Requirement("ghost", [TypeCount(REGULAR, 1)]))
        with pytest.raises(ValidationError, match="unknown task 'ghost'"):
            validate_request(team_request)

    def test_negative_count(self, team_request):
        team_request.requirements[0].default_counts = [TypeCount(REGULAR, -1)]
        with pytest.raises(ValidationError, match="non-negative integer"):
            validate_request(team_request)

    def test_unknown_worker_in_assignment(self, team_request):
        team_request.current_assignments = [AssignmentCell("nobody", "Mon", "pack")]
        with pytest.raises(ValidationError, match="unknown worker"):
            validate_request(team_request)

    def test_duplicate_cell(self, team_request):
        team_request.current_assignments = [
            AssignmentCell("ana", "Mon", "pack"),
            AssignmentCell("ana", "Mon", "load"),
        ]
        with pytest.raises(ValidationError, match="more than one cell"):
            validate_request(team_request)

    def test_day_outside_window(self, team_request):
        team_request.days = ("Mon", "Tue")
        team_request.current_assignments = [AssignmentCell("ana", "Fri", "pack")]
        with pytest.raises(ValidationError, match="not part of the planning window"):
            validate_request(team_request)

    def test_unknown_weekday(self, team_request):
        team_request.days = ("Mon", "Sat")
        with pytest.raises(ValidationError, match="unknown weekday 'Sat'"):
            validate_request(team_request)

    def test_unknown_excluded_task(self, team_request):
        team_request.excluded_tasks = ["ghost"]
        with pytest.raises(ValidationError, match="Excluded task 'ghost'"):
            validate_request(team_request)

    def test_coordinator_skill_invariant(self, team_request):
        team_request.workers.append(make_worker("mix", {"coord", "pack"}, COORDINATOR))
        with pytest.raises(ValidationError, match="non-coordinator skills"):
            validate_request(team_request)

    def test_operator_with_coordinator_skill(self, team_request):
        team_request.workers.append(make_worker("odd", {"coord"}))
        with pytest.raises(ValidationError, match="coordinator-only skills"):
            validate_request(team_request)

    def test_unknown_algorithm(self, team_request):
        team_request.config = SchedulingConfig(algorithm="simulated_annealing")
        with pytest.raises(ValidationError, match="Unknown algorithm"):
            validate_request(team_request)

    def test_bad_budgets_and_weights(self, team_request):
        team_request.config = SchedulingConfig(
            tabu_list_size=0,
            weights=ObjectiveWeights(0, 0, 0, 0, 0),
            soft_rules=[SoftRule("be-nice")],
        )
        with pytest.raises(ValidationError) as exc:
            validate_request(team_request)
        problems = " | ".join(exc.value.problems)
        assert "tabu_list_size" in problems
        assert "At least one objective weight must be positive" in problems
        assert "Unknown soft rule 'be-nice'" in problems

    def test_non_positive_timeouts(self, team_request):
        team_request.config = SchedulingConfig(timeout_ms=0, pareto_timeout_ms=-5)
        with pytest.raises(ValidationError) as exc:
            validate_request(team_request)
        assert "Config timeout_ms must be >= 1" in exc.value.problems
        assert "Config pareto_timeout_ms must be >= 1" in exc.value.problems

    def test_zero_backtracks_allowed(self, team_request):
        team_request.config = SchedulingConfig(max_backtracks=0)
        validate_request(team_request)

    def test_every_problem_is_logged(self, team_request, caplog):
        team_request.excluded_tasks = ["ghost", "phantom"]
        with pytest.raises(ValidationError):
            validate_request(team_request)
        assert "Excluded task 'ghost'" in caplog.text
        assert "Excluded task 'phantom'" in caplog.text

    def test_validation_error_is_value_error(self):
        assert issubclass(ValidationError, ValueError)
        assert ValidationError("boom").problems == ["boom"]


class TestValidateAssignments:
    """Warnings describe an existing schedule without rejecting it."""

    @pytest.fixture
    def ctx(self, team_request, build_context):
        team_request.days = ("Mon",)
        team_request.requirements = [Requirement("load", [TypeCount(REGULAR, 1)])]
        return build_context(team_request)

    def test_skill_and_availability(self, team_request, build_context):
        ctx = build_context(team_request)
        warnings = validate_assignments(ctx, [
            AssignmentCell("ben", "Mon", "load"),
            AssignmentCell("cid", "Wed", "load"),
        ])
        kinds = [w.kind for w in warnings]
        assert SKILL_MISMATCH in kinds
        assert AVAILABILITY_CONFLICT in kinds

    def test_double_assignment(self, ctx):
        warnings = validate_assignments(ctx, [
            AssignmentCell("ana", "Mon", "load"),
            AssignmentCell("ana", "Mon", "pack"),
        ])
        doubles = [w for w in warnings if w.kind == DOUBLE_ASSIGNMENT]
        assert len(doubles) == 1
        assert doubles[0].worker_id == "ana"

    def test_understaffed_and_overstaffed(self, ctx):
        assert [w.kind for w in validate_assignments(ctx, [])] == [UNDERSTAFFED]
        warnings = validate_assignments(ctx, [
            AssignmentCell("ana", "Mon", "load"),
            AssignmentCell("cid", "Mon", "load"),
        ])
        assert [w.kind for w in warnings] == [OVERSTAFFED]

    def test_protected_staffing_not_reported(self, ctx):
        warnings = validate_assignments(ctx, [
            AssignmentCell("ana", "Mon", "load", locked=True),
            AssignmentCell("cid", "Mon", "load", pinned=True),
        ])
        assert warnings == []

    def test_collect_warnings_on_plan(self, ctx):
        plan = PlanState(ctx)
        plan.assign(ctx.worker_index["ana"], 0, "load")
        assert collect_warnings(ctx, plan) == []


class TestPlanInvariants:

    @pytest.fixture
    def ctx(self, team_request, build_context):
        return build_context(team_request)

    def test_clean_plan_passes(self, ctx):
        plan = PlanState(ctx)
        plan.assign(ctx.worker_index["ana"], 0, "load")
        assert_plan_invariants(ctx, plan, {})

    def test_changed_protected_cell(self, ctx):
        plan = PlanState(ctx)
        plan.assign(ctx.worker_index["ana"], 0, "load")
        with pytest.raises(InvariantViolation, match="protected cell"):
            assert_plan_invariants(ctx, plan, {(ctx.worker_index["ana"], 0): "pack"})

    def test_operator_type_not_demanded(self, ctx):
        """Loading only asks for Regular operators."""
        ctx.config.strict_skill_matching = False
        plan = PlanState(ctx)
        plan.assign(ctx.worker_index["dia"], 0, "load")
        with pytest.raises(InvariantViolation, match="operator type Flex not required"):
            assert_plan_invariants(ctx, plan, {})

    def test_coordinator_exclusivity(self, ctx):
        plan = PlanState(ctx)
        plan.assign(ctx.worker_index["fay"], 0, "pack")
        with pytest.raises(InvariantViolation, match="coordinator exclusivity"):
            assert_plan_invariants(ctx, plan, {})

    def test_skill_mismatch(self, ctx):
        plan = PlanState(ctx)
        plan.assign(ctx.worker_index["ben"], 0, "load")
        with pytest.raises(InvariantViolation, match="skill mismatch"):
            assert_plan_invariants(ctx, plan, {})

    def test_baseline_cells_exempt(self, ctx):
        """A caller's locked cell may break a rule; it is the caller's call."""
        plan = PlanState(ctx)
        ben = ctx.worker_index["ben"]
        plan.assign(ben, 0, "load")
        assert_plan_invariants(ctx, plan, {(ben, 0): "load"})
