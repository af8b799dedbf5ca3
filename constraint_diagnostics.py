"""Staffing diagnostics for understaffed plans.

When a plan cannot cover its demand, this module helps identify why by:
1. Analyzing the input data for obvious shortages (pre-solve checks)
2. Computing the exact coverage ceiling with OR-Tools CP-SAT
3. Re-computing that ceiling with individual hard rules relaxed

This aids debugging and helps users understand which rule is the bottleneck.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ortools.sat.python import cp_model

from constants import COORDINATOR
from eligibility import could_ever_work
from plan_state import PlanState
from scheduler_builders import PlanningContext

SOLVER_TIME_LIMIT_SECONDS = 5.0


@dataclass
class ConstraintViolation:
    """Represents a single staffing conflict or risk."""
    category: str  # e.g., "coverage", "availability", "capacity"
    severity: str  # "error" (demand cannot be met), "warning" (tight)
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.category}: {self.message}"


@dataclass
class DiagnosticReport:
    """Complete diagnostic report for a planning request."""
    is_feasible: bool
    violations: list[ConstraintViolation] = field(default_factory=list)
    coverage_ceiling: Optional[int] = None
    total_demand: int = 0
    relaxation_results: dict[str, bool] = field(default_factory=dict)
    summary: str = ""

    def add_violation(self, violation: ConstraintViolation) -> None:
        self.violations.append(violation)

    def get_errors(self) -> list[ConstraintViolation]:
        return [v for v in self.violations if v.severity == "error"]

    def get_warnings(self) -> list[ConstraintViolation]:
        return [v for v in self.violations if v.severity == "warning"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_feasible": self.is_feasible,
            "violations": [
                {
                    "category": v.category,
                    "severity": v.severity,
                    "message": v.message,
                    "details": v.details,
                }
                for v in self.violations
            ],
            "coverage_ceiling": self.coverage_ceiling,
            "total_demand": self.total_demand,
            "relaxation_results": self.relaxation_results,
            "summary": self.summary,
        }

    def format_report(self) -> str:
        """Format the report as a human-readable string."""
        lines = ["=" * 60, "STAFFING DIAGNOSTIC REPORT", "=" * 60, ""]

        if self.is_feasible:
            lines.append("✓ Demand can be fully covered")
        else:
            lines.append("✗ Demand cannot be fully covered")
        if self.coverage_ceiling is not None:
            lines.append(f"  Coverage ceiling: {self.coverage_ceiling}/{self.total_demand} slots")

        lines.append("")

        errors = self.get_errors()
        warnings = self.get_warnings()

        if errors:
            lines.append(f"ERRORS ({len(errors)}):")
            lines.append("-" * 40)
            for v in errors:
                lines.append(f"  • [{v.category}] {v.message}")
                if v.details:
                    for k, val in v.details.items():
                        lines.append(f"      {k}: {val}")
            lines.append("")

        if warnings:
            lines.append(f"WARNINGS ({len(warnings)}):")
            lines.append("-" * 40)
            for v in warnings:
                lines.append(f"  • [{v.category}] {v.message}")
            lines.append("")

        if self.relaxation_results:
            lines.append("RELAXATION ANALYSIS:")
            lines.append("-" * 40)
            for rule, feasible in self.relaxation_results.items():
                status = "✓ full coverage" if feasible else "✗ still short"
                lines.append(f"  Without '{rule}': {status}")
            lines.append("")

        if self.summary:
            lines.append("SUMMARY:")
            lines.append("-" * 40)
            lines.append(f"  {self.summary}")
            lines.append("")

        lines.append("=" * 60)
        return "\n".join(lines)


class ConstraintDiagnostics:
    """Analyzes a planning context to identify why demand cannot be met."""

    def __init__(self, ctx: PlanningContext, plan: Optional[PlanState] = None):
        self.ctx = ctx
        self.plan = plan if plan is not None else PlanState(ctx)

    def analyze_pre_solve(self) -> DiagnosticReport:
        """Analyze demand against the roster before solving."""
        report = DiagnosticReport(is_feasible=True, total_demand=self.plan.total_demand())

        self._check_slot_coverage(report)
        self._check_worker_availability(report)
        self._check_daily_capacity(report)
        self._check_coordinator_coverage(report)

        if report.get_errors():
            report.is_feasible = False
            report.summary = f"Found {len(report.get_errors())} staffing problems that leave demand uncovered."
        else:
            report.summary = "No obvious staffing problems detected."

        return report

    def _free(self, w: int, d: int) -> bool:
        return self.plan.is_idle(w, d) and not self.plan.is_frozen(w, d)

    def _check_slot_coverage(self, report: DiagnosticReport) -> None:
        """Every open (day, task, type) group needs enough candidates."""
        ctx = self.ctx
        for d, day in enumerate(ctx.days):
            for task_id in ctx.tasks_with_demand(d):
                task = ctx.tasks[task_id]
                for op_type, missing in self.plan.open_slots(d, task_id).items():
                    candidates = [
                        worker.id for w, worker in enumerate(ctx.workers)
                        if self._free(w, d)
                        and (op_type is None or worker.operator_type == op_type)
                        and could_ever_work(ctx, w, task_id, d)
                    ]
                    label = op_type or "any"
                    if len(candidates) < missing:
                        report.add_violation(ConstraintViolation(
                            category="coverage",
                            severity="error",
                            message=(f"{task.name} on {day} needs {missing} {label} operator(s) "
                                     f"but only {len(candidates)} can do it"),
                            details={"day": day, "task_id": task_id, "operator_type": op_type,
                                     "needed": missing, "candidates": candidates},
                        ))
                    elif len(candidates) == missing:
                        report.add_violation(ConstraintViolation(
                            category="coverage",
                            severity="warning",
                            message=f"{task.name} on {day}: exactly {missing} {label} candidate(s), no slack",
                            details={"day": day, "task_id": task_id, "candidates": candidates},
                        ))

    def _check_worker_availability(self, report: DiagnosticReport) -> None:
        """Workers who cannot work at all this week."""
        for worker in self.ctx.workers:
            if not worker.is_active:
                report.add_violation(ConstraintViolation(
                    category="availability",
                    severity="warning",
                    message=f"{worker.name} is {worker.status} and will not be scheduled",
                    details={"worker_id": worker.id, "status": worker.status},
                ))
            elif not any(worker.is_available(day) for day in self.ctx.days):
                report.add_violation(ConstraintViolation(
                    category="availability",
                    severity="warning",
                    message=f"{worker.name} is unavailable on every planning day",
                    details={"worker_id": worker.id},
                ))

    def _check_daily_capacity(self, report: DiagnosticReport) -> None:
        """Total open headcount per day vs free, available workers."""
        ctx = self.ctx
        for d, day in enumerate(ctx.days):
            for coordinator in (False, True):
                needed = sum(self.plan.missing(d, t) for t in ctx.tasks_with_demand(d, coordinator))
                if not needed:
                    continue
                available = sum(
                    1 for w, worker in enumerate(ctx.workers)
                    if self._free(w, d) and worker.can_work(day) and worker.is_coordinator == coordinator
                )
                if available < needed:
                    pool = "coordinators" if coordinator else "operators"
                    report.add_violation(ConstraintViolation(
                        category="capacity",
                        severity="error",
                        message=f"{day}: {needed} open slot(s) but only {available} free {pool}",
                        details={"day": day, "needed": needed, "available": available},
                    ))

    def _check_coordinator_coverage(self, report: DiagnosticReport) -> None:
        ctx = self.ctx
        coordinator_tasks = ctx.scoped_tasks(coordinator=True)
        if coordinator_tasks and not any(w.operator_type == COORDINATOR for w in ctx.workers):
            demanded = [t for t in coordinator_tasks
                        if any(t in ctx.demand[d] for d in range(ctx.num_days))]
            if demanded:
                report.add_violation(ConstraintViolation(
                    category="coordinator",
                    severity="error",
                    message="Coordinator-only tasks have demand but the roster has no coordinators",
                    details={"tasks": demanded},
                ))

    # ------------------------------------------------------------------
    # Exact ceiling
    # ------------------------------------------------------------------

    def coverage_ceiling(self, relax: Optional[str] = None, time_limit: float = SOLVER_TIME_LIMIT_SECONDS) -> int:
        """Maximum number of demanded slots fillable on top of the current plan.

        Args:
            relax: optionally drop one hard rule: "skill_matching",
                "availability" or "operator_types".
        """
        ctx = self.ctx
        model = cp_model.CpModel()
        fill_terms = []

        for d, day in enumerate(ctx.days):
            per_worker: dict[int, list] = {}
            for task_id in ctx.tasks_with_demand(d):
                task = ctx.tasks[task_id]
                for op_type, missing in self.plan.open_slots(d, task_id).items():
                    if relax == "operator_types":
                        op_type_filter = None
                    else:
                        op_type_filter = op_type
                    group = []
                    for w, worker in enumerate(ctx.workers):
                        if not self._free(w, d):
                            continue
                        if op_type_filter is not None and worker.operator_type != op_type_filter:
                            continue
                        if worker.is_coordinator != task.coordinator_only:
                            continue
                        if relax != "availability" and not worker.can_work(day):
                            continue
                        if (relax != "skill_matching" and ctx.config.strict_skill_matching
                                and task.required_skill not in worker.skills):
                            continue
                        var = model.NewBoolVar(f"diag_w{w}_d{d}_{task_id}_{op_type}")
                        group.append(var)
                        per_worker.setdefault(w, []).append(var)
                    if group:
                        model.Add(sum(group) <= missing)
                        fill_terms.extend(group)
            for w, worker_vars in per_worker.items():
                model.AddAtMostOne(worker_vars)

        if not fill_terms:
            return self.plan.total_filled()

        model.Maximize(sum(fill_terms))
        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = time_limit
        solver.parameters.log_search_progress = False
        status = solver.Solve(model)
        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            return self.plan.total_filled()
        return self.plan.total_filled() + int(round(solver.ObjectiveValue()))

    def run_relaxation_analysis(self, logger=None) -> DiagnosticReport:
        """Pre-solve checks plus exact ceilings with single rules relaxed."""
        report = self.analyze_pre_solve()
        report.coverage_ceiling = self.coverage_ceiling()
        report.is_feasible = report.coverage_ceiling >= report.total_demand

        if report.is_feasible:
            report.summary = "Demand can be fully covered."
            return report

        for rule in ("skill_matching", "availability", "operator_types"):
            try:
                ceiling = self.coverage_ceiling(relax=rule)
                report.relaxation_results[rule] = ceiling >= report.total_demand
                if report.relaxation_results[rule] and logger:
                    logger.info(f"Relaxation test: dropping '{rule}' allows full coverage")
            except Exception as e:
                report.relaxation_results[rule] = False
                if logger:
                    logger.warning(f"Relaxation test for '{rule}' failed: {e}")

        covering = [k for k, v in report.relaxation_results.items() if v]
        short = report.total_demand - report.coverage_ceiling
        if covering:
            report.summary = f"{short} slot(s) uncoverable; full coverage when relaxing: {', '.join(covering)}"
        else:
            report.summary = f"{short} slot(s) uncoverable; not enough staff even with single rules relaxed."

        return report


def run_diagnostics(
    ctx: PlanningContext,
    plan: Optional[PlanState] = None,
    logger=None,
    full_analysis: bool = True,
) -> DiagnosticReport:
    """
    Run staffing diagnostics and return a report.

    Args:
        ctx: Planning context for the request
        plan: Plan holding protected cells (defaults to an empty plan)
        logger: Optional logger for output
        full_analysis: If True, compute CP-SAT ceilings (slower but exact)

    Returns:
        DiagnosticReport with violations and analysis results
    """
    diagnostics = ConstraintDiagnostics(ctx, plan)

    if full_analysis:
        report = diagnostics.run_relaxation_analysis(logger)
    else:
        report = diagnostics.analyze_pre_solve()

    if logger:
        for violation in report.get_errors():
            logger.error(str(violation))
        for violation in report.get_warnings():
            logger.warning(str(violation))

    return report
