"""Scheduler Service - Business logic layer between callers and the planning engine.

This module provides a clean API for planning operations, decoupling callers
(a UI, a web handler, a script) from the engine internals. Configuration
defaults, request parsing, validation and diagnostics all go through here.

Benefits:
- Callers never import solver modules directly
- Defaults live in one YAML file and can be overridden per request
- Malformed requests come back as data instead of exceptions
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from constraint_diagnostics import DiagnosticReport, run_diagnostics
from logger import get_logger, log_timing
from models import ScheduleWarning
from plan_state import PlanState
from schedule_checks import validate_assignments
from scheduler_builders import build_planning_context
from scheduler_config import (
    ScheduleRequest,
    SchedulingConfig,
    default_config_path,
    load_config,
    save_config,
)
from scheduling_engine import PlanOutcome, plan_week
from validation import InvariantViolation, ValidationError, validate_request

logger = get_logger('scheduler_service')


@dataclass
class PlanResponse:
    """Result of a service planning call."""
    success: bool
    outcome: Optional[PlanOutcome] = None
    error_message: str = ""
    problems: list[str] = field(default_factory=list)
    diagnostic_report: Optional[DiagnosticReport] = None

    @property
    def is_complete(self) -> bool:
        """Planned, and every demanded slot is filled."""
        if not self.success or self.outcome is None:
            return False
        stats = self.outcome.stats
        return stats.get("filled_slots", 0) >= stats.get("demanded_slots", 0)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.outcome is not None:
            data.update(self.outcome.to_dict())
        if self.error_message:
            data["error_message"] = self.error_message
        if self.problems:
            data["problems"] = list(self.problems)
        if self.diagnostic_report is not None:
            data["diagnostics"] = self.diagnostic_report.to_dict()
        return data


class SchedulerService:
    """
    Service layer for weekly planning.

    This class provides a clean API for:
    - Configuration persistence (YAML defaults)
    - Request building from plain dicts
    - Planning with any algorithm
    - Checking an existing schedule for problems
    - Explaining understaffing
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the scheduler service.

        Args:
            config_path: Path to configuration file. If None, uses default.
        """
        self._config_path = config_path or default_config_path()
        self._config = SchedulingConfig()
        self._load_config()

    def _load_config(self) -> None:
        try:
            self._config = load_config(self._config_path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning(f"Could not load config file: {e}")
            self._config = SchedulingConfig()

    # =========================================================================
    # Configuration Management
    # =========================================================================

    @property
    def config(self) -> SchedulingConfig:
        return self._config

    @property
    def config_path(self) -> str:
        return self._config_path

    def update_config(self, **overrides) -> SchedulingConfig:
        """Change the service defaults. Unknown keys are logged and ignored."""
        self._config = SchedulingConfig.from_dict(overrides, base=self._config)
        return self._config

    def save_config(self) -> bool:
        return save_config(self._config, self._config_path)

    # =========================================================================
    # Planning
    # =========================================================================

    def build_request(self, payload: dict) -> ScheduleRequest:
        """Parse a request payload on top of the service defaults."""
        return ScheduleRequest.from_dict(payload, base_config=self._config)

    def plan(self, request: ScheduleRequest, diagnose_shortage: bool = True) -> PlanResponse:
        """Plan one week.

        Args:
            request: The full planning request
            diagnose_shortage: attach a quick diagnostic report when demand
                is left uncovered

        Returns:
            PlanResponse with the outcome or the validation problems
        """
        try:
            outcome = plan_week(request)
        except ValidationError as e:
            logger.warning(f"Rejected planning request with {len(e.problems)} problem(s)")
            return PlanResponse(success=False, error_message=str(e), problems=list(e.problems))
        except InvariantViolation:
            raise
        except Exception as e:
            logger.error(f"Error planning week: {e}", exc_info=True)
            return PlanResponse(success=False, error_message=str(e))

        response = PlanResponse(success=True, outcome=outcome)
        if diagnose_shortage and not response.is_complete:
            response.diagnostic_report = self.diagnose(request, full_analysis=False)
            logger.warning(f"Demand not fully covered. {response.diagnostic_report.summary}")
        return response

    def plan_from_dict(self, payload: dict, **overrides) -> PlanResponse:
        """Plan from a plain-dict payload, e.g. decoded JSON.

        Keyword overrides are applied to the request's config, e.g.
        ``plan_from_dict(payload, algorithm="tabu", seed=7)``.
        """
        try:
            request = self.build_request(payload)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Could not parse planning request: {e}")
            return PlanResponse(success=False, error_message=f"Malformed request: {e}")
        if overrides:
            request.config = SchedulingConfig.from_dict(overrides, base=request.config)
        return self.plan(request)

    # =========================================================================
    # Checks and diagnostics
    # =========================================================================

    def validate_schedule(self, request: ScheduleRequest) -> list[ScheduleWarning]:
        """Warnings for the request's current assignments, without planning."""
        validate_request(request)
        ctx = build_planning_context(request)
        warnings = validate_assignments(ctx, request.current_assignments)
        logger.info(f"Schedule check: {len(warnings)} warning(s)")
        return warnings

    def diagnose(self, request: ScheduleRequest, full_analysis: bool = True) -> DiagnosticReport:
        """Explain why demand cannot be covered around the protected cells."""
        validate_request(request)
        ctx = build_planning_context(request)
        plan = PlanState.from_cells(ctx, request.current_assignments, frozen_only=True)
        with log_timing("staffing diagnostics", logger):
            return run_diagnostics(ctx, plan, logger=logger, full_analysis=full_analysis)
