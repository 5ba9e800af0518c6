"""Error Handler - the consecutive-failure circuit breaker and error reporting.

Pure policy: nothing here calls an external service.
"""

import logging
import traceback
import warnings
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from contracts import (
    ProjectState,
    StepStatus,
    ErrorReport,
    StepSnapshot,
    EnvironmentReport,
    ConfigurationWarning,
)
from config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

STATUS_ICONS = {
    StepStatus.COMPLETED: "[x]",
    StepStatus.FAILED: "[!]",
    StepStatus.IN_PROGRESS: "[~]",
    StepStatus.PENDING: "[ ]",
}


class ErrorHandler:
    """Halt policy, error formatting and environment checks."""

    def __init__(self, max_consecutive_failures: Optional[int] = None):
        self.max_consecutive_failures = max_consecutive_failures or default_settings.max_consecutive_failures

    def should_halt(self, state: ProjectState) -> bool:
        return state.failure_streak >= self.max_consecutive_failures

    def record_step_success(self, state: ProjectState) -> None:
        state.failure_streak = 0

    def record_step_failure(self, state: ProjectState) -> bool:
        """Count one exhausted step. Returns True when the breaker trips."""
        state.failure_streak += 1
        return self.should_halt(state)

    @staticmethod
    def format_error(error: Any) -> str:
        """Render an exception as 'Type: message' plus its traceback."""
        if isinstance(error, BaseException):
            text = f"{type(error).__name__}: {error}"
            if error.__traceback__ is not None:
                tb = "".join(traceback.format_exception(type(error), error, error.__traceback__))
                text = f"{text}\n{tb}"
            return text
        return str(error)

    def create_error_report(self, state: ProjectState, error: Any) -> ErrorReport:
        return ErrorReport(
            order_id=state.order_id,
            project_name=state.project_name,
            status=state.status,
            failure_streak=state.failure_streak,
            error=self.format_error(error),
            steps=[
                StepSnapshot(id=s.id, title=s.title, status=s.status, retries=s.retries)
                for s in state.plan
            ],
            timestamp=datetime.now(timezone.utc),
        )

    def log_project_state(self, state: ProjectState, label: str = "State") -> None:
        lines = [
            f"{label}:",
            f"  Order ID: {state.order_id}",
            f"  Project: {state.project_name}",
            f"  Status: {state.status.value}",
            f"  Current Step: {state.current_step_index + 1}/{len(state.plan)}",
            f"  Failure Streak: {state.failure_streak}",
            "  Steps:",
        ]
        for index, step in enumerate(state.plan, start=1):
            lines.append(
                f"    {STATUS_ICONS[step.status]} {index}. {step.title} ({step.status.value}, {step.retries} retries)"
            )
        logger.info("\n".join(lines), extra={"order_id": state.order_id, "phase": state.status.value})

    @staticmethod
    def required_credentials(cfg: Settings) -> Dict[str, bool]:
        """Credential name -> whether it is set."""
        return {
            cfg.llm_api_key_env: bool(cfg.llm_api_key()),
            "BLACKSTAR_EMAIL_USER": bool(cfg.email_user),
            "BLACKSTAR_EMAIL_PASSWORD": bool(cfg.email_password),
            "BLACKSTAR_STRIPE_TEST_KEY": bool(cfg.stripe_test_key),
            "BLACKSTAR_ADMIN_EMAIL": bool(cfg.admin_email),
        }

    def check_environment(
        self,
        cfg: Optional[Settings] = None,
        extra_missing: Optional[List[str]] = None,
    ) -> EnvironmentReport:
        """Report missing credentials without blocking startup.

        Args:
            cfg: Settings to inspect (defaults to the global settings)
            extra_missing: Additional missing items reported by platform builders
        """
        cfg = cfg or default_settings
        report = EnvironmentReport()
        for name, present in self.required_credentials(cfg).items():
            (report.present if present else report.missing).append(name)
        for name in extra_missing or []:
            if name not in report.missing:
                report.missing.append(name)

        for name in report.missing:
            warnings.warn(f"{name} is not set", ConfigurationWarning, stacklevel=2)
        if report.missing:
            logger.warning(
                "Some credentials are not set (%s); the matching collaborators will fail when used",
                ", ".join(report.missing),
            )
        return report
