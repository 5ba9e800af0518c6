"""Operator-facing reports: error reports and environment checks."""

from pydantic import BaseModel, Field
from typing import List
from datetime import datetime

from .project_contracts import StepStatus, ProjectStatus


class StepSnapshot(BaseModel):
    """Per-step row in an error report."""
    id: str
    title: str
    status: StepStatus
    retries: int


class ErrorReport(BaseModel):
    """Structured error report handed to the notifier."""
    order_id: str
    project_name: str
    status: ProjectStatus
    failure_streak: int
    error: str
    steps: List[StepSnapshot] = Field(default_factory=list)
    timestamp: datetime

    def render_text(self) -> str:
        """Plain-text rendering used in notifications and logs."""
        lines = [
            f"Order: {self.order_id}",
            f"Project: {self.project_name}",
            f"Status: {self.status.value}",
            f"Consecutive failures: {self.failure_streak}",
            f"Time: {self.timestamp.isoformat()}",
            "",
            "Error:",
            self.error,
            "",
            "Steps:",
        ]
        for step in self.steps:
            lines.append(f"  {step.id:<10} {step.status.value:<12} retries={step.retries}  {step.title}")
        return "\n".join(lines)


class EnvironmentReport(BaseModel):
    """Which credentials and tools are configured. Never blocks startup."""
    missing: List[str] = Field(default_factory=list)
    present: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing
