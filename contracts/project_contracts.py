"""Project lifecycle contracts: orders, plan steps and the shared project state."""

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Dict, Optional, Set
from enum import Enum
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    """Status of a single plan step."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ProjectStatus(str, Enum):
    """Lifecycle phase of a project."""
    PLANNING = "planning"
    CODING = "coding"
    BUILDING = "building"
    AWAITING_APPROVAL = "awaiting_approval"
    DEPLOYING = "deploying"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({ProjectStatus.COMPLETED, ProjectStatus.FAILED})


class Platform(str, Enum):
    """Deployment target."""
    WEB = "web"
    ANDROID = "android"


class Order(BaseModel):
    """A submitted project order. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    order_id: str = Field(..., min_length=1, description="Unique order identifier")
    project_name: str = Field(..., min_length=1, description="Human-readable project name")
    requirements: str = Field(..., min_length=1, description="Natural-language requirements text")

    @field_validator("project_name", "requirements")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class Step(BaseModel):
    """One unit of planned work, driven through the retry loop by the Executor."""
    id: str = Field(..., description="Step identifier, e.g. step-1")
    title: str = Field(..., description="Short step title")
    description: str = Field(..., description="What this step must produce")
    status: StepStatus = Field(default=StepStatus.PENDING)
    retries: int = Field(default=0, ge=0, description="Attempts consumed so far")
    artifact: Optional[str] = Field(None, description="Latest generated artifact text")
    last_error: Optional[str] = Field(None, description="Diagnostics from the most recent failed attempt")

    @property
    def is_terminal(self) -> bool:
        return self.status in (StepStatus.COMPLETED, StepStatus.FAILED)


class PaymentInfo(BaseModel):
    """Identifiers returned by the payment collaborator."""
    product_id: str
    price_id: str
    payment_link: str
    live: bool = Field(default=False, description="True once recreated in live mode")


class PlatformDetection(BaseModel):
    """Outcome of classifying requirements text into deployment platforms."""
    platforms: List[Platform] = Field(..., min_length=1)
    ambiguous: bool = Field(default=False, description="True when no strong signal decided the result")
    evidence: List[str] = Field(default_factory=list, description="Matched phrases that drove the decision")


class ProjectState(BaseModel):
    """Mutable state of one project, owned by the Orchestrator.

    The Executor and Logistics Executor mutate it during their turn of the
    pipeline; there is only ever one writer per project at a time.
    """
    order_id: str
    project_name: str
    requirements: str
    plan: List[Step] = Field(default_factory=list)
    current_step_index: int = Field(default=0, ge=0)
    status: ProjectStatus = Field(default=ProjectStatus.PLANNING)
    workspace_dir: str = Field(..., description="Per-project workspace directory")
    failure_streak: int = Field(default=0, ge=0, description="Consecutive failed steps in this invocation")
    platforms: Set[Platform] = Field(default_factory=set)
    platform_detection: Optional[PlatformDetection] = None
    per_platform_results: Dict[Platform, "PlatformBuildResult"] = Field(default_factory=dict)
    deployment_urls: Dict[Platform, str] = Field(default_factory=dict)
    payment: Optional[PaymentInfo] = None
    last_error: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_order(cls, order: Order, workspace_dir: str) -> "ProjectState":
        """Build the initial planning-phase state for an order."""
        return cls(
            order_id=order.order_id,
            project_name=order.project_name,
            requirements=order.requirements,
            workspace_dir=workspace_dir,
        )

    @property
    def current_step(self) -> Optional[Step]:
        if 0 <= self.current_step_index < len(self.plan):
            return self.plan[self.current_step_index]
        return None

    def completed_steps(self) -> List[Step]:
        return [s for s in self.plan if s.status == StepStatus.COMPLETED]

    def touch(self) -> None:
        self.updated_at = _utcnow()


from .logistics_contracts import PlatformBuildResult  # noqa: E402

ProjectState.model_rebuild()
