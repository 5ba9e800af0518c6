"""Pydantic contracts for the Black Star Forge pipeline.

Every hand-off between the orchestrator, executor, perception layer and
logistics is typed through these contracts.
"""

from .project_contracts import (
    StepStatus,
    ProjectStatus,
    TERMINAL_STATUSES,
    Platform,
    Order,
    Step,
    PaymentInfo,
    PlatformDetection,
    ProjectState,
)

from .validation_contracts import (
    ValidationResult,
    GateVerdict,
    SixEyesResult,
)

from .logistics_contracts import (
    PlatformBuildResult,
    MultiPlatformResult,
    PlatformDeployResult,
    DeploymentResult,
    RejectionResult,
)

from .report_contracts import (
    StepSnapshot,
    ErrorReport,
    EnvironmentReport,
)

from .errors import (
    ForgeError,
    GenerationFailure,
    ValidationFailure,
    PaymentSetupFailure,
    BuildFailure,
    DeploymentFailure,
    CollaboratorTimeout,
    StepTimeout,
    ProjectNotFoundError,
    InvalidProjectStateError,
    ConfigurationWarning,
)

__all__ = [
    # Project
    "StepStatus",
    "ProjectStatus",
    "TERMINAL_STATUSES",
    "Platform",
    "Order",
    "Step",
    "PaymentInfo",
    "PlatformDetection",
    "ProjectState",
    # Validation
    "ValidationResult",
    "GateVerdict",
    "SixEyesResult",
    # Logistics
    "PlatformBuildResult",
    "MultiPlatformResult",
    "PlatformDeployResult",
    "DeploymentResult",
    "RejectionResult",
    # Reports
    "StepSnapshot",
    "ErrorReport",
    "EnvironmentReport",
    # Errors
    "ForgeError",
    "GenerationFailure",
    "ValidationFailure",
    "PaymentSetupFailure",
    "BuildFailure",
    "DeploymentFailure",
    "CollaboratorTimeout",
    "StepTimeout",
    "ProjectNotFoundError",
    "InvalidProjectStateError",
    "ConfigurationWarning",
]
