"""Error taxonomy shared across the pipeline."""

from typing import Optional


class ForgeError(Exception):
    """Base class for pipeline errors."""


class GenerationFailure(ForgeError):
    """The code-synthesis collaborator could not produce an artifact."""


class ValidationFailure(ForgeError):
    """A Six Eyes gate rejected the artifact."""

    def __init__(self, gate: str, reason: str, details: Optional[object] = None):
        super().__init__(f"{gate} failed: {reason}")
        self.gate = gate
        self.reason = reason
        self.details = details


class PaymentSetupFailure(ForgeError):
    """Creating the product, price or payment link failed."""


class BuildFailure(ForgeError):
    """A platform builder's pipeline failed at some stage."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage


class DeploymentFailure(ForgeError):
    """A post-approval production push failed."""


class CollaboratorTimeout(ForgeError, TimeoutError):
    """A single collaborator call exceeded its deadline."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(f"{operation} timed out after {timeout:g}s")
        self.operation = operation
        self.timeout = timeout


class StepTimeout(ForgeError, TimeoutError):
    """A step exhausted its overall time budget."""

    def __init__(self, step_id: str, timeout: float):
        super().__init__(f"step {step_id} exceeded its {timeout:g}s budget")
        self.step_id = step_id
        self.timeout = timeout


class ProjectNotFoundError(ForgeError, KeyError):
    """No project is registered under the given order id."""

    def __init__(self, order_id: str):
        super().__init__(f"Project not found: {order_id}")
        self.order_id = order_id

    def __str__(self):
        return self.args[0]


class InvalidProjectStateError(ForgeError):
    """The requested transition is not allowed from the project's current status."""

    def __init__(self, order_id: str, status: str, expected: str):
        super().__init__(f"Project {order_id} is {status}, expected {expected}")
        self.order_id = order_id
        self.status = status
        self.expected = expected


class ConfigurationWarning(UserWarning):
    """A credential or tool is missing; the matching collaborator will fail when used."""
