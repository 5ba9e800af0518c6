"""Executor - drives one project's plan through the coder with bounded retries.

Per step: pending -> in_progress -> completed | failed. A step gets at most
`max_step_attempts` attempts (synthesis, optional Six Eyes validation and
payment setup combined). Each step that exhausts its attempts feeds the
circuit breaker; the breaker tripping fails the whole project immediately.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from agents.interfaces import Coder, CodingContext
from contracts import (
    ProjectState,
    ProjectStatus,
    Step,
    StepStatus,
    DeploymentResult,
    ForgeError,
    GenerationFailure,
    ValidationFailure,
    PaymentSetupFailure,
    CollaboratorTimeout,
    StepTimeout,
)
from integrations.payments import PaymentSetup
from log_config import project_logger
from perception import PerceptionLayer, domain_tag_for
from config import Settings, settings as default_settings
from .error_handler import ErrorHandler
from .timeouts import call_with_timeout, StepDeadline

logger = logging.getLogger(__name__)

GENERATED_DIR = "generated"
ARTIFACT_SUFFIX = ".ts"

RETRYABLE = (GenerationFailure, ValidationFailure, PaymentSetupFailure, CollaboratorTimeout)


def _describe(error: Exception) -> str:
    """Failure text handed back to the coder on the next attempt."""
    text = str(error)
    details = getattr(error, "details", None)
    if isinstance(details, dict):
        for key in ("stdout", "stderr"):
            if details.get(key):
                text += f"\n{key}:\n{details[key]}"
    return text


class Executor:
    """Bounded-retry step loop for a single project."""

    def __init__(
        self,
        coder: Coder,
        perception: Optional[PerceptionLayer] = None,
        payments: Optional[PaymentSetup] = None,
        error_handler: Optional[ErrorHandler] = None,
        cfg: Optional[Settings] = None,
    ):
        """Initialize the Executor.

        Args:
            coder: Code-synthesis collaborator
            perception: Six Eyes gates; required unless step validation is off
            payments: Payment collaborator used for payment-setup steps
            error_handler: Circuit-breaker policy
            cfg: Settings (defaults to the global settings)
        """
        self.cfg = cfg or default_settings
        self.coder = coder
        self.perception = perception
        self.payments = payments
        self.error_handler = error_handler or ErrorHandler(self.cfg.max_consecutive_failures)
        self.max_attempts = self.cfg.max_step_attempts
        self.validation_mode = self.cfg.step_validation
        if self.validation_mode != "off" and perception is None:
            raise ValueError(f"step_validation={self.validation_mode} requires a PerceptionLayer")

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def execute_project(
        self,
        state: ProjectState,
        on_progress: Optional[Callable[[ProjectState], None]] = None,
    ) -> ProjectState:
        """Run every non-terminal step in plan order.

        Completed steps are skipped, so calling this again resumes where the
        last run stopped. The failure streak counts consecutive failed steps
        within this invocation only.

        Args:
            state: Project to drive; mutated in place
            on_progress: Called with the state after every finished step

        Returns:
            The same state. status stays CODING when every step completed,
            otherwise it is FAILED.
        """
        log = project_logger(logger, state.order_id, "coding")
        state.status = ProjectStatus.CODING
        state.failure_streak = 0
        state.touch()
        log.info("Starting execution of %d steps for %s", len(state.plan), state.project_name)

        for index, step in enumerate(state.plan):
            if step.status == StepStatus.COMPLETED:
                continue
            if step.status == StepStatus.FAILED:
                log.info("Skipping %s: failed in an earlier run", step.id)
                continue

            state.current_step_index = index
            step.status = StepStatus.IN_PROGRESS
            state.touch()

            try:
                succeeded = self.execute_step(state, step)
            except Exception as e:
                log.exception("Unexpected error while executing %s", step.id)
                step.last_error = f"{type(e).__name__}: {e}"
                succeeded = False

            if succeeded:
                step.status = StepStatus.COMPLETED
                self.error_handler.record_step_success(state)
                log.info("Step %s completed after %d failed attempts", step.id, step.retries)
                self._progress(state, on_progress)
                continue

            step.status = StepStatus.FAILED
            state.last_error = f"Step {step.id} ({step.title}) failed: {step.last_error}"
            halted = self.error_handler.record_step_failure(state)
            log.error("Step %s failed (streak %d): %s", step.id, state.failure_streak, step.last_error)
            self._progress(state, on_progress)
            if halted:
                log.error(
                    "Halted after %d consecutive failed steps to stop further generation spend",
                    state.failure_streak,
                )
                state.status = ProjectStatus.FAILED
                self.error_handler.log_project_state(state, "Halted Project")
                state.touch()
                return state

        if all(s.status == StepStatus.COMPLETED for s in state.plan):
            log.info("All steps completed")
        else:
            failed = [s.id for s in state.plan if s.status != StepStatus.COMPLETED]
            state.status = ProjectStatus.FAILED
            state.last_error = state.last_error or f"Steps not completed: {', '.join(failed)}"
        state.touch()
        return state

    @staticmethod
    def _progress(state: ProjectState, on_progress) -> None:
        state.touch()
        if on_progress is not None:
            on_progress(state)

    def execute_step(self, state: ProjectState, step: Step) -> bool:
        """Attempt one step until it succeeds, runs out of attempts or runs out of time."""
        log = project_logger(logger, state.order_id, "coding")
        deadline = StepDeadline(step.id, self.cfg.step_timeout_seconds)

        while step.retries < self.max_attempts:
            try:
                deadline.check()
            except StepTimeout as e:
                step.last_error = str(e)
                return False

            log.info("Attempt %d/%d for %s: %s", step.retries + 1, self.max_attempts, step.id, step.title)
            try:
                self._attempt(state, step, deadline)
            except RETRYABLE as e:
                step.retries += 1
                step.last_error = _describe(e)
                log.warning("Attempt failed for %s: %s", step.id, e)
                continue
            return True
        return False

    def _attempt(self, state: ProjectState, step: Step, deadline: StepDeadline) -> None:
        context = CodingContext(
            order_id=state.order_id,
            project_name=state.project_name,
            requirements=state.requirements,
            completed_steps=[f"{s.title}: {s.description}" for s in state.completed_steps()],
            step_title=step.title,
            step_description=step.description,
            prior_artifact=step.artifact,
            previous_error=step.last_error,
        )
        code = call_with_timeout("coder", deadline.bound(self.cfg.collaborator_timeout_seconds), self._generate, context)
        step.artifact = code
        self.save_artifact(state.workspace_dir, step.id, code)

        if self.validation_mode != "off":
            self._validate(state, step, deadline)

        if self.is_payment_step(step):
            self._setup_payment(state, step, deadline)

    def _generate(self, context: CodingContext) -> str:
        try:
            code = self.coder.generate(context)
        except GenerationFailure:
            raise
        except Exception as e:
            raise GenerationFailure(f"{type(e).__name__}: {e}") from e
        if not code or not code.strip():
            raise GenerationFailure("Coder returned an empty artifact")
        return code

    def _validate(self, state: ProjectState, step: Step, deadline: StepDeadline) -> None:
        target_url = self.cfg.preview_url if self.validation_mode == "full" else None
        result = call_with_timeout(
            "six_eyes",
            deadline.bound(self.cfg.collaborator_timeout_seconds),
            self.perception.run_six_eyes,
            step.artifact,
            Path(state.workspace_dir),
            target_url,
            domain_tag_for(step.title),
            state.order_id,
        )
        failure = result.first_failure()
        if failure is not None:
            gate, gate_result = failure
            raise ValidationFailure(gate, gate_result.error or "rejected", gate_result.details)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def is_payment_step(self, step: Step) -> bool:
        title = step.title.lower()
        return any(keyword in title for keyword in self.cfg.payment_keywords)

    def _setup_payment(self, state: ProjectState, step: Step, deadline: StepDeadline) -> None:
        if self.payments is None:
            raise PaymentSetupFailure("No payment collaborator configured")
        try:
            info = call_with_timeout(
                "payment_setup",
                deadline.bound(self.cfg.collaborator_timeout_seconds),
                self.payments.automate,
                state,
                self.cfg.default_price_amount,
                self.cfg.default_currency,
            )
        except (PaymentSetupFailure, CollaboratorTimeout):
            raise
        except Exception as e:
            raise PaymentSetupFailure(f"{type(e).__name__}: {e}") from e

        state.payment = info
        if step.artifact and "<html" in step.artifact.lower():
            step.artifact = self.payments.inject_link(step.artifact, info.payment_link)
            self.save_artifact(state.workspace_dir, step.id, step.artifact)

    # ------------------------------------------------------------------
    # Post-approval
    # ------------------------------------------------------------------

    def deploy_project(self, state: ProjectState) -> DeploymentResult:
        """Switch payments to live mode. Reported on failure, never retried.

        Production URLs come from the per-platform deployers, not from here.
        """
        log = project_logger(logger, state.order_id, "deploying")
        if state.payment is None or state.payment.live:
            return DeploymentResult(success=True)
        if self.payments is None:
            return DeploymentResult(success=False, error="No payment collaborator configured for live switch")

        log.info("Switching payments to live mode")
        live = self.payments.for_live_mode()
        try:
            info = call_with_timeout(
                "payment_live_switch",
                self.cfg.collaborator_timeout_seconds,
                live.automate,
                state,
                self.cfg.default_price_amount,
                self.cfg.default_currency,
            )
        except ForgeError as e:
            log.error("Live payment setup failed: %s", e)
            return DeploymentResult(success=False, error=f"Live payment setup failed: {e}")

        state.payment = info
        log.info("Live payment link: %s", info.payment_link)
        return DeploymentResult(success=True)

    # ------------------------------------------------------------------
    # Workspace
    # ------------------------------------------------------------------

    @staticmethod
    def save_artifact(workspace_dir: str, step_id: str, code: str) -> Path:
        code_dir = Path(workspace_dir) / GENERATED_DIR
        code_dir.mkdir(parents=True, exist_ok=True)
        path = code_dir / f"{step_id}{ARTIFACT_SUFFIX}"
        path.write_text(code, encoding="utf-8")
        return path
