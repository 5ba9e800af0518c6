"""Orchestrator - central state machine for Black Star Forge projects.

The Orchestrator:
1. Accepts orders and creates a workspace and project state for each
2. Runs planning, coding and platform builds on a worker pool
3. Parks verified projects in awaiting_approval for a human decision
4. Performs the approved production deployment, or records a rejection

Every project moves forward through
planning -> coding -> building -> awaiting_approval -> deploying -> completed,
and can drop to failed from any non-terminal phase.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from agents.interfaces import Planner
from contracts import (
    Order,
    Platform,
    ProjectState,
    ProjectStatus,
    TERMINAL_STATUSES,
    DeploymentResult,
    PlatformDeployResult,
    RejectionResult,
    GenerationFailure,
    ProjectNotFoundError,
    InvalidProjectStateError,
)
from integrations.notifier import Notifier
from logistics import LogisticsExecutor
from log_config import project_logger
from config import Settings, settings as default_settings
from .error_handler import ErrorHandler
from .executor import Executor
from .store import ProjectStore, InMemoryProjectStore
from .timeouts import call_with_timeout

logger = logging.getLogger(__name__)


def new_order_id() -> str:
    """Short random order identifier."""
    return uuid.uuid4().hex[:12]


class Orchestrator:
    """Owns the project registry and the lifecycle of every project."""

    def __init__(
        self,
        planner: Planner,
        executor: Executor,
        logistics: LogisticsExecutor,
        notifier: Notifier,
        store: Optional[ProjectStore] = None,
        error_handler: Optional[ErrorHandler] = None,
        cfg: Optional[Settings] = None,
        max_workers: Optional[int] = None,
        cost_tracker: Optional[Any] = None,
    ):
        """Initialize the Orchestrator.

        Args:
            planner: Produces the step plan for an order
            executor: Runs the plan through the coder
            logistics: Builds, verifies and deploys platforms
            notifier: Sends approval, error and confirmation messages
            store: Project registry (in-memory when omitted)
            error_handler: Error report formatting and environment checks
            cfg: Settings (defaults to the global settings)
            max_workers: Projects processed concurrently
            cost_tracker: Optional object exposing total_cost for statistics
        """
        self.cfg = cfg or default_settings
        self.planner = planner
        self.executor = executor
        self.logistics = logistics
        self.notifier = notifier
        self.store = store or InMemoryProjectStore()
        self.error_handler = error_handler or executor.error_handler
        self.cost_tracker = cost_tracker

        self._pool = ThreadPoolExecutor(
            max_workers=max_workers or self.cfg.max_concurrent_projects,
            thread_name_prefix="forge-project",
        )
        self._futures: Dict[str, Future] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def receive_order(self, order: Order) -> ProjectState:
        """Register an order and start its pipeline in the background.

        Returns:
            The new project state, in the planning phase

        Raises:
            ValueError: If a project with the same order id already exists
        """
        with self._lock:
            if order.order_id in self.store:
                raise ValueError(f"Project already exists: {order.order_id}")

            workspace = self.cfg.get_workspace_path() / order.order_id
            workspace.mkdir(parents=True, exist_ok=True)
            state = ProjectState.from_order(order, str(workspace))
            self.store.create(state)
            project_logger(logger, order.order_id, "planning").info(
                "Received order %s: %s", order.order_id, order.project_name
            )
            self._futures[order.order_id] = self._pool.submit(self._run_pipeline, state)
        return state

    def submit(self, project_name: str, requirements: str, order_id: Optional[str] = None) -> ProjectState:
        """Build an Order from raw fields and receive it."""
        return self.receive_order(
            Order(order_id=order_id or new_order_id(), project_name=project_name, requirements=requirements)
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _save(self, state: ProjectState) -> None:
        state.touch()
        self.store.update(state)

    def _set_status(self, state: ProjectState, status: ProjectStatus) -> None:
        state.status = status
        self._save(state)

    def _run_pipeline(self, state: ProjectState) -> ProjectState:
        """Plan, code and build one project, ending in awaiting_approval or failed."""
        log = project_logger(logger, state.order_id, "planning")
        try:
            self._plan(state)

            log = project_logger(logger, state.order_id, "coding")
            self._set_status(state, ProjectStatus.CODING)
            self.executor.execute_project(state, on_progress=self._save)
            if state.status == ProjectStatus.FAILED:
                self._fail(state, state.last_error or "Code generation failed")
                return state

            log = project_logger(logger, state.order_id, "building")
            state.status = ProjectStatus.BUILDING
            detection = self.logistics.classify(state.requirements)
            state.platform_detection = detection
            state.platforms = set(detection.platforms)
            if detection.ambiguous:
                log.warning(
                    "Platform detection was ambiguous, defaulting to %s",
                    ", ".join(p.value for p in detection.platforms),
                )
            self._save(state)

            build = self.logistics.build_all_platforms(state)
            if not build.overall_success:
                failures = "; ".join(f"{p.value}: {r.error}" for p, r in build.failures().items())
                self._fail(state, f"Platform build failed: {failures}")
                return state

            self._set_status(state, ProjectStatus.AWAITING_APPROVAL)
            log.info("Awaiting approval")
            self._safe_notify(state, "approval request", self.notifier.send_approval_request, state)
        except Exception as e:
            log.exception("Pipeline crashed")
            self._fail(state, e)
        return state

    def _plan(self, state: ProjectState) -> None:
        log = project_logger(logger, state.order_id, "planning")
        self._set_status(state, ProjectStatus.PLANNING)
        order = Order(order_id=state.order_id, project_name=state.project_name, requirements=state.requirements)
        plan = call_with_timeout(
            "planner", self.cfg.collaborator_timeout_seconds, self.planner.generate_plan, order
        )
        if not plan:
            raise GenerationFailure("Planner returned an empty plan")
        state.plan = plan
        state.current_step_index = 0
        self.planner.save_plan(Path(state.workspace_dir), plan)
        self._save(state)
        log.info("Plan ready with %d steps", len(plan))

    def _fail(self, state: ProjectState, error: Any) -> None:
        state.status = ProjectStatus.FAILED
        if isinstance(error, BaseException):
            state.last_error = f"{type(error).__name__}: {error}"
        else:
            state.last_error = str(error)
        report = self.error_handler.create_error_report(state, error)
        self._save(state)
        project_logger(logger, state.order_id, "failed").error("Project failed: %s", state.last_error)
        self._safe_notify(state, "error report", self.notifier.send_error_report, state, report.render_text())

    def _safe_notify(self, state: ProjectState, what: str, send, *args) -> None:
        try:
            send(*args)
        except Exception as e:
            project_logger(logger, state.order_id, state.status.value).error(
                "Failed to send %s: %s", what, e
            )

    # ------------------------------------------------------------------
    # Human decision
    # ------------------------------------------------------------------

    def _require(self, order_id: str) -> ProjectState:
        state = self.store.get(order_id)
        if state is None:
            raise ProjectNotFoundError(order_id)
        return state

    def _claim_for_decision(self, order_id: str, status: ProjectStatus) -> ProjectState:
        with self._lock:
            state = self._require(order_id)
            if state.status != ProjectStatus.AWAITING_APPROVAL:
                raise InvalidProjectStateError(
                    order_id, state.status.value, ProjectStatus.AWAITING_APPROVAL.value
                )
            self._set_status(state, status)
        return state

    def approve_deployment(self, order_id: str) -> DeploymentResult:
        """Deploy an approved project to production.

        Only valid in awaiting_approval. Payments are switched to live mode
        first, then every requested platform is pushed to production.

        Raises:
            ProjectNotFoundError: Unknown order id
            InvalidProjectStateError: Project is not awaiting approval
        """
        state = self._claim_for_decision(order_id, ProjectStatus.DEPLOYING)
        log = project_logger(logger, order_id, "deploying")
        log.info("Deployment approved")

        try:
            payment = self.executor.deploy_project(state)
            if not payment.success:
                return self._deployment_failed(state, payment.error or "Live payment switch failed", {})
            per_platform = self.logistics.deploy_production(state)
        except Exception as e:
            log.exception("Deployment crashed")
            return self._deployment_failed(state, f"{type(e).__name__}: {e}", {})

        failures = {p: r for p, r in per_platform.items() if not r.success}
        if failures or not per_platform:
            error = "; ".join(f"{p.value}: {r.error}" for p, r in failures.items()) or "No platforms deployed"
            return self._deployment_failed(state, error, per_platform)

        urls = {p: r.url for p, r in per_platform.items() if r.url}
        state.deployment_urls = urls
        self._set_status(state, ProjectStatus.COMPLETED)
        log.info("Deployed: %s", ", ".join(f"{p.value}={u}" for p, u in urls.items()))
        self._safe_notify(state, "deployment confirmation", self.notifier.send_deployment_confirmation, state, urls)
        return DeploymentResult(
            success=True,
            url=urls.get(Platform.WEB) or next(iter(urls.values()), None),
            urls=urls,
            per_platform=per_platform,
        )

    def _deployment_failed(
        self,
        state: ProjectState,
        error: str,
        per_platform: Dict[Platform, PlatformDeployResult],
    ) -> DeploymentResult:
        urls = {p: r.url for p, r in per_platform.items() if r.success and r.url}
        state.deployment_urls = urls
        self._fail(state, f"Deployment failed: {error}")
        return DeploymentResult(success=False, urls=urls, per_platform=per_platform, error=error)

    def reject_deployment(self, order_id: str, reason: str) -> RejectionResult:
        """Record a human rejection. The project ends failed with the reason kept.

        Raises:
            ProjectNotFoundError: Unknown order id
            InvalidProjectStateError: Project is not awaiting approval
        """
        with self._lock:
            state = self._require(order_id)
            if state.status != ProjectStatus.AWAITING_APPROVAL:
                raise InvalidProjectStateError(
                    order_id, state.status.value, ProjectStatus.AWAITING_APPROVAL.value
                )
            state.rejection_reason = reason
            state.last_error = f"Rejected: {reason}"
            self._set_status(state, ProjectStatus.FAILED)
        project_logger(logger, order_id, "failed").info("Deployment rejected: %s", reason)
        return RejectionResult(success=True, order_id=order_id, reason=reason)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_project_status(self, order_id: str) -> ProjectState:
        return self._require(order_id)

    def list_projects(self) -> List[ProjectState]:
        return self.store.list()

    def get_statistics(self) -> Dict[str, Any]:
        """Project counts, overall and per status."""
        projects = self.store.list()
        stats: Dict[str, Any] = {"total": len(projects)}
        for status in ProjectStatus:
            stats[status.value] = sum(1 for p in projects if p.status == status)
        if self.cost_tracker is not None:
            stats["generation_cost_usd"] = round(self.cost_tracker.total_cost, 4)
        return stats

    def wait_for_project(self, order_id: str, timeout: Optional[float] = None) -> ProjectState:
        """Block until the background pipeline of a project finishes.

        Raises:
            ProjectNotFoundError: Unknown order id
            TimeoutError: The pipeline is still running after timeout seconds
        """
        future = self._futures.get(order_id)
        if future is not None:
            try:
                future.result(timeout=timeout)
            except FutureTimeout:
                raise TimeoutError(f"Project {order_id} still running after {timeout}s") from None
        return self._require(order_id)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def prune_projects(self, older_than_hours: Optional[float] = None) -> List[str]:
        """Drop terminal projects last updated before the retention window.

        Workspaces on disk are left alone.

        Returns:
            Order ids removed from the registry
        """
        hours = older_than_hours if older_than_hours is not None else self.cfg.registry_retention_hours
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        removed = []
        with self._lock:
            for state in self.store.list():
                if state.status in TERMINAL_STATUSES and state.updated_at <= cutoff:
                    self.store.delete(state.order_id)
                    self._futures.pop(state.order_id, None)
                    removed.append(state.order_id)
        if removed:
            logger.info("Pruned %d projects: %s", len(removed), ", ".join(removed))
        return removed

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


def build_orchestrator(
    cfg: Optional[Settings] = None,
    store: Optional[ProjectStore] = None,
    notifier: Optional[Notifier] = None,
) -> Orchestrator:
    """Wire an Orchestrator with the production collaborators.

    Args:
        cfg: Settings (defaults to the global settings)
        store: Project store override (defaults to settings.store_backend)
        notifier: Notifier override (defaults to email, or log when unconfigured)

    Returns:
        Ready-to-use Orchestrator
    """
    from agents import PlannerAgent, CoderAgent, VerifierAgent, build_vision_verifier
    from integrations import StripePaymentSetup, build_notifier
    from logistics import VercelWebBuilder, AndroidBuilder
    from perception import PerceptionLayer, TypeScriptCompiler, PlaywrightBrowser
    from providers.cost_logger import get_cost_logger
    from .store import build_store

    cfg = cfg or default_settings
    reasoning = VerifierAgent(model=cfg.reasoning_model)
    vision = build_vision_verifier()
    browser = PlaywrightBrowser()
    perception = PerceptionLayer(
        reasoning=reasoning,
        compiler=TypeScriptCompiler(timeout=cfg.compile_timeout_seconds),
        browser=browser,
        vision=vision,
        deny_list=cfg.deny_list,
        navigation_timeout_ms=cfg.browser_navigation_timeout_ms,
        settle_seconds=cfg.browser_settle_seconds,
    )
    error_handler = ErrorHandler(cfg.max_consecutive_failures)
    executor = Executor(
        coder=CoderAgent(model=cfg.coder_model),
        perception=perception,
        payments=StripePaymentSetup(
            live=False,
            api_key=cfg.stripe_test_key,
            api_base=cfg.stripe_api_base,
            live_api_key=cfg.stripe_live_key,
        ),
        error_handler=error_handler,
        cfg=cfg,
    )
    logistics = LogisticsExecutor(
        builders={
            Platform.WEB: VercelWebBuilder(browser=browser, vision=vision, cfg=cfg),
            Platform.ANDROID: AndroidBuilder(vision=vision, cfg=cfg),
        }
    )
    return Orchestrator(
        planner=PlannerAgent(model=cfg.planner_model),
        executor=executor,
        logistics=logistics,
        notifier=notifier or build_notifier(cfg),
        store=store or build_store(cfg),
        error_handler=error_handler,
        cfg=cfg,
        cost_tracker=get_cost_logger(),
    )
