"""Shared fixtures: isolated settings and a fully faked pipeline."""

import os

# Use litellm's bundled model cost map so importing it never hits the network.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest

from config import Settings
from contracts import Order, Platform, ProjectState
from logistics import LogisticsExecutor
from orchestrator import ErrorHandler, Executor, InMemoryProjectStore, Orchestrator

from fakes import FakeBuilder, FakeCoder, FakeNotifier, FakePayments, FakePlanner


@pytest.fixture
def cfg(tmp_path):
    """Settings rooted in a temporary directory with fast timeouts."""
    return Settings(
        workspace_dir=str(tmp_path / "projects"),
        state_dir=str(tmp_path / "projects" / ".state"),
        store_backend="memory",
        step_validation="off",
        collaborator_timeout_seconds=5,
        step_timeout_seconds=30,
        preview_build_wait_seconds=0,
        app_launch_wait_seconds=0,
        vercel_token="vercel-test-token",
        email_user="",
        email_password="",
    )


@pytest.fixture
def order():
    return Order(order_id="order-1", project_name="Dog Walker", requirements="A landing page website for dog walkers")


@pytest.fixture
def state(tmp_path, order):
    workspace = tmp_path / "projects" / order.order_id
    workspace.mkdir(parents=True)
    return ProjectState.from_order(order, str(workspace))


@pytest.fixture
def web_builder():
    return FakeBuilder(Platform.WEB)


@pytest.fixture
def android_builder():
    return FakeBuilder(Platform.ANDROID, url="https://play.google.com/store/apps/details?id=com.example.app")


@pytest.fixture
def pipeline(cfg, web_builder, android_builder):
    """Orchestrator wired to fakes. Returns (orchestrator, parts)."""
    coder = FakeCoder()
    payments = FakePayments()
    notifier = FakeNotifier()
    planner = FakePlanner()
    error_handler = ErrorHandler(cfg.max_consecutive_failures)
    executor = Executor(coder=coder, payments=payments, error_handler=error_handler, cfg=cfg)
    logistics = LogisticsExecutor({Platform.WEB: web_builder, Platform.ANDROID: android_builder})
    orchestrator = Orchestrator(
        planner=planner,
        executor=executor,
        logistics=logistics,
        notifier=notifier,
        store=InMemoryProjectStore(),
        error_handler=error_handler,
        cfg=cfg,
        max_workers=2,
    )
    parts = {
        "coder": coder,
        "payments": payments,
        "notifier": notifier,
        "planner": planner,
        "executor": executor,
        "logistics": logistics,
        "web": web_builder,
        "android": android_builder,
    }
    yield orchestrator, parts
    orchestrator.shutdown()
