"""Tests for the Pydantic contracts.

Verifies that contracts can be instantiated with valid data, that
validation rejects bad input and that the helper methods behave.
"""

import pytest
from datetime import datetime, timezone

from contracts import (
    # Project
    StepStatus,
    ProjectStatus,
    TERMINAL_STATUSES,
    Platform,
    Order,
    Step,
    PaymentInfo,
    PlatformDetection,
    ProjectState,
    # Validation
    ValidationResult,
    GateVerdict,
    SixEyesResult,
    # Logistics
    PlatformBuildResult,
    MultiPlatformResult,
    DeploymentResult,
    # Reports
    StepSnapshot,
    ErrorReport,
    EnvironmentReport,
    # Errors
    ForgeError,
    ValidationFailure,
    CollaboratorTimeout,
    StepTimeout,
    ProjectNotFoundError,
    InvalidProjectStateError,
)


class TestProjectContracts:
    """Test order, step and project state contracts."""

    def test_order(self):
        order = Order(order_id="abc", project_name="Shop", requirements="Sell socks online")
        assert order.order_id == "abc"

    def test_order_is_frozen(self):
        order = Order(order_id="abc", project_name="Shop", requirements="Sell socks online")
        with pytest.raises(ValueError):
            order.project_name = "Other"

    def test_order_rejects_blank_fields(self):
        with pytest.raises(ValueError):
            Order(order_id="abc", project_name="   ", requirements="Sell socks")
        with pytest.raises(ValueError):
            Order(order_id="", project_name="Shop", requirements="Sell socks")

    def test_step_defaults(self):
        step = Step(id="step-1", title="Setup", description="Scaffold")
        assert step.status == StepStatus.PENDING
        assert step.retries == 0
        assert step.artifact is None
        assert not step.is_terminal

    def test_step_retries_non_negative(self):
        with pytest.raises(ValueError):
            Step(id="step-1", title="Setup", description="Scaffold", retries=-1)

    def test_state_from_order(self, order):
        state = ProjectState.from_order(order, "/tmp/ws")
        assert state.status == ProjectStatus.PLANNING
        assert state.failure_streak == 0
        assert state.plan == []
        assert state.platforms == set()
        assert state.current_step is None

    def test_current_and_completed_steps(self, state):
        state.plan = [
            Step(id="step-1", title="A", description="a", status=StepStatus.COMPLETED),
            Step(id="step-2", title="B", description="b"),
        ]
        state.current_step_index = 1
        assert state.current_step.id == "step-2"
        assert [s.id for s in state.completed_steps()] == ["step-1"]

    def test_touch_moves_updated_at(self, state):
        before = state.updated_at
        state.touch()
        assert state.updated_at >= before

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {ProjectStatus.COMPLETED, ProjectStatus.FAILED}

    def test_state_json_round_trip_keeps_platform_results(self, state):
        state.platforms = {Platform.WEB, Platform.ANDROID}
        state.per_platform_results = {
            Platform.WEB: PlatformBuildResult(platform=Platform.WEB, success=True, preview_url="https://x.vercel.app"),
        }
        state.payment = PaymentInfo(product_id="prod_1", price_id="price_1", payment_link="https://buy.stripe.com/x")
        restored = ProjectState.model_validate_json(state.model_dump_json())
        assert restored.platforms == {Platform.WEB, Platform.ANDROID}
        assert restored.per_platform_results[Platform.WEB].preview_url == "https://x.vercel.app"
        assert restored.payment.live is False

    def test_platform_detection_needs_a_platform(self):
        with pytest.raises(ValueError):
            PlatformDetection(platforms=[])


class TestValidationContracts:
    """Test Six Eyes result contracts."""

    def test_gate_verdict_reason_optional(self):
        verdict = GateVerdict(valid=True)
        assert verdict.reason == ""

    def test_first_failure_none_when_passed(self):
        result = SixEyesResult(
            pattern_gate=ValidationResult(passed=True),
            compile_gate=ValidationResult(passed=True),
            overall_passed=True,
        )
        assert result.first_failure() is None

    def test_first_failure_reports_failing_gate(self):
        failed = ValidationResult(passed=False, error="tsc exploded")
        result = SixEyesResult(
            pattern_gate=ValidationResult(passed=True),
            compile_gate=failed,
            overall_passed=False,
        )
        name, gate = result.first_failure()
        assert name == "compile_gate"
        assert gate.error == "tsc exploded"


class TestLogisticsContracts:
    """Test build aggregation contracts."""

    def test_aggregate_all_success(self):
        results = {
            Platform.WEB: PlatformBuildResult(platform=Platform.WEB, success=True),
            Platform.ANDROID: PlatformBuildResult(platform=Platform.ANDROID, success=True),
        }
        aggregate = MultiPlatformResult.aggregate(results)
        assert aggregate.overall_success
        assert aggregate.failures() == {}

    def test_aggregate_one_failure_fails_all(self):
        results = {
            Platform.WEB: PlatformBuildResult(platform=Platform.WEB, success=True),
            Platform.ANDROID: PlatformBuildResult(platform=Platform.ANDROID, success=False, error="gradle"),
        }
        aggregate = MultiPlatformResult.aggregate(results)
        assert not aggregate.overall_success
        assert list(aggregate.failures()) == [Platform.ANDROID]

    def test_aggregate_empty_is_failure(self):
        assert not MultiPlatformResult.aggregate({}).overall_success

    def test_deployment_result_defaults(self):
        result = DeploymentResult(success=True)
        assert result.urls == {}
        assert result.url is None


class TestReportContracts:
    """Test operator reports."""

    def test_error_report_render_text(self):
        report = ErrorReport(
            order_id="o-1",
            project_name="Shop",
            status=ProjectStatus.FAILED,
            failure_streak=3,
            error="GenerationFailure: nope",
            steps=[StepSnapshot(id="step-1", title="Setup", status=StepStatus.FAILED, retries=3)],
            timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        text = report.render_text()
        assert "o-1" in text
        assert "Consecutive failures: 3" in text
        assert "GenerationFailure: nope" in text
        assert "step-1" in text and "retries=3" in text

    def test_environment_report_ok(self):
        assert EnvironmentReport(present=["A"]).ok
        assert not EnvironmentReport(missing=["B"]).ok


class TestErrors:
    """Test the error taxonomy."""

    def test_validation_failure_fields(self):
        error = ValidationFailure("compile_gate", "exit 2", {"stdout": "x"})
        assert isinstance(error, ForgeError)
        assert error.gate == "compile_gate"
        assert error.details == {"stdout": "x"}
        assert "compile_gate failed: exit 2" == str(error)

    def test_timeouts_are_timeout_errors(self):
        assert isinstance(CollaboratorTimeout("coder", 5), TimeoutError)
        assert isinstance(StepTimeout("step-1", 60), TimeoutError)
        assert "coder timed out after 5s" == str(CollaboratorTimeout("coder", 5))

    def test_project_not_found_message(self):
        error = ProjectNotFoundError("missing")
        assert isinstance(error, KeyError)
        assert str(error) == "Project not found: missing"

    def test_invalid_state_message(self):
        error = InvalidProjectStateError("o-1", "coding", "awaiting_approval")
        assert "o-1" in str(error)
        assert error.expected == "awaiting_approval"
