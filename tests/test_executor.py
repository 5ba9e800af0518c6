"""Tests for the Executor step loop, circuit breaker and payment wiring."""

import time
from pathlib import Path

import pytest

from contracts import (
    GateVerdict,
    GenerationFailure,
    PaymentInfo,
    PaymentSetupFailure,
    ProjectStatus,
    StepStatus,
)
from orchestrator import ErrorHandler, Executor
from perception import PerceptionLayer

from fakes import FakeBrowser, FakeCoder, FakeCompiler, FakePayments, FakeReasoning, make_steps


def make_executor(cfg, coder=None, payments=None, perception=None):
    return Executor(
        coder=coder or FakeCoder(),
        perception=perception,
        payments=payments,
        error_handler=ErrorHandler(cfg.max_consecutive_failures),
        cfg=cfg,
    )


class TestExecuteProject:
    """Whole-plan behaviour."""

    def test_all_steps_complete(self, cfg, state):
        state.plan = make_steps(["Setup", "Core Features", "Testing"])
        coder = FakeCoder()
        make_executor(cfg, coder=coder).execute_project(state)
        assert state.status == ProjectStatus.CODING
        assert all(s.status == StepStatus.COMPLETED for s in state.plan)
        assert state.failure_streak == 0
        assert coder.titles() == ["Setup", "Core Features", "Testing"]

    def test_artifacts_written_to_workspace(self, cfg, state):
        state.plan = make_steps(["Setup"])
        make_executor(cfg).execute_project(state)
        path = Path(state.workspace_dir) / "generated" / "step-1.ts"
        assert path.read_text(encoding="utf-8") == state.plan[0].artifact

    def test_always_failing_coder_trips_breaker_after_three_steps(self, cfg, state):
        state.plan = make_steps(["Setup", "Core Features", "Testing", "Polish", "Docs"])
        coder = FakeCoder(always_fail=True)
        make_executor(cfg, coder=coder).execute_project(state)

        assert state.status == ProjectStatus.FAILED
        assert state.failure_streak == 3
        assert [s.status for s in state.plan] == [
            StepStatus.FAILED,
            StepStatus.FAILED,
            StepStatus.FAILED,
            StepStatus.PENDING,
            StepStatus.PENDING,
        ]
        assert [s.retries for s in state.plan[:3]] == [3, 3, 3]
        assert len(coder.calls) == 9
        assert "Polish" not in coder.titles()

    def test_single_exhausted_step_does_not_halt(self, cfg, state):
        state.plan = make_steps(["Setup", "Broken", "Testing"])

        def script(context):
            if context.step_title == "Broken":
                raise GenerationFailure("cannot do it")
            return "export {};"

        make_executor(cfg, coder=FakeCoder(script=script)).execute_project(state)
        assert [s.status for s in state.plan] == [StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.COMPLETED]
        assert state.failure_streak == 0
        assert state.status == ProjectStatus.FAILED
        assert "step-2" in state.last_error

    def test_success_resets_streak_between_failures(self, cfg, state):
        state.plan = make_steps(["Bad 1", "Bad 2", "Good", "Bad 3", "Bad 4"])

        def script(context):
            if context.step_title.startswith("Bad"):
                raise GenerationFailure("no")
            return "ok"

        make_executor(cfg, coder=FakeCoder(script=script)).execute_project(state)
        assert state.failure_streak == 2
        assert all(s.is_terminal for s in state.plan)

    def test_resume_skips_completed_and_failed_steps(self, cfg, state):
        state.plan = make_steps(["Setup", "Core Features", "Testing"])
        state.plan[0].status = StepStatus.COMPLETED
        state.plan[1].status = StepStatus.FAILED
        state.failure_streak = 2
        coder = FakeCoder()
        make_executor(cfg, coder=coder).execute_project(state)
        assert coder.titles() == ["Testing"]
        assert state.failure_streak == 0
        assert state.plan[2].status == StepStatus.COMPLETED

    def test_unexpected_error_fails_step_instead_of_escaping(self, cfg, state):
        state.plan = make_steps(["Setup", "Core Features"])
        state.plan[0].id = "setup/init"
        make_executor(cfg).execute_project(state)

        first, second = state.plan
        assert first.status == StepStatus.FAILED
        assert "FileNotFoundError" in first.last_error
        assert second.status == StepStatus.COMPLETED
        assert all(s.status != StepStatus.IN_PROGRESS for s in state.plan)
        assert state.status == ProjectStatus.FAILED
        assert state.failure_streak == 0

    def test_progress_callback_after_each_step(self, cfg, state):
        state.plan = make_steps(["Setup", "Testing"])
        seen = []
        make_executor(cfg).execute_project(state, on_progress=lambda s: seen.append(s.current_step_index))
        assert seen == [0, 1]


class TestExecuteStep:
    """Bounded retries for a single step."""

    def test_retry_passes_previous_error_to_coder(self, cfg, state):
        state.plan = make_steps(["Setup"])
        attempts = []

        def script(context):
            attempts.append(context.previous_error)
            if len(attempts) < 3:
                raise GenerationFailure(f"attempt {len(attempts)} failed")
            return "export const done = 1;"

        executor = make_executor(cfg, coder=FakeCoder(script=script))
        assert executor.execute_step(state, state.plan[0]) is True
        assert attempts == [None, "attempt 1 failed", "attempt 2 failed"]
        assert state.plan[0].retries == 2

    def test_unexpected_coder_error_is_wrapped_and_retried(self, cfg, state):
        state.plan = make_steps(["Setup"])

        def script(context):
            raise KeyError("choices")

        executor = make_executor(cfg, coder=FakeCoder(script=script))
        assert executor.execute_step(state, state.plan[0]) is False
        assert state.plan[0].retries == 3
        assert "KeyError" in state.plan[0].last_error

    def test_empty_artifact_counts_as_failure(self, cfg, state):
        state.plan = make_steps(["Setup"])
        executor = make_executor(cfg, coder=FakeCoder(script=lambda c: "   "))
        assert executor.execute_step(state, state.plan[0]) is False
        assert "empty" in state.plan[0].last_error

    def test_hung_coder_times_out_per_attempt(self, cfg, state):
        cfg.collaborator_timeout_seconds = 0.05
        state.plan = make_steps(["Setup"])

        def script(context):
            time.sleep(0.3)
            return "late"

        executor = make_executor(cfg, coder=FakeCoder(script=script))
        assert executor.execute_step(state, state.plan[0]) is False
        assert "timed out" in state.plan[0].last_error
        assert state.plan[0].retries == 3

    def test_step_budget_stops_further_attempts(self, cfg, state):
        cfg.step_timeout_seconds = 0.1
        cfg.collaborator_timeout_seconds = 5
        state.plan = make_steps(["Setup"])
        coder = FakeCoder(script=lambda c: time.sleep(0.2) or "late")
        executor = make_executor(cfg, coder=coder)
        assert executor.execute_step(state, state.plan[0]) is False
        assert len(coder.calls) == 1
        assert "budget" in state.plan[0].last_error


class TestValidationWiring:
    """Six Eyes inside the retry loop."""

    def test_validation_mode_requires_perception(self, cfg):
        cfg.step_validation = "static"
        with pytest.raises(ValueError):
            make_executor(cfg)

    def test_compile_failure_feeds_compiler_output_back(self, cfg, state):
        cfg.step_validation = "static"
        perception = PerceptionLayer(
            reasoning=FakeReasoning(),
            compiler=FakeCompiler(exit_code=2, stdout="error TS2304: Cannot find name 'foo'"),
            browser=FakeBrowser(),
            deny_list={},
        )
        state.plan = make_steps(["Setup"])
        coder = FakeCoder()
        executor = make_executor(cfg, coder=coder, perception=perception)
        assert executor.execute_step(state, state.plan[0]) is False
        assert "TS2304" in coder.calls[-1].previous_error
        assert coder.calls[-1].prior_artifact is not None

    def test_static_mode_never_opens_browser(self, cfg, state):
        cfg.step_validation = "static"
        cfg.preview_url = "https://preview.test"
        browser = FakeBrowser()
        perception = PerceptionLayer(
            reasoning=FakeReasoning(), compiler=FakeCompiler(), browser=browser, deny_list={}
        )
        state.plan = make_steps(["Setup"])
        assert make_executor(cfg, perception=perception).execute_step(state, state.plan[0])
        assert browser.urls == []

    def test_full_mode_uses_preview_url(self, cfg, state):
        cfg.step_validation = "full"
        cfg.preview_url = "https://preview.test"
        browser = FakeBrowser()
        perception = PerceptionLayer(
            reasoning=FakeReasoning(),
            compiler=FakeCompiler(),
            browser=browser,
            vision=FakeReasoning([GateVerdict(valid=True)]),
            deny_list={},
        )
        state.plan = make_steps(["Setup"])
        assert make_executor(cfg, perception=perception).execute_step(state, state.plan[0])
        assert browser.urls == ["https://preview.test"]


class TestPaymentSteps:
    """Payment setup during coding and the live switch after approval."""

    def test_is_payment_step(self, cfg):
        executor = make_executor(cfg)
        steps = make_steps(["Payment Integration", "Stripe Checkout", "Core Features"])
        assert [executor.is_payment_step(s) for s in steps] == [True, True, False]

    def test_payment_step_records_link_and_injects_html(self, cfg, state):
        state.plan = make_steps(["Payment Integration"])
        html = "<html><body><h1>Shop</h1></body></html>"
        payments = FakePayments()
        executor = make_executor(cfg, coder=FakeCoder(script=lambda c: html), payments=payments)
        assert executor.execute_step(state, state.plan[0])
        assert state.payment.payment_link == f"https://buy.stripe.com/test_{state.order_id}"
        assert state.payment.live is False
        assert state.payment.payment_link in state.plan[0].artifact
        saved = (Path(state.workspace_dir) / "generated" / "step-1.ts").read_text(encoding="utf-8")
        assert state.payment.payment_link in saved

    def test_payment_failure_is_retried(self, cfg, state):
        state.plan = make_steps(["Payment Integration"])
        payments = FakePayments(fail_with=PaymentSetupFailure("card network down"))
        executor = make_executor(cfg, payments=payments)
        assert executor.execute_step(state, state.plan[0]) is False
        assert state.plan[0].retries == 3
        assert "card network down" in state.plan[0].last_error
        assert state.payment is None

    def test_payment_step_without_collaborator_fails(self, cfg, state):
        state.plan = make_steps(["Stripe Checkout"])
        assert make_executor(cfg).execute_step(state, state.plan[0]) is False
        assert "No payment collaborator" in state.plan[0].last_error

    def test_deploy_project_switches_to_live(self, cfg, state):
        payments = FakePayments()
        state.payment = PaymentInfo(product_id="prod_test_1", price_id="p", payment_link="https://buy.stripe.com/t")
        result = make_executor(cfg, payments=payments).deploy_project(state)
        assert result.success
        assert state.payment.live is True
        assert state.payment.payment_link == f"https://buy.stripe.com/live_{state.order_id}"

    def test_deploy_project_without_payment_is_noop(self, cfg, state):
        result = make_executor(cfg).deploy_project(state)
        assert result.success
        assert state.payment is None

    def test_live_switch_failure_reported(self, cfg, state):
        payments = FakePayments()
        payments.live_copy = FakePayments(live=True, fail_with=PaymentSetupFailure("live key revoked"))
        state.payment = PaymentInfo(product_id="prod_test_1", price_id="p", payment_link="https://buy.stripe.com/t")
        result = make_executor(cfg, payments=payments).deploy_project(state)
        assert not result.success
        assert "live key revoked" in result.error
        assert state.payment.live is False
