"""Tests for notification bodies and notifier selection."""

from unittest.mock import patch

from contracts import PaymentInfo, Platform, PlatformBuildResult, PlatformDetection, StepStatus
from integrations.notifier import (
    EmailNotifier,
    LogNotifier,
    approval_body,
    build_notifier,
    confirmation_body,
    error_body,
)

from fakes import make_steps


class TestBodies:
    """Plain-text message content."""

    def test_approval_body(self, state):
        state.plan = make_steps(["Setup", "Testing"])
        state.plan[0].status = StepStatus.COMPLETED
        state.platforms = {Platform.WEB}
        state.platform_detection = PlatformDetection(platforms=[Platform.WEB], ambiguous=True)
        state.per_platform_results = {
            Platform.WEB: PlatformBuildResult(platform=Platform.WEB, success=True, preview_url="https://p.test")
        }
        state.payment = PaymentInfo(product_id="prod", price_id="price", payment_link="https://buy.stripe.com/t")

        body = approval_body(state, "http://forge.local")
        assert "Order ID: order-1" in body
        assert "Platforms: WEB" in body
        assert "  - Setup: done" in body
        assert "  - Testing: pending" in body
        assert "not stated explicitly" in body
        assert "Preview URL: https://p.test" in body
        assert "TEST mode" in body
        assert "blackstar approve order-1" in body
        assert "http://forge.local/api/deploy-approval" in body

    def test_error_body(self, state):
        state.plan = make_steps(["Setup"])
        state.plan[0].status = StepStatus.FAILED
        state.plan[0].retries = 3
        state.failure_streak = 1
        body = error_body(state, "Coder returned an empty artifact")
        assert "Consecutive failures: 1" in body
        assert "Coder returned an empty artifact" in body
        assert "  - Setup: failed (3 retries)" in body

    def test_confirmation_body(self, state):
        state.platforms = {Platform.WEB, Platform.ANDROID}
        state.payment = PaymentInfo(product_id="p", price_id="q", payment_link="https://buy.stripe.com/l", live=True)
        body = confirmation_body(state, {Platform.WEB: "https://w.test", Platform.ANDROID: "https://play.test"})
        assert "Platforms: ANDROID + WEB" in body
        assert body.index("android: https://play.test") < body.index("web: https://w.test")
        assert "Live payment link: https://buy.stripe.com/l" in body


class TestEmailNotifier:
    """SMTP delivery with smtplib mocked."""

    def test_approval_attaches_screenshots(self, cfg, state, tmp_path):
        shot = tmp_path / "web.png"
        shot.write_bytes(b"\x89PNG")
        state.per_platform_results = {
            Platform.WEB: PlatformBuildResult(platform=Platform.WEB, success=True, screenshot_ref=str(shot))
        }
        cfg.email_user = "forge@example.test"
        cfg.email_password = "secret"
        cfg.admin_email = "owner@example.test"
        with patch("integrations.notifier.smtplib.SMTP") as mock_smtp:
            EmailNotifier(cfg).send_approval_request(state)

        smtp = mock_smtp.return_value.__enter__.return_value
        smtp.login.assert_called_once_with("forge@example.test", "secret")
        message = smtp.send_message.call_args[0][0]
        assert message["To"] == "owner@example.test"
        assert message["Subject"].startswith("[READY]")
        assert [p.get_filename() for p in message.iter_attachments()] == ["web.png"]

    def test_error_report_subject(self, cfg, state):
        cfg.email_user = "forge@example.test"
        cfg.admin_email = ""
        with patch("integrations.notifier.smtplib.SMTP") as mock_smtp:
            EmailNotifier(cfg).send_error_report(state, "boom")
        message = mock_smtp.return_value.__enter__.return_value.send_message.call_args[0][0]
        assert "Project Failed: Dog Walker" in message["Subject"]
        assert message["To"] == "forge@example.test"


def test_build_notifier_selects_backend(cfg):
    assert isinstance(build_notifier(cfg), LogNotifier)
    cfg.email_user = "forge@example.test"
    cfg.email_password = "secret"
    assert isinstance(build_notifier(cfg), EmailNotifier)


def test_log_notifier_writes_to_log(state, caplog):
    with caplog.at_level("ERROR", logger="integrations.notifier"):
        LogNotifier().send_error_report(state, "disk full")
    assert "disk full" in caplog.text
