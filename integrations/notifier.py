"""Notification collaborator: approval requests, error reports and deploy confirmations."""

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from pathlib import Path
from typing import Dict, List, Optional

from contracts import ProjectState, Platform, StepStatus
from config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Fire-and-forget messages to the human operator."""

    @abstractmethod
    def send_approval_request(self, state: ProjectState) -> None:
        pass

    @abstractmethod
    def send_error_report(self, state: ProjectState, message: str) -> None:
        pass

    @abstractmethod
    def send_deployment_confirmation(self, state: ProjectState, urls: Dict[Platform, str]) -> None:
        pass


def _platform_label(state: ProjectState) -> str:
    platforms = sorted(p.value for p in state.platforms) or [Platform.WEB.value]
    return " + ".join(p.upper() for p in platforms)


def approval_body(state: ProjectState, base_url: str) -> str:
    lines = [
        "Project ready for deployment approval",
        "",
        f"Name: {state.project_name}",
        f"Order ID: {state.order_id}",
        f"Platforms: {_platform_label(state)}",
        f"Status: {state.status.value}",
        "",
        "Requirements:",
        state.requirements,
        "",
        "Implementation summary:",
    ]
    for step in state.plan:
        mark = "done" if step.status == StepStatus.COMPLETED else step.status.value
        lines.append(f"  - {step.title}: {mark}")

    if state.platform_detection and state.platform_detection.ambiguous:
        lines.extend(["", "Note: target platforms were not stated explicitly; defaulted to the above."])

    for platform, result in sorted(state.per_platform_results.items(), key=lambda kv: kv[0].value):
        lines.extend(["", f"{platform.value.upper()} build:"])
        if result.preview_url:
            lines.append(f"  Preview URL: {result.preview_url}")
        if result.artifact_ref:
            lines.append(f"  Artifact: {result.artifact_ref}")

    if state.payment:
        lines.extend([
            "",
            f"Payment link ({'LIVE' if state.payment.live else 'TEST'} mode): {state.payment.payment_link}",
            "Test-mode links are recreated in live mode on approval.",
        ])

    lines.extend([
        "",
        "To approve and deploy:",
        f"  blackstar approve {state.order_id}",
        f"  (or POST {base_url}/api/deploy-approval {{\"orderId\": \"{state.order_id}\"}})",
        "To reject:",
        f"  blackstar reject {state.order_id} --reason \"...\"",
    ])
    return "\n".join(lines)


def error_body(state: ProjectState, message: str) -> str:
    lines = [
        "Project execution failed",
        "",
        f"Name: {state.project_name}",
        f"Order ID: {state.order_id}",
        f"Status: {state.status.value}",
        f"Consecutive failures: {state.failure_streak}",
        "",
        "Requirements:",
        state.requirements,
        "",
        "Error details:",
        message,
        "",
        "Progress:",
    ]
    for step in state.plan:
        lines.append(f"  - {step.title}: {step.status.value} ({step.retries} retries)")
    return "\n".join(lines)


def confirmation_body(state: ProjectState, urls: Dict[Platform, str]) -> str:
    lines = [
        "Project successfully deployed to production",
        "",
        f"Name: {state.project_name}",
        f"Order ID: {state.order_id}",
        f"Platforms: {_platform_label(state)}",
        "",
        "Live deployments:",
    ]
    for platform, url in sorted(urls.items(), key=lambda kv: kv[0].value):
        lines.append(f"  - {platform.value}: {url}")
    if state.payment and state.payment.live:
        lines.extend(["", f"Live payment link: {state.payment.payment_link}"])
    return "\n".join(lines)


class EmailNotifier(Notifier):
    """SMTP notifier. Screenshots from platform builds are attached to approval requests."""

    def __init__(self, cfg: Optional[Settings] = None):
        self.cfg = cfg or default_settings

    def _send(self, subject: str, body: str, attachments: Optional[List[Path]] = None) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.cfg.email_user
        msg["To"] = self.cfg.admin_email or self.cfg.email_user
        msg.set_content(body)
        for path in attachments or []:
            msg.add_attachment(path.read_bytes(), maintype="image", subtype="png", filename=path.name)

        with smtplib.SMTP(self.cfg.email_host, self.cfg.email_port, timeout=30) as smtp:
            if self.cfg.email_use_tls:
                smtp.starttls()
            if self.cfg.email_user:
                smtp.login(self.cfg.email_user, self.cfg.email_password)
            smtp.send_message(msg)

    def send_approval_request(self, state: ProjectState) -> None:
        screenshots = [
            Path(r.screenshot_ref)
            for r in state.per_platform_results.values()
            if r.screenshot_ref and Path(r.screenshot_ref).exists()
        ]
        self._send(
            f"[READY] Project: {state.project_name} ({_platform_label(state)})",
            approval_body(state, self.cfg.base_url),
            screenshots,
        )

    def send_error_report(self, state: ProjectState, message: str) -> None:
        self._send(f"[BLACK STAR] Project Failed: {state.project_name}", error_body(state, message))

    def send_deployment_confirmation(self, state: ProjectState, urls: Dict[Platform, str]) -> None:
        self._send(
            f"[BLACK STAR] {_platform_label(state)} Deployed: {state.project_name}",
            confirmation_body(state, urls),
        )


class LogNotifier(Notifier):
    """Writes notifications to the log. Used when email is not configured."""

    def send_approval_request(self, state: ProjectState) -> None:
        logger.info(approval_body(state, default_settings.base_url), extra={"order_id": state.order_id})

    def send_error_report(self, state: ProjectState, message: str) -> None:
        logger.error(error_body(state, message), extra={"order_id": state.order_id})

    def send_deployment_confirmation(self, state: ProjectState, urls: Dict[Platform, str]) -> None:
        logger.info(confirmation_body(state, urls), extra={"order_id": state.order_id})


def build_notifier(cfg: Optional[Settings] = None) -> Notifier:
    cfg = cfg or default_settings
    if cfg.email_user and cfg.email_password:
        return EmailNotifier(cfg)
    return LogNotifier()
