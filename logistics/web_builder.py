"""Web platform: Vercel preview deploy, headless screenshot, vision verdict."""

import logging
import re
import shutil
import time
from pathlib import Path
from typing import List, Optional

from agents.interfaces import ReasoningCheck
from contracts import Platform, ProjectState, PlatformBuildResult, PlatformDeployResult, BuildFailure, DeploymentFailure
from perception.browser import HeadlessBrowser
from config import Settings, settings as default_settings
from .base import PlatformBuilder, run_command, VISION_CHECKLIST

logger = logging.getLogger(__name__)

PREVIEW_URL_RE = re.compile(r"https://[^\s]+\.vercel\.app")
ANY_URL_RE = re.compile(r"https://[^\s]+")
SCREENSHOT_NAME = "web-screenshot.png"


class VercelWebBuilder(PlatformBuilder):
    """Deploys the workspace to a Vercel preview and verifies it visually."""

    platform = Platform.WEB

    def __init__(
        self,
        browser: HeadlessBrowser,
        vision: ReasoningCheck,
        cfg: Optional[Settings] = None,
        build_wait_seconds: Optional[float] = None,
    ):
        self.cfg = cfg or default_settings
        self.browser = browser
        self.vision = vision
        self.token = self.cfg.vercel_token
        self.build_wait_seconds = (
            build_wait_seconds if build_wait_seconds is not None else self.cfg.preview_build_wait_seconds
        )

    def validate_environment(self) -> List[str]:
        missing = []
        if not self.token:
            missing.append("BLACKSTAR_VERCEL_TOKEN")
        if shutil.which("vercel") is None:
            missing.append("vercel CLI")
        return missing

    def _vercel(self, workspace: Path, prod: bool = False):
        if not self.token:
            raise BuildFailure("deploy", "Vercel token is not configured")
        command = ["vercel", "deploy"]
        if prod:
            command.append("--prod")
        command.append(f"--token={self.token}")
        return run_command(command, cwd=workspace, timeout=self.cfg.build_timeout_seconds)

    def deploy_preview(self, workspace: Path) -> str:
        result = self._vercel(workspace)
        if not result.ok:
            raise BuildFailure("deploy", f"Vercel deployment failed: {result.output.strip()}")
        match = PREVIEW_URL_RE.search(result.stdout)
        if not match:
            raise BuildFailure("deploy", "Deployment succeeded but could not extract preview URL")
        return match.group(0)

    def build_and_verify(self, state: ProjectState) -> PlatformBuildResult:
        workspace = Path(state.workspace_dir)
        extra = {"order_id": state.order_id, "phase": "building"}
        try:
            preview_url = self.deploy_preview(workspace)
        except BuildFailure as e:
            return self.failed_build(e)
        logger.info("Preview URL: %s", preview_url, extra=extra)

        if self.build_wait_seconds > 0:
            time.sleep(self.build_wait_seconds)

        screenshot_path = workspace / SCREENSHOT_NAME
        try:
            capture = self.browser.capture(
                preview_url, self.cfg.browser_navigation_timeout_ms, self.cfg.browser_settle_seconds
            )
        except Exception as e:
            return self.failed_build(BuildFailure("verify", f"Failed to load page: {e}"), preview_url=preview_url)
        screenshot_path.write_bytes(capture.image)

        if capture.http_errors:
            logger.warning("HTTP errors on preview: %s", capture.http_errors, extra=extra)

        verdict = self.vision.ask(VISION_CHECKLIST.format(target="web page"), image=capture.image, order_id=state.order_id)
        if not verdict.valid:
            return self.failed_build(
                BuildFailure("vision", f"Visual verification failed: {verdict.reason}"),
                preview_url=preview_url,
                screenshot_ref=str(screenshot_path),
            )

        return PlatformBuildResult(
            platform=self.platform,
            success=True,
            artifact_ref=str(workspace),
            screenshot_ref=str(screenshot_path),
            preview_url=preview_url,
        )

    def deploy_production(self, state: ProjectState) -> PlatformDeployResult:
        try:
            url = self.push_production(Path(state.workspace_dir))
        except (BuildFailure, DeploymentFailure) as e:
            return self.failed_deploy(e)
        return PlatformDeployResult(platform=self.platform, success=True, url=url)

    def push_production(self, workspace: Path) -> str:
        """Run `vercel deploy --prod` and return the production URL."""
        result = self._vercel(workspace, prod=True)
        if not result.ok:
            raise DeploymentFailure(f"Vercel production deployment failed: {result.output.strip()}")
        match = PREVIEW_URL_RE.search(result.stdout) or ANY_URL_RE.search(result.stdout)
        if not match:
            raise DeploymentFailure("Production deployment succeeded but could not extract URL")
        return match.group(0)
