"""Android platform: gradle bundle, emulator install and launch, screencap, vision verdict."""

import logging
import os
import re
import shutil
import subprocess
import time
from pathlib import Path
from typing import List, Optional

from agents.interfaces import ReasoningCheck
from contracts import Platform, ProjectState, PlatformBuildResult, PlatformDeployResult, BuildFailure, DeploymentFailure
from config import Settings, settings as default_settings
from .base import PlatformBuilder, run_command, VISION_CHECKLIST

logger = logging.getLogger(__name__)

ANDROID_DIR = "android"
MANIFEST_PATH = Path("app/src/main/AndroidManifest.xml")
BUILD_GRADLE_PATHS = [Path("app/build.gradle"), Path("app/build.gradle.kts")]
AAB_PATH = Path("app/build/outputs/bundle/release/app-release.aab")
APK_PATH = Path("app/build/outputs/apk/release/app-release.apk")
SCREENSHOT_NAME = "android-screenshot.png"

MANIFEST_PACKAGE_RE = re.compile(r'package="([^"]+)"')
APPLICATION_ID_RE = re.compile(r'applicationId\s*=?\s*["\']([^"\']+)["\']')


class AndroidBuilder(PlatformBuilder):
    """Builds the Android project under <workspace>/android and proves it runs on an emulator."""

    platform = Platform.ANDROID

    def __init__(
        self,
        vision: ReasoningCheck,
        cfg: Optional[Settings] = None,
        launch_wait_seconds: Optional[float] = None,
    ):
        self.cfg = cfg or default_settings
        self.vision = vision
        sdk_root = self.cfg.android_sdk_root or os.environ.get("ANDROID_SDK_ROOT") or os.environ.get("ANDROID_HOME", "")
        self.adb = str(Path(sdk_root) / "platform-tools" / "adb") if sdk_root else "adb"
        self.launch_wait_seconds = (
            launch_wait_seconds if launch_wait_seconds is not None else self.cfg.app_launch_wait_seconds
        )

    def validate_environment(self) -> List[str]:
        missing = []
        if not (self.cfg.android_sdk_root or os.environ.get("ANDROID_SDK_ROOT") or os.environ.get("ANDROID_HOME")):
            missing.append("BLACKSTAR_ANDROID_SDK_ROOT")
        if not self.cfg.google_play_json_key:
            missing.append("BLACKSTAR_GOOGLE_PLAY_JSON_KEY")
        if shutil.which("fastlane") is None:
            missing.append("fastlane CLI")
        return missing

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    @staticmethod
    def package_name(workspace: Path) -> Optional[str]:
        """Package name from the manifest, or applicationId from the app's gradle file."""
        android_dir = Path(workspace) / ANDROID_DIR
        manifest = android_dir / MANIFEST_PATH
        if manifest.exists():
            match = MANIFEST_PACKAGE_RE.search(manifest.read_text(encoding="utf-8", errors="replace"))
            if match:
                return match.group(1)
        for gradle_file in BUILD_GRADLE_PATHS:
            path = android_dir / gradle_file
            if path.exists():
                match = APPLICATION_ID_RE.search(path.read_text(encoding="utf-8", errors="replace"))
                if match:
                    return match.group(1)
        return None

    def _gradle(self, android_dir: Path, task: str) -> None:
        gradlew = android_dir / "gradlew"
        if not gradlew.exists():
            raise BuildFailure("build", f"gradlew not found in {android_dir}")
        gradlew.chmod(0o755)
        result = run_command(["./gradlew", task, "--stacktrace"], cwd=android_dir, timeout=self.cfg.build_timeout_seconds)
        if not result.ok:
            raise BuildFailure("build", f"gradle {task} failed: {result.output.strip()[-2000:]}")

    def build_bundle(self, workspace: Path) -> Path:
        android_dir = Path(workspace) / ANDROID_DIR
        if not android_dir.is_dir():
            raise BuildFailure("build", f"No Android project at {android_dir}")
        self._gradle(android_dir, "bundleRelease")
        aab = android_dir / AAB_PATH
        if not aab.exists():
            raise BuildFailure("build", f"Bundle not produced at {aab}")
        return aab

    def build_apk(self, workspace: Path) -> Path:
        android_dir = Path(workspace) / ANDROID_DIR
        apk = android_dir / APK_PATH
        if not apk.exists():
            self._gradle(android_dir, "assembleRelease")
        if not apk.exists():
            raise BuildFailure("build", f"APK not produced at {apk}")
        return apk

    def install_on_emulator(self, apk: Path) -> None:
        devices = run_command([self.adb, "devices"], timeout=30)
        if not devices.ok or "emulator" not in devices.stdout:
            raise BuildFailure("install", "No running Android emulator found")
        result = run_command([self.adb, "install", "-r", str(apk)], timeout=self.cfg.build_timeout_seconds)
        if not (result.ok and "Success" in result.stdout):
            raise BuildFailure("install", f"adb install failed: {result.output.strip()}")

    def launch(self, package: str) -> None:
        result = run_command(
            [self.adb, "shell", "monkey", "-p", package, "-c", "android.intent.category.LAUNCHER", "1"],
            timeout=60,
        )
        if "Events injected: 1" not in result.stdout:
            raise BuildFailure("launch", f"App did not launch: {result.output.strip()}")

    def screencap(self, destination: Path) -> bytes:
        try:
            proc = subprocess.run([self.adb, "exec-out", "screencap", "-p"], capture_output=True, timeout=60)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise BuildFailure("screenshot", str(e)) from e
        if proc.returncode != 0 or not proc.stdout:
            raise BuildFailure("screenshot", proc.stderr.decode("utf-8", errors="replace") or "empty screenshot")
        destination.write_bytes(proc.stdout)
        return proc.stdout

    def build_and_verify(self, state: ProjectState) -> PlatformBuildResult:
        workspace = Path(state.workspace_dir)
        extra = {"order_id": state.order_id, "phase": "building"}
        package = self.package_name(workspace)
        if not package:
            return self.failed_build(
                BuildFailure("manifest", "Could not determine Android package name from AndroidManifest.xml")
            )

        aab = None
        screenshot_path = workspace / SCREENSHOT_NAME
        try:
            aab = self.build_bundle(workspace)
            logger.info("Bundle built: %s", aab, extra=extra)
            apk = self.build_apk(workspace)
            self.install_on_emulator(apk)
            self.launch(package)
            if self.launch_wait_seconds > 0:
                time.sleep(self.launch_wait_seconds)
            image = self.screencap(screenshot_path)
        except BuildFailure as e:
            return self.failed_build(e, artifact_ref=str(aab) if aab else None)

        verdict = self.vision.ask(VISION_CHECKLIST.format(target="Android app"), image=image, order_id=state.order_id)
        if not verdict.valid:
            return self.failed_build(
                BuildFailure("vision", f"App verification failed: {verdict.reason}"),
                artifact_ref=str(aab),
                screenshot_ref=str(screenshot_path),
            )
        return PlatformBuildResult(
            platform=self.platform,
            success=True,
            artifact_ref=str(aab),
            screenshot_ref=str(screenshot_path),
        )

    def deploy_production(self, state: ProjectState) -> PlatformDeployResult:
        try:
            url = self.upload_bundle(Path(state.workspace_dir))
        except DeploymentFailure as e:
            return self.failed_deploy(e)
        return PlatformDeployResult(platform=self.platform, success=True, url=url)

    def upload_bundle(self, workspace: Path) -> str:
        """Push the release bundle to the Play internal track and return the listing URL."""
        aab = workspace / ANDROID_DIR / AAB_PATH
        if not aab.exists():
            raise DeploymentFailure(f"Bundle not found at {aab}")
        if not self.cfg.google_play_json_key:
            raise DeploymentFailure("Google Play key is not configured")

        result = run_command(
            [
                "fastlane", "supply",
                "--aab", str(aab),
                "--track", "internal",
                "--json_key", self.cfg.google_play_json_key,
            ],
            timeout=self.cfg.build_timeout_seconds,
        )
        if not result.ok:
            raise DeploymentFailure(f"Play Store upload failed: {result.output.strip()}")
        package = self.package_name(workspace)
        return f"https://play.google.com/store/apps/details?id={package}" if package else "google-play:internal"
