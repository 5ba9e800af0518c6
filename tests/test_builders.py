"""Tests for the web and Android platform builders with shell commands mocked."""

from pathlib import Path
from unittest.mock import patch, MagicMock

import pytest

from contracts import DeploymentFailure, GateVerdict, Platform
from logistics import AndroidBuilder, VercelWebBuilder
from logistics.android_builder import AAB_PATH, APK_PATH, MANIFEST_PATH
from logistics.base import CommandResult, run_command

from fakes import FakeBrowser, FakeReasoning

VERCEL_OUTPUT = "Vercel CLI 33.0.0\nInspect: https://vercel.com/acme/dog/abc\nPreview: https://dog-walker-abc123.vercel.app\n"


def ok(command, stdout=""):
    return CommandResult(list(command), 0, stdout, "")


def failed(command, stderr):
    return CommandResult(list(command), 1, "", stderr)


class TestRunCommand:
    """Shell helper error handling."""

    def test_missing_binary_is_exit_127(self):
        result = run_command(["definitely-not-a-real-binary-xyz"])
        assert result.exit_code == 127
        assert not result.ok

    def test_output_prefers_stderr(self):
        assert CommandResult(["x"], 1, "out", "err").output == "err"
        assert CommandResult(["x"], 1, "out", "").output == "out"


class TestVercelWebBuilder:
    """Preview deploy, screenshot and vision verdict."""

    def test_build_and_verify_success(self, cfg, state):
        browser = FakeBrowser()
        vision = FakeReasoning()
        builder = VercelWebBuilder(browser=browser, vision=vision, cfg=cfg, build_wait_seconds=0)
        with patch("logistics.web_builder.run_command", return_value=ok(["vercel"], VERCEL_OUTPUT)) as mock_run:
            result = builder.build_and_verify(state)

        assert result.success
        assert result.platform == Platform.WEB
        assert result.preview_url == "https://dog-walker-abc123.vercel.app"
        assert browser.urls == ["https://dog-walker-abc123.vercel.app"]
        assert Path(result.screenshot_ref).read_bytes() == browser.image
        assert vision.images == [browser.image]
        command = mock_run.call_args[0][0]
        assert command[:2] == ["vercel", "deploy"]
        assert "--prod" not in command
        assert "--token=vercel-test-token" in command

    def test_browser_timing_comes_from_settings(self, cfg, state):
        cfg.browser_navigation_timeout_ms = 12345
        cfg.browser_settle_seconds = 0.5
        browser = FakeBrowser()
        builder = VercelWebBuilder(browser=browser, vision=FakeReasoning(), cfg=cfg, build_wait_seconds=0)
        with patch("logistics.web_builder.run_command", return_value=ok(["vercel"], VERCEL_OUTPUT)):
            builder.build_and_verify(state)
        assert browser.timings == [(12345, 0.5)]

    def test_missing_token_fails_without_running_cli(self, cfg, state):
        cfg.vercel_token = ""
        builder = VercelWebBuilder(browser=FakeBrowser(), vision=FakeReasoning(), cfg=cfg, build_wait_seconds=0)
        with patch("logistics.web_builder.run_command") as mock_run:
            result = builder.build_and_verify(state)
        assert not result.success
        assert "token" in result.error
        mock_run.assert_not_called()

    def test_cli_failure(self, cfg, state):
        builder = VercelWebBuilder(browser=FakeBrowser(), vision=FakeReasoning(), cfg=cfg, build_wait_seconds=0)
        with patch("logistics.web_builder.run_command", return_value=failed(["vercel"], "Error: Not authorized")):
            result = builder.build_and_verify(state)
        assert not result.success
        assert "Not authorized" in result.error

    def test_no_preview_url_in_output(self, cfg, state):
        builder = VercelWebBuilder(browser=FakeBrowser(), vision=FakeReasoning(), cfg=cfg, build_wait_seconds=0)
        with patch("logistics.web_builder.run_command", return_value=ok(["vercel"], "done")):
            result = builder.build_and_verify(state)
        assert not result.success
        assert "preview URL" in result.error

    def test_vision_rejection_keeps_evidence(self, cfg, state):
        vision = FakeReasoning([GateVerdict(valid=False, reason="blank white page")])
        builder = VercelWebBuilder(browser=FakeBrowser(), vision=vision, cfg=cfg, build_wait_seconds=0)
        with patch("logistics.web_builder.run_command", return_value=ok(["vercel"], VERCEL_OUTPUT)):
            result = builder.build_and_verify(state)
        assert not result.success
        assert "blank white page" in result.error
        assert result.preview_url == "https://dog-walker-abc123.vercel.app"
        assert result.screenshot_ref is not None

    def test_page_load_error(self, cfg, state):
        browser = FakeBrowser(error=RuntimeError("net::ERR_NAME_NOT_RESOLVED"))
        builder = VercelWebBuilder(browser=browser, vision=FakeReasoning(), cfg=cfg, build_wait_seconds=0)
        with patch("logistics.web_builder.run_command", return_value=ok(["vercel"], VERCEL_OUTPUT)):
            result = builder.build_and_verify(state)
        assert not result.success
        assert "ERR_NAME_NOT_RESOLVED" in result.error

    def test_deploy_production_uses_prod_flag(self, cfg, state):
        builder = VercelWebBuilder(browser=FakeBrowser(), vision=FakeReasoning(), cfg=cfg, build_wait_seconds=0)
        output = "Production: https://dog-walker.vercel.app\n"
        with patch("logistics.web_builder.run_command", return_value=ok(["vercel"], output)) as mock_run:
            result = builder.deploy_production(state)
        assert result.success
        assert result.url == "https://dog-walker.vercel.app"
        assert "--prod" in mock_run.call_args[0][0]

    def test_push_production_raises_deployment_failure(self, cfg, state):
        builder = VercelWebBuilder(browser=FakeBrowser(), vision=FakeReasoning(), cfg=cfg, build_wait_seconds=0)
        with patch("logistics.web_builder.run_command", return_value=ok(["vercel"], "done, no url")):
            with pytest.raises(DeploymentFailure, match="could not extract URL"):
                builder.push_production(Path(state.workspace_dir))
            result = builder.deploy_production(state)
        assert not result.success
        assert "could not extract URL" in result.error

    def test_validate_environment(self, cfg):
        cfg.vercel_token = ""
        builder = VercelWebBuilder(browser=FakeBrowser(), vision=FakeReasoning(), cfg=cfg)
        with patch("logistics.web_builder.shutil.which", return_value=None):
            assert builder.validate_environment() == ["BLACKSTAR_VERCEL_TOKEN", "vercel CLI"]


@pytest.fixture
def android_project(state):
    """Minimal Android project layout with prebuilt outputs."""
    android_dir = Path(state.workspace_dir) / "android"
    manifest = android_dir / MANIFEST_PATH
    manifest.parent.mkdir(parents=True)
    manifest.write_text('<manifest package="com.example.dogwalker"></manifest>', encoding="utf-8")
    (android_dir / "gradlew").write_text("#!/bin/sh\n", encoding="utf-8")
    for artifact in (AAB_PATH, APK_PATH):
        path = android_dir / artifact
        path.parent.mkdir(parents=True)
        path.write_bytes(b"binary")
    return android_dir


def emulator_commands(command, cwd=None, timeout=None, env=None):
    if "devices" in command:
        return ok(command, "List of devices attached\nemulator-5554\tdevice\n")
    if "install" in command:
        return ok(command, "Performing Streamed Install\nSuccess\n")
    if "monkey" in command:
        return ok(command, "Events injected: 1\n")
    return ok(command)


class TestAndroidBuilder:
    """Gradle build, emulator proof and Play upload."""

    def test_package_name_from_manifest(self, state, android_project):
        assert AndroidBuilder.package_name(Path(state.workspace_dir)) == "com.example.dogwalker"

    def test_package_name_from_gradle(self, state):
        gradle = Path(state.workspace_dir) / "android" / "app" / "build.gradle"
        gradle.parent.mkdir(parents=True)
        gradle.write_text('android {\n  defaultConfig {\n    applicationId "com.example.gradle"\n  }\n}\n')
        assert AndroidBuilder.package_name(Path(state.workspace_dir)) == "com.example.gradle"

    def test_no_package_fails(self, cfg, state):
        builder = AndroidBuilder(vision=FakeReasoning(), cfg=cfg, launch_wait_seconds=0)
        result = builder.build_and_verify(state)
        assert not result.success
        assert "package name" in result.error

    def test_build_and_verify_success(self, cfg, state, android_project):
        vision = FakeReasoning()
        builder = AndroidBuilder(vision=vision, cfg=cfg, launch_wait_seconds=0)
        screencap = MagicMock(returncode=0, stdout=b"\x89PNG android", stderr=b"")
        with patch("logistics.android_builder.run_command", side_effect=emulator_commands) as mock_run, \
                patch("logistics.android_builder.subprocess.run", return_value=screencap):
            result = builder.build_and_verify(state)

        assert result.success, result.error
        assert result.artifact_ref.endswith("app-release.aab")
        assert Path(result.screenshot_ref).read_bytes() == b"\x89PNG android"
        assert vision.images == [b"\x89PNG android"]
        commands = [c[0][0] for c in mock_run.call_args_list]
        assert commands[0][:2] == ["./gradlew", "bundleRelease"]
        assert any("monkey" in c for c in commands)

    def test_no_emulator_fails(self, cfg, state, android_project):
        builder = AndroidBuilder(vision=FakeReasoning(), cfg=cfg, launch_wait_seconds=0)

        def no_devices(command, cwd=None, timeout=None, env=None):
            if "devices" in command:
                return ok(command, "List of devices attached\n\n")
            return ok(command)

        with patch("logistics.android_builder.run_command", side_effect=no_devices):
            result = builder.build_and_verify(state)
        assert not result.success
        assert "emulator" in result.error
        assert result.artifact_ref.endswith("app-release.aab")

    def test_gradle_failure(self, cfg, state, android_project):
        builder = AndroidBuilder(vision=FakeReasoning(), cfg=cfg, launch_wait_seconds=0)
        with patch(
            "logistics.android_builder.run_command",
            return_value=failed(["./gradlew"], "Execution failed for task ':app:bundleRelease'"),
        ):
            result = builder.build_and_verify(state)
        assert not result.success
        assert "bundleRelease" in result.error

    def test_deploy_production_requires_key(self, cfg, state, android_project):
        cfg.google_play_json_key = ""
        result = AndroidBuilder(vision=FakeReasoning(), cfg=cfg).deploy_production(state)
        assert not result.success
        assert "Google Play key" in result.error

    def test_deploy_production_uploads_to_internal_track(self, cfg, state, android_project):
        cfg.google_play_json_key = "/secrets/play.json"
        builder = AndroidBuilder(vision=FakeReasoning(), cfg=cfg)
        with patch("logistics.android_builder.run_command", return_value=ok(["fastlane"])) as mock_run:
            result = builder.deploy_production(state)
        assert result.success
        assert result.url == "https://play.google.com/store/apps/details?id=com.example.dogwalker"
        command = mock_run.call_args[0][0]
        assert command[:2] == ["fastlane", "supply"]
        assert "internal" in command

    def test_upload_bundle_raises_deployment_failure(self, cfg, state, android_project):
        cfg.google_play_json_key = "/secrets/play.json"
        builder = AndroidBuilder(vision=FakeReasoning(), cfg=cfg)
        with patch("logistics.android_builder.run_command", return_value=failed(["fastlane"], "403 forbidden")):
            with pytest.raises(DeploymentFailure, match="403 forbidden"):
                builder.upload_bundle(Path(state.workspace_dir))
            result = builder.deploy_production(state)
        assert not result.success
        assert "Play Store upload failed" in result.error
