"""Logistics Executor - multi-platform build coordination.

Detects target platforms from requirements text and runs one builder per
platform. The aggregate succeeds only if every requested platform does;
there is no partial-success path.
"""

import logging
from typing import Dict, List, Optional, Set

from contracts import (
    Platform,
    ProjectState,
    PlatformDetection,
    PlatformBuildResult,
    MultiPlatformResult,
    PlatformDeployResult,
)
from log_config import project_logger
from .base import PlatformBuilder
from .platform_classifier import PlatformClassifier

logger = logging.getLogger(__name__)

# Web first: the cheaper pipeline fails faster.
BUILD_ORDER = [Platform.WEB, Platform.ANDROID]


def _ordered(platforms) -> List[Platform]:
    return sorted(platforms, key=lambda p: BUILD_ORDER.index(p) if p in BUILD_ORDER else len(BUILD_ORDER))


class LogisticsExecutor:
    """Coordinates per-platform build, verify and deploy collaborators."""

    def __init__(
        self,
        builders: Dict[Platform, PlatformBuilder],
        classifier: Optional[PlatformClassifier] = None,
    ):
        self.builders = dict(builders)
        self.classifier = classifier or PlatformClassifier()

    def classify(self, requirements: str) -> PlatformDetection:
        return self.classifier.classify(requirements)

    def detect_platforms(self, requirements: str) -> Set[Platform]:
        return set(self.classify(requirements).platforms)

    def build_all_platforms(self, state: ProjectState) -> MultiPlatformResult:
        """Build and verify every platform in state.platforms (web when empty).

        Every requested platform is built so the operator sees all failures at
        once; the aggregate fails if any platform fails.
        """
        log = project_logger(logger, state.order_id, "building")
        platforms = _ordered(state.platforms or {Platform.WEB})
        results: Dict[Platform, PlatformBuildResult] = {}

        for platform in platforms:
            builder = self.builders.get(platform)
            if builder is None:
                results[platform] = PlatformBuildResult(
                    platform=platform, success=False, error=f"No builder registered for {platform.value}"
                )
                log.error("No builder registered for %s", platform.value)
                continue

            log.info("Building %s platform", platform.value)
            try:
                result = builder.build_and_verify(state)
            except Exception as e:
                log.exception("%s build raised", platform.value)
                result = PlatformBuildResult(platform=platform, success=False, error=f"{type(e).__name__}: {e}")

            results[platform] = result
            if result.success:
                log.info("%s build verified", platform.value)
            else:
                log.error("%s build failed: %s", platform.value, result.error)

        state.per_platform_results = results
        state.touch()
        return MultiPlatformResult.aggregate(results)

    def _deploy(self, state: ProjectState, platform: Platform) -> PlatformDeployResult:
        log = project_logger(logger, state.order_id, "deploying")
        builder = self.builders.get(platform)
        if builder is None:
            return PlatformDeployResult(platform=platform, success=False, error=f"No builder registered for {platform.value}")
        try:
            result = builder.deploy_production(state)
        except Exception as e:
            log.exception("%s production deploy raised", platform.value)
            return PlatformDeployResult(platform=platform, success=False, error=f"{type(e).__name__}: {e}")
        if result.success:
            log.info("%s deployed to production: %s", platform.value, result.url)
        else:
            log.error("%s production deploy failed: %s", platform.value, result.error)
        return result

    def deploy_web_production(self, state: ProjectState) -> PlatformDeployResult:
        return self._deploy(state, Platform.WEB)

    def deploy_android_production(self, state: ProjectState) -> PlatformDeployResult:
        return self._deploy(state, Platform.ANDROID)

    def deploy_production(self, state: ProjectState) -> Dict[Platform, PlatformDeployResult]:
        """Independent production pushes for every requested platform."""
        deployers = {
            Platform.WEB: self.deploy_web_production,
            Platform.ANDROID: self.deploy_android_production,
        }
        results = {}
        for platform in _ordered(state.platforms or {Platform.WEB}):
            deploy = deployers.get(platform)
            results[platform] = deploy(state) if deploy else self._deploy(state, platform)
        return results

    def validate_environment(self) -> List[str]:
        """Missing tooling across all builders. Never blocks."""
        missing = []
        for platform in _ordered(self.builders):
            for item in self.builders[platform].validate_environment():
                if item not in missing:
                    missing.append(item)
        if missing:
            logger.warning("Platform tooling not configured: %s", ", ".join(missing))
        return missing
