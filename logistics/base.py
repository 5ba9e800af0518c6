"""Platform builder interface and the shell helper builders share."""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from contracts import (
    Platform,
    ProjectState,
    PlatformBuildResult,
    PlatformDeployResult,
    BuildFailure,
    ForgeError,
)

logger = logging.getLogger(__name__)

VISION_CHECKLIST = """Analyze this screenshot of a freshly deployed {target}.
Check each of the following:
- Is the screen blank or white?
- Does it show a crash dialog, 404, 500 or other error?
- Is the actual application content rendered?

The {target} is working only if it shows real content and no error.
"""


@dataclass
class CommandResult:
    """Outcome of one shell command."""
    command: List[str]
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        return self.stderr or self.stdout


def run_command(
    command: List[str],
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
    env: Optional[Dict[str, str]] = None,
) -> CommandResult:
    """Run a command and capture its output.

    Timeouts and launch errors come back as a failed CommandResult.
    """
    try:
        proc = subprocess.run(
            command,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=timeout,
            env={**os.environ, **(env or {})},
        )
    except subprocess.TimeoutExpired:
        return CommandResult(command, -1, "", f"Command timed out after {timeout}s")
    except OSError as e:
        return CommandResult(command, 127, "", f"Failed to run {command[0]}: {e}")
    return CommandResult(command, proc.returncode, proc.stdout or "", proc.stderr or "")


class PlatformBuilder(ABC):
    """Build, verify and deploy one platform.

    build_and_verify mirrors the Six Eyes on a throwaway target:
    build -> install/deploy -> capture visual evidence -> vision verdict.
    """

    platform: Platform

    @abstractmethod
    def build_and_verify(self, state: ProjectState) -> PlatformBuildResult:
        pass

    @abstractmethod
    def deploy_production(self, state: ProjectState) -> PlatformDeployResult:
        pass

    def validate_environment(self) -> List[str]:
        """Names of missing credentials or tools."""
        return []

    def failed_build(self, error: BuildFailure, **kwargs) -> PlatformBuildResult:
        logger.error("%s build failed at %s", self.platform.value, error)
        return PlatformBuildResult(platform=self.platform, success=False, error=str(error), **kwargs)

    def failed_deploy(self, error: ForgeError) -> PlatformDeployResult:
        logger.error("%s production deploy failed: %s", self.platform.value, error)
        return PlatformDeployResult(platform=self.platform, success=False, error=str(error))
