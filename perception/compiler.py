"""Static compiler collaborator used by the compile gate."""

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from config import settings

logger = logging.getLogger(__name__)


class CompileOutput(BaseModel):
    """Raw compiler outcome."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""


class StaticCompiler(ABC):
    """Type-checks a workspace without producing output."""

    @abstractmethod
    def check(self, workspace_dir: Path) -> CompileOutput:
        pass


class TypeScriptCompiler(StaticCompiler):
    """Runs `npx tsc --noEmit --project <workspace>` inside the workspace."""

    def __init__(self, timeout: Optional[float] = None, command: Optional[List[str]] = None):
        self.timeout = timeout if timeout is not None else settings.compile_timeout_seconds
        self.command = command or ["npx", "tsc", "--noEmit", "--project"]

    def check(self, workspace_dir: Path) -> CompileOutput:
        workspace_dir = Path(workspace_dir)
        cmd = [*self.command, str(workspace_dir)]
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(workspace_dir),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            return CompileOutput(
                exit_code=124,
                stdout=_text(e.stdout),
                stderr=f"{' '.join(cmd)} timed out after {self.timeout:g}s\n{_text(e.stderr)}",
            )
        except OSError as e:
            logger.error("Could not launch compiler: %s", e)
            return CompileOutput(exit_code=127, stderr=f"Failed to run TypeScript compiler: {e}")
        return CompileOutput(exit_code=proc.returncode, stdout=proc.stdout or "", stderr=proc.stderr or "")


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
