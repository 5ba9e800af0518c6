"""Six Eyes - cost-ordered, short-circuited verification of one generated artifact.

Gates run strictly in increasing cost order and stop at the first failure:

    A. pattern gate  - deny-list substring scan, then a reasoning call
    B. compile gate  - external static compiler over the workspace
    C. visual gate   - headless screenshot judged by a vision model
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from agents.interfaces import ReasoningCheck
from contracts import ValidationResult, SixEyesResult
from config import settings
from .browser import HeadlessBrowser
from .compiler import StaticCompiler

logger = logging.getLogger(__name__)

SCREENSHOT_NAME = "visual-proof.png"

PATTERN_PROMPT = """Analyze this code for deprecated or incorrect API usage for {domain}.
Focus on function signatures and parameters.
Is this external-API usage plausible and current?

Code:
{artifact}
"""

VISUAL_PROMPT = """Analyze this screenshot of a web application. Is this a valid, working page?
Check each of the following:
- Is the page completely blank?
- Does it show a 404 error?
- Does it show a 500 error?
- Does it show any error messages?
- Is there actual content visible?

The page is valid only if it is not blank, shows no 404/500 or other error text, and has real content.
"""


def domain_tag_for(title: str) -> str:
    """Deny-list domain for a step, from its title."""
    lowered = title.lower()
    if "stripe" in lowered or "payment" in lowered:
        return "stripe"
    if "firebase" in lowered:
        return "firebase"
    return "general"


class PerceptionLayer:
    """Runs the three gates over an artifact."""

    def __init__(
        self,
        reasoning: ReasoningCheck,
        compiler: StaticCompiler,
        browser: HeadlessBrowser,
        vision: Optional[ReasoningCheck] = None,
        deny_list: Optional[Dict[str, List[str]]] = None,
        navigation_timeout_ms: Optional[int] = None,
        settle_seconds: Optional[float] = None,
    ):
        self.reasoning = reasoning
        self.vision = vision or reasoning
        self.compiler = compiler
        self.browser = browser
        self.deny_list = deny_list if deny_list is not None else settings.deny_list
        self.navigation_timeout_ms = navigation_timeout_ms or settings.browser_navigation_timeout_ms
        self.settle_seconds = settle_seconds if settle_seconds is not None else settings.browser_settle_seconds

    def pattern_gate(self, artifact: str, domain_tag: str, order_id: Optional[str] = None) -> ValidationResult:
        """Gate A. A deny-list hit fails without a reasoning call."""
        for pattern in self.deny_list.get(domain_tag, []):
            if pattern in artifact:
                return ValidationResult(
                    passed=False,
                    error=f"Deprecated API pattern detected: {pattern}",
                    details={"pattern": pattern, "domain": domain_tag},
                )

        try:
            verdict = self.reasoning.ask(PATTERN_PROMPT.format(domain=domain_tag, artifact=artifact), order_id=order_id)
        except Exception as e:
            logger.warning("Pattern gate reasoning call failed: %s", e)
            return ValidationResult(passed=False, error=f"Doc verification error: {e}")

        if verdict.valid:
            return ValidationResult(passed=True, details={"reason": verdict.reason})
        return ValidationResult(
            passed=False,
            error=f"API verification issue: {verdict.reason}",
            details={"reason": verdict.reason},
        )

    def compile_gate(self, workspace_dir: Path) -> ValidationResult:
        """Gate B. Passes iff the compiler exits 0; output kept verbatim on failure."""
        output = self.compiler.check(Path(workspace_dir))
        if output.exit_code == 0:
            return ValidationResult(passed=True)
        return ValidationResult(
            passed=False,
            error=f"TypeScript compilation failed with code {output.exit_code}",
            details={"stdout": output.stdout, "stderr": output.stderr},
        )

    def visual_gate(self, url: str, workspace_dir: Path, order_id: Optional[str] = None) -> ValidationResult:
        """Gate C. Screenshot the page and ask the vision model for a verdict."""
        screenshot_path = Path(workspace_dir) / SCREENSHOT_NAME
        try:
            image = self.browser.screenshot(url, self.navigation_timeout_ms, self.settle_seconds)
            screenshot_path.parent.mkdir(parents=True, exist_ok=True)
            screenshot_path.write_bytes(image)
            verdict = self.vision.ask(VISUAL_PROMPT, image=image, order_id=order_id)
        except Exception as e:
            logger.warning("Visual gate failed for %s: %s", url, e)
            return ValidationResult(passed=False, error=f"Visual proof error: {e}", details={"url": url})

        details = {"screenshot_path": str(screenshot_path), "analysis": verdict.reason}
        if verdict.valid:
            return ValidationResult(passed=True, details=details)
        return ValidationResult(passed=False, error=f"Visual verification failed: {verdict.reason}", details=details)

    def run_six_eyes(
        self,
        artifact: str,
        workspace_dir: Path,
        target_url: Optional[str],
        domain_tag: str,
        order_id: Optional[str] = None,
    ) -> SixEyesResult:
        """Run the gates in order, stopping at the first failure.

        Gate C is skipped when target_url is None.
        """
        log = logging.LoggerAdapter(logger, {"order_id": order_id or "-", "phase": "six_eyes"})

        pattern = self.pattern_gate(artifact, domain_tag, order_id=order_id)
        if not pattern.passed:
            log.info("Gate A failed: %s", pattern.error)
            return SixEyesResult(pattern_gate=pattern, overall_passed=False)

        compiled = self.compile_gate(workspace_dir)
        if not compiled.passed:
            log.info("Gate B failed: %s", compiled.error)
            return SixEyesResult(pattern_gate=pattern, compile_gate=compiled, overall_passed=False)

        if target_url is None:
            log.info("Gates A and B passed; visual gate skipped (no preview URL)")
            return SixEyesResult(pattern_gate=pattern, compile_gate=compiled, overall_passed=True)

        visual = self.visual_gate(target_url, workspace_dir, order_id=order_id)
        if not visual.passed:
            log.info("Gate C failed: %s", visual.error)
        return SixEyesResult(
            pattern_gate=pattern,
            compile_gate=compiled,
            visual_gate=visual,
            overall_passed=visual.passed,
        )
