"""Verifier Agent - Structured yes/no verdicts for the pattern and visual gates."""

import json
import logging
from typing import Optional

from pydantic import ValidationError

from .base_agent import BaseAgent
from .interfaces import ReasoningCheck
from contracts import GateVerdict
from providers import LLMProvider
from config import settings

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a strict reviewer gating an autonomous build pipeline.

Answer the question you are given about the code or screenshot.
Set "valid" to true only when you are confident the artifact is acceptable.
Keep "reason" to one or two sentences.
"""


class VerifierAgent(BaseAgent, ReasoningCheck):
    """Reasoning/vision collaborator returning GateVerdict.

    The reply is parsed as JSON against the GateVerdict schema. A reply that
    cannot be parsed is a failed verdict; free text is never scanned for an
    affirmative word.
    """

    SYSTEM_PROMPT = SYSTEM_PROMPT

    def __init__(
        self,
        model: Optional[str] = None,
        provider: Optional[LLMProvider] = None,
        role: str = "verifier",
    ):
        super().__init__(
            role=role,
            system_prompt=self.SYSTEM_PROMPT,
            output_schema=GateVerdict,
            model=model or settings.reasoning_model,
            provider=provider,
        )

    def get_task_description(self) -> str:
        return "Return a structured verdict on an artifact or screenshot"

    def ask(self, prompt: str, image: Optional[bytes] = None, order_id: Optional[str] = None) -> GateVerdict:
        try:
            result = self.run(prompt, image=image, order_id=order_id)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Unparseable verdict from %s: %s", self.role, e, extra={"order_id": order_id or "-"})
            return GateVerdict(valid=False, reason=f"Unparseable verdict: {e}")
        return result.output


def build_vision_verifier(provider: Optional[LLMProvider] = None) -> VerifierAgent:
    """Verifier wired to the vision model."""
    return VerifierAgent(model=settings.vision_model, provider=provider, role="vision")
