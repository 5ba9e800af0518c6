"""Coder Agent - Synthesizes the artifact for a single plan step."""

from typing import Optional

from .base_agent import BaseAgent, strip_code_fences
from .interfaces import Coder, CodingContext
from contracts.errors import GenerationFailure
from providers import LLMProvider
from config import settings


SYSTEM_PROMPT = """You are an expert full-stack developer working on a project step by step.

Generate complete, production-ready code for the current step:
1. Write clean, maintainable TypeScript/JavaScript code
2. Include all necessary imports
3. Add error handling
4. If the step involves Stripe, use current API patterns (payment_method, never the deprecated 'source' or 'card' parameters)
5. Return ONLY the code, no explanations or markdown formatting
"""


class CoderAgent(BaseAgent, Coder):
    """Free-text agent: its output is the artifact itself."""

    SYSTEM_PROMPT = SYSTEM_PROMPT

    def __init__(self, model: Optional[str] = None, provider: Optional[LLMProvider] = None):
        super().__init__(
            role="coder",
            system_prompt=self.SYSTEM_PROMPT,
            output_schema=None,
            model=model or settings.coder_model,
            provider=provider,
        )

    def get_task_description(self) -> str:
        return "Generate code for one plan step"

    def build_prompt(self, context: CodingContext) -> str:
        completed = "\n".join(context.completed_steps) or "None yet"
        parts = [
            f"Project: {context.project_name}",
            f"Requirements: {context.requirements}",
            "",
            "Completed Steps:",
            completed,
            "",
            f"Current Step: {context.step_title}",
            f"Description: {context.step_description}",
        ]
        if context.prior_artifact:
            parts.extend(["", "Previous Code:", context.prior_artifact])
        if context.previous_error:
            parts.extend(["", "The previous attempt was rejected:", context.previous_error])
        parts.extend(["", "Generate the code now:"])
        return "\n".join(parts)

    def generate(self, context: CodingContext) -> str:
        try:
            result = self.run_text(self.build_prompt(context), order_id=context.order_id)
        except Exception as e:
            raise GenerationFailure(f"Code generation call failed: {e}") from e

        code = strip_code_fences(result.output or "")
        if not code:
            raise GenerationFailure("Coder returned an empty artifact")
        return code
