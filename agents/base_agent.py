"""Base agent class that all LLM-backed collaborators inherit from.

Every agent:
- Calls the LLM with its system prompt + task input
- Validates structured output against its Pydantic contract (when it has one)
- Tracks token usage and cost
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Type, TypeVar, Optional, Any
from pydantic import BaseModel, ValidationError

from providers import get_provider, LLMProvider, LLMResponse
from config import settings

T = TypeVar("T", bound=BaseModel)

logger = logging.getLogger(__name__)


class TokenUsage(BaseModel):
    """Token usage and cost accumulated by an agent."""
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0

    def add(self, response: LLMResponse) -> None:
        self.input_tokens += response.input_tokens
        self.output_tokens += response.output_tokens
        self.cost += response.cost


class AgentResult(BaseModel):
    """Result from an agent run, including output and metadata."""
    output: Any
    model: str
    provider: str = "litellm"
    raw_response: Optional[str] = None
    retries: int = 0


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences around a model reply."""
    text = text.strip()
    if "```" not in text:
        return text
    start = text.find("```")
    newline = text.find("\n", start)
    if newline == -1:
        return text.replace("```", "").strip()
    end = text.find("```", newline)
    if end == -1:
        return text[newline + 1:].strip()
    return text[newline + 1:end].strip()


class BaseAgent(ABC):
    """Base class for LLM-backed collaborators.

    Subclasses set SYSTEM_PROMPT and pass an output schema; agents whose
    output is free-form (generated code) pass None and use run_text().
    """

    def __init__(
        self,
        role: str,
        system_prompt: str,
        output_schema: Optional[Type[T]] = None,
        model: Optional[str] = None,
        provider: Optional[LLMProvider] = None,
    ):
        """Initialize the agent.

        Args:
            role: Agent role, attached to LLM metadata for cost logging
            system_prompt: The agent's system prompt defining its behavior
            output_schema: Pydantic model class for validating output, or None for raw text
            model: LiteLLM model string
            provider: Pre-built provider (tests inject a mock here)
        """
        self.role = role
        self.system_prompt = system_prompt
        self.output_schema = output_schema
        self.llm_provider: LLMProvider = provider or get_provider(
            model=model, metadata={"agent": role}
        )
        self.model = model or self.llm_provider.default_model
        self.total_usage = TokenUsage()

    def _build_full_system_prompt(self) -> str:
        """Build the complete system prompt including the output schema."""
        if self.output_schema is None:
            return self.system_prompt
        parts = [self.system_prompt]
        parts.append("\n\n# OUTPUT FORMAT\n")
        parts.append("You MUST respond with valid JSON matching this schema:\n\n")
        parts.append(f"```json\n{json.dumps(self.output_schema.model_json_schema(), indent=2)}\n```")
        return "".join(parts)

    def _parse_and_validate(self, response_text: str) -> T:
        """Parse LLM response and validate against schema.

        Raises:
            ValidationError: If response doesn't match schema
            json.JSONDecodeError: If response isn't valid JSON
        """
        text = response_text.strip()

        # Handle markdown code blocks
        if "```json" in text:
            start = text.find("```json") + 7
            end = text.find("```", start)
            text = text[start:end].strip()
        elif "```" in text:
            start = text.find("```") + 3
            end = text.find("```", start)
            text = text[start:end].strip()

        data = json.loads(text)
        return self.output_schema.model_validate(data)

    def _complete(
        self,
        user_message: str,
        image: Optional[bytes] = None,
        order_id: Optional[str] = None,
    ) -> LLMResponse:
        response = self.llm_provider.complete(
            system_prompt=self._build_full_system_prompt(),
            user_message=user_message,
            model=self.model,
            max_tokens=settings.max_tokens_per_call,
            image=image,
            metadata={"agent": self.role, "order_id": order_id or "-"},
        )
        self.total_usage.add(response)
        if response.truncated:
            logger.warning(
                "%s reply for order %s hit the %d token limit and may be incomplete",
                self.role, order_id or "-", settings.max_tokens_per_call,
            )
        return response

    def run_text(self, user_message: str, order_id: Optional[str] = None) -> AgentResult:
        """Execute the agent and return its raw text reply."""
        response = self._complete(user_message, order_id=order_id)
        return AgentResult(
            output=response.content,
            model=response.model,
            provider=response.provider,
            raw_response=response.content,
        )

    def run(
        self,
        user_message: str,
        max_retries: int = 1,
        image: Optional[bytes] = None,
        order_id: Optional[str] = None,
    ) -> AgentResult:
        """Execute the agent with schema validation.

        Args:
            user_message: Task input
            max_retries: Number of retries on validation failure
            image: Optional image attached to the request
            order_id: Order the call is billed to

        Returns:
            AgentResult with validated output and metadata

        Raises:
            ValidationError: If output validation fails after retries
            json.JSONDecodeError: If output is not JSON after retries
        """
        message = user_message
        last_error = None

        for attempt in range(max_retries + 1):
            if attempt > 0 and last_error:
                message = (
                    f"{user_message}\n\n"
                    f"# PREVIOUS ERROR\n\n"
                    f"Your previous response did not match the required schema. "
                    f"Error: {last_error}\n\n"
                    f"Please fix the issues and provide a valid JSON response."
                )
            response = self._complete(message, image=image, order_id=order_id)
            try:
                output = self._parse_and_validate(response.content)
            except (json.JSONDecodeError, ValidationError) as e:
                last_error = str(e)
                logger.warning("%s returned invalid output (attempt %d): %s", self.role, attempt + 1, last_error)
                if attempt == max_retries:
                    raise
                continue
            return AgentResult(
                output=output,
                model=response.model,
                provider=response.provider,
                raw_response=response.content,
                retries=attempt,
            )

        # Should not reach here
        raise RuntimeError("Unexpected error in agent run loop")

    @abstractmethod
    def get_task_description(self) -> str:
        """Return a description of what this agent does.

        Used for logging and debugging.
        """
        pass
