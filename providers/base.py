"""Model-call interface shared by the planner, coder and verifier agents.

Agents only ever see an LLMProvider; the one real implementation is
LiteLLMProvider. Tests substitute a MagicMock that returns LLMResponse
objects directly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

# finish_reason reported when the reply stopped at max_tokens
TRUNCATED_FINISH = "length"


@dataclass
class LLMResponse:
    """One model reply with the usage numbers billed to its order."""
    content: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    cost: float = 0.0
    finish_reason: Optional[str] = None

    @property
    def truncated(self) -> bool:
        """True when the reply was cut off by the token limit."""
        return self.finish_reason == TRUNCATED_FINISH


class LLMProvider(ABC):
    """A text (and optionally image) completion backend."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model string used when an agent does not name one."""
        pass

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_message: str,
        model: Optional[str] = None,
        max_tokens: int = 4096,
        image: Optional[bytes] = None,
        metadata: Optional[dict] = None,
    ) -> LLMResponse:
        """Send one system + user exchange and return the reply.

        `image` is a PNG screenshot for the vision gates. `metadata` carries
        the agent role and order id so spend can be attributed per order.
        """
        pass

    def is_available(self) -> bool:
        return True
