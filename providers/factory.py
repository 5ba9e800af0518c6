"""Factory for creating LLM providers."""

import os
from typing import Optional, Dict

from .base import LLMProvider
from .litellm_provider import LiteLLMProvider, _to_litellm_model
from .cost_logger import get_cost_logger


# Environment variables litellm reads per provider prefix
PROVIDER_KEYS: Dict[str, str] = {
    "gemini": "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


def get_provider(
    provider_name: Optional[str] = None,
    model: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> LLMProvider:
    """Get an LLM provider instance.

    Args:
        provider_name: Optional provider hint (gemini, anthropic, openai)
        model: Model name or LiteLLM model string
        metadata: Metadata attached to every call (agent role, order id)

    Returns:
        LLMProvider instance

    Examples:
        get_provider(model="gemini/gemini-2.5-pro")
        get_provider("anthropic", "claude-sonnet")
    """
    get_cost_logger()
    return LiteLLMProvider(
        default_model=_to_litellm_model(provider_name, model),
        metadata=metadata,
    )


def list_providers() -> Dict[str, bool]:
    """List provider prefixes and whether their API key is set.

    Returns:
        Dict mapping provider name to availability status
    """
    return {name: bool(os.environ.get(env)) for name, env in PROVIDER_KEYS.items()}
