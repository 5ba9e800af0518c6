"""LiteLLM-backed provider. Single implementation for all LLM calls."""

import base64
from typing import Optional

from .base import LLMProvider, LLMResponse


# LiteLLM model strings: provider/model-name (OpenAI can omit prefix)
DEFAULT_MODELS = {
    "gemini": "gemini/gemini-2.5-flash",
    "anthropic": "anthropic/claude-sonnet-4-20250514",
    "openai": "gpt-4o-mini",
}

# Map provider + optional model -> LiteLLM model string
MODEL_ALIASES = {
    "gemini": {
        None: "gemini/gemini-2.5-flash",
        "gemini-2.5-flash": "gemini/gemini-2.5-flash",
        "gemini-2.5-pro": "gemini/gemini-2.5-pro",
    },
    "anthropic": {
        None: "anthropic/claude-sonnet-4-20250514",
        "claude-sonnet": "anthropic/claude-sonnet-4-20250514",
        "claude-haiku": "anthropic/claude-3-5-haiku-20241022",
    },
    "openai": {
        None: "gpt-4o-mini",
        "gpt-4o": "gpt-4o",
        "gpt-4o-mini": "gpt-4o-mini",
    },
}


def _match_alias(aliases: dict, model: str) -> Optional[str]:
    model_lower = model.lower()
    # Prefer longest alias match first (e.g. gpt-4o-mini before gpt-4o)
    for alias in sorted((a for a in aliases if a), key=len, reverse=True):
        if model_lower == alias or model_lower.startswith(alias + "-") or model_lower.startswith(alias + "."):
            return aliases[alias]
    return None


def _to_litellm_model(provider_name: Optional[str], model: Optional[str]) -> str:
    """Map provider + model to LiteLLM model string."""
    if model and "/" in model:
        return model
    if provider_name:
        key = provider_name.lower()
        if key in ("claude", "gpt", "google"):
            key = "anthropic" if key == "claude" else "openai" if key == "gpt" else "gemini"
        if key in MODEL_ALIASES:
            aliases = MODEL_ALIASES[key]
            if model:
                resolved = _match_alias(aliases, model)
                if resolved:
                    return resolved
                if key == "openai":
                    return model
                return f"{key}/{model}"
            return aliases[None]
    if model:
        for aliases in MODEL_ALIASES.values():
            resolved = _match_alias(aliases, model)
            if resolved:
                return resolved
        return model
    return DEFAULT_MODELS["gemini"]


def _user_content(user_message: str, image: Optional[bytes]):
    if image is None:
        return user_message
    encoded = base64.b64encode(image).decode("ascii")
    return [
        {"type": "text", "text": user_message},
        {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{encoded}"}},
    ]


class LiteLLMProvider(LLMProvider):
    """Single provider that delegates to litellm.completion()."""

    def __init__(self, default_model: str, metadata: Optional[dict] = None):
        """Initialize with the LiteLLM model string to use by default.

        Args:
            default_model: LiteLLM model string (e.g. gemini/gemini-2.5-pro).
            metadata: Optional dict passed to litellm (e.g. agent role) for cost logging.
        """
        self._default_model = default_model
        self._metadata = metadata or {}

    @property
    def name(self) -> str:
        return "litellm"

    @property
    def default_model(self) -> str:
        return self._default_model

    def set_metadata(self, metadata: dict) -> None:
        self._metadata = dict(metadata)

    def complete(
        self,
        system_prompt: str,
        user_message: str,
        model: Optional[str] = None,
        max_tokens: int = 4096,
        image: Optional[bytes] = None,
        metadata: Optional[dict] = None,
    ) -> LLMResponse:
        import litellm

        resolved_model = model or self._default_model
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": _user_content(user_message, image)},
        ]
        kwargs = {
            "model": resolved_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "metadata": {**self._metadata, **(metadata or {})},
        }
        response = litellm.completion(**kwargs)

        choice = response.choices[0]
        content = choice.message.content or ""
        finish_reason = getattr(choice, "finish_reason", None)
        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "prompt_tokens", 0) or 0
        output_tokens = getattr(usage, "completion_tokens", 0) or 0
        hidden = getattr(response, "_hidden_params", None) or {}
        cost = float(hidden.get("response_cost", 0) or 0)
        model_id = getattr(response, "model", None) or resolved_model

        return LLMResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=model_id,
            provider=self.name,
            cost=cost,
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
        )

    def is_available(self) -> bool:
        """LiteLLM reads API keys from env; we consider it available if the model is set."""
        return bool(self._default_model)
