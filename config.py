"""Configuration settings for Black Star Forge."""

# Load .env into os.environ so litellm picks up provider keys (e.g. GEMINI_API_KEY)
from dotenv import load_dotenv

load_dotenv()

import os
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Dict, List, Literal, Optional
from pathlib import Path


# Known-bad substrings per API domain. A hit fails the pattern gate
# without spending a reasoning call.
DEFAULT_DENY_LIST: Dict[str, List[str]] = {
    "stripe": ["source:", "bitcoin_receiver", "card:"],
    "firebase": ["firebase.database()"],
    "general": [],
}


class Settings(BaseSettings):
    """Global settings for Black Star Forge.

    Settings can be overridden via environment variables with BLACKSTAR_ prefix.
    Example: BLACKSTAR_MAX_STEP_ATTEMPTS=5
    """

    # Models (LiteLLM model strings)
    coder_model: str = Field(
        default="gemini/gemini-2.5-pro",
        description="Model used to synthesize step artifacts"
    )
    planner_model: str = Field(
        default="gemini/gemini-2.5-pro",
        description="Model used to break orders into steps"
    )
    reasoning_model: str = Field(
        default="gemini/gemini-2.5-flash",
        description="Model used for the pattern gate plausibility check"
    )
    vision_model: str = Field(
        default="gemini/gemini-2.5-flash",
        description="Vision-capable model used for screenshot verdicts"
    )
    max_tokens_per_call: int = Field(
        default=8192,
        description="Maximum tokens per individual LLM call"
    )
    llm_api_key_env: str = Field(
        default="GEMINI_API_KEY",
        description="Environment variable holding the LLM provider key"
    )

    # Retry / circuit breaker
    max_step_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per step (synthesis + validation combined)"
    )
    max_consecutive_failures: int = Field(
        default=3,
        ge=1,
        description="Consecutive failed steps before the project is halted"
    )

    # Timeouts
    collaborator_timeout_seconds: float = Field(
        default=180.0,
        description="Deadline for a single collaborator call (LLM, payment, gate)"
    )
    step_timeout_seconds: float = Field(
        default=900.0,
        description="Overall deadline for all attempts of one step"
    )
    compile_timeout_seconds: float = Field(
        default=120.0,
        description="Deadline for the static compiler"
    )
    build_timeout_seconds: float = Field(
        default=900.0,
        description="Deadline for a platform build or deploy command"
    )
    browser_navigation_timeout_ms: int = Field(
        default=30000,
        description="Headless browser navigation timeout"
    )
    browser_settle_seconds: float = Field(
        default=2.0,
        description="Wait after navigation before capturing the screenshot"
    )
    preview_build_wait_seconds: float = Field(
        default=10.0,
        description="Wait for a freshly created preview deployment to come up"
    )
    app_launch_wait_seconds: float = Field(
        default=3.0,
        description="Wait for an Android app to draw its first screen"
    )

    # Validation
    step_validation: Literal["off", "static", "full"] = Field(
        default="off",
        description="Six Eyes on coding steps: off, static (pattern+compile) or full (all gates)"
    )
    preview_url: Optional[str] = Field(
        default=None,
        description="Reachable preview URL used by the visual gate when step_validation=full"
    )
    deny_list: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_DENY_LIST.items()},
        description="Known-bad substrings per domain tag"
    )

    # Payments
    payment_keywords: List[str] = Field(
        default_factory=lambda: ["payment", "stripe"],
        description="Step title keywords that mark a payment-setup step"
    )
    default_price_amount: float = Field(
        default=99.0,
        description="Price of the generated product in major currency units"
    )
    default_currency: str = Field(default="usd")
    stripe_test_key: str = Field(default="", description="Stripe test-mode secret key")
    stripe_live_key: str = Field(default="", description="Stripe live-mode secret key")
    stripe_api_base: str = Field(default="https://api.stripe.com/v1")

    # Notifications
    email_host: str = Field(default="smtp.gmail.com")
    email_port: int = Field(default=587)
    email_use_tls: bool = Field(default=True)
    email_user: str = Field(default="")
    email_password: str = Field(default="")
    admin_email: str = Field(default="")
    base_url: str = Field(
        default="http://localhost:5000",
        description="Base URL quoted in approval instructions"
    )

    # Platform tooling
    vercel_token: str = Field(default="")
    android_sdk_root: str = Field(default="")
    google_play_json_key: str = Field(default="", description="Path to the Play Console service account key")

    # Paths / storage
    workspace_dir: str = Field(
        default="./projects",
        description="Root directory for per-project workspaces"
    )
    state_dir: str = Field(
        default="./projects/.state",
        description="Directory for the JSON project store"
    )
    store_backend: Literal["memory", "json"] = Field(
        default="json",
        description="Project store backend"
    )
    max_concurrent_projects: int = Field(default=4, ge=1)
    registry_retention_hours: float = Field(
        default=72.0,
        description="Terminal projects older than this are pruned"
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    model_config = {
        "env_prefix": "BLACKSTAR_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def get_workspace_path(self) -> Path:
        """Get workspace path as Path object."""
        return Path(self.workspace_dir)

    def get_state_path(self) -> Path:
        """Get project store path as Path object."""
        return Path(self.state_dir)

    def llm_api_key(self) -> str:
        """Read the LLM provider key from the environment."""
        return os.environ.get(self.llm_api_key_env, "")


# Create singleton instance
settings = Settings()
