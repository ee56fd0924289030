"""Settings via pydantic-settings with AGENTCHAT_ env prefix.

Provider credentials use validation_alias to read the same unprefixed env
vars (ANTHROPIC_API_KEY, ANTHROPIC_AUTH_TOKEN) the Anthropic SDKs use, and
PORT is honored so the service drops into the usual PaaS conventions.
"""

from typing import Literal

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. You have access to tools that you can use to "
    "help answer questions. Use tools when appropriate to provide accurate information."
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AGENTCHAT_", env_file=".env", extra="ignore")

    # Runtime
    host: str = "0.0.0.0"
    port: int = Field(3000, validation_alias=AliasChoices("AGENTCHAT_PORT", "PORT"))
    log_level: str = "info"

    # Provider auth: auth_token (Bearer) takes precedence over api_key (x-api-key)
    anthropic_api_key: str = Field("", validation_alias="ANTHROPIC_API_KEY")
    anthropic_auth_token: str = Field("", validation_alias="ANTHROPIC_AUTH_TOKEN")

    # LLM
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1024
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    # Agent loop
    max_turns: int = 10  # Max model calls per /chat request

    # Direct API settings
    api_base_url: str = "https://api.anthropic.com"
    api_timeout_connect: int = 10  # seconds
    api_timeout_read: int = 120  # seconds
    api_max_retries: int = 0  # 0 = every model call is attempted exactly once

    # Sessions
    session_backend: Literal["memory", "lru"] = "memory"
    max_sessions: int = 1000  # lru backend only
    session_ttl_seconds: int = 0  # lru backend only, 0 disables idle expiry
    session_locking: bool = False  # serialize concurrent turns per session

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        if self.max_turns < 1:
            raise ValueError("max_turns must be >= 1")
        if self.api_max_retries < 0:
            raise ValueError("api_max_retries must be >= 0")
        if self.session_backend == "lru" and self.max_sessions < 1:
            raise ValueError("max_sessions must be >= 1 for the lru session backend")
        return self
