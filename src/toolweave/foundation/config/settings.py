"""Settings for the tool server, model backend, cache, loop and logging.

Each section reads its own `TOOLWEAVE_<SECTION>_` environment prefix;
the root also reads a `.env` file. Values are validated on load.

Example:
    >>> from toolweave.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.cache.ttl
    300.0
    >>> settings.loop.max_iterations
    5

    # Typical environment:
    # TOOLWEAVE_SERVER_COMMAND=/usr/local/bin/blueprint-mcp
    # TOOLWEAVE_ADAPTER_PROVIDER=anthropic
    # TOOLWEAVE_CACHE_TTL=600
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, PositiveFloat, PositiveInt, SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigurationError

Provider = Literal["openai", "anthropic", "gemini"]

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4-turbo-preview",
    "anthropic": "claude-3-5-sonnet-20241022",
    "gemini": "gemini-2.0-flash",
}


class ServerSettings(BaseSettings):
    """Tool-execution endpoint (MCP server) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLWEAVE_SERVER_",
        extra="ignore",
    )

    transport: Literal["stdio", "http"] = "stdio"
    command: str | None = Field(default=None, description="Executable launched for the stdio transport")
    args: list[str] = Field(default_factory=list, description="Arguments passed to the server executable")
    env: dict[str, str] = Field(default_factory=dict, description="Extra environment for the server process")
    url: str | None = Field(default=None, description="Endpoint URL for the http transport")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra HTTP headers")
    call_timeout: PositiveFloat = Field(default=30.0, description="Per-request timeout in seconds")
    protocol_version: str = "2024-11-05"
    client_name: str = "toolweave"
    client_version: str = "0.1.0"

    def validate_target(self) -> None:
        """Ensure the selected transport has somewhere to connect."""
        if self.transport == "stdio" and not self.command:
            raise ConfigurationError("TOOLWEAVE_SERVER_COMMAND is required for the stdio transport")
        if self.transport == "http" and not self.url:
            raise ConfigurationError("TOOLWEAVE_SERVER_URL is required for the http transport")


class CacheSettings(BaseSettings):
    """Result cache configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLWEAVE_CACHE_",
        extra="ignore",
    )

    enabled: bool = True
    ttl: PositiveFloat = Field(default=300.0, description="Entry time-to-live in seconds")
    sweep_interval: PositiveFloat = Field(default=60.0, description="Background eviction period in seconds")


class LoopSettings(BaseSettings):
    """Orchestration loop configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLWEAVE_LOOP_",
        extra="ignore",
    )

    max_iterations: Annotated[int, Field(ge=1, le=50)] = 5


class AdapterSettings(BaseSettings):
    """Model backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLWEAVE_ADAPTER_",
        extra="ignore",
    )

    provider: Provider = "openai"
    api_key: SecretStr | None = Field(default=None, description="API key for the selected provider")
    model: str = Field(default="", description="Model name; provider default when empty")
    base_url: str | None = Field(default=None, description="Override the provider endpoint")
    timeout: PositiveFloat = Field(default=120.0, description="Model request timeout in seconds")
    max_tokens: PositiveInt = 4096
    system_prompt: str | None = Field(default=None, description="Replace the built-in system prompt")

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v

    @computed_field
    @property
    def resolved_model(self) -> str:
        """Configured model, or the provider default."""
        return self.model or DEFAULT_MODELS[self.provider]


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLWEAVE_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "text"

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class ToolweaveSettings(BaseSettings):
    """All sections together; `build_service` consumes one of these.

    For example:
        TOOLWEAVE_SERVER_TRANSPORT=http
        TOOLWEAVE_SERVER_URL=http://localhost:8080/mcp
        TOOLWEAVE_ADAPTER_API_KEY=sk-...
        TOOLWEAVE_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="TOOLWEAVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    # Nested settings (loaded with TOOLWEAVE_SERVER_, TOOLWEAVE_CACHE_, etc.)
    server: ServerSettings = Field(default_factory=ServerSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    loop: LoopSettings = Field(default_factory=LoopSettings)
    adapter: AdapterSettings = Field(default_factory=AdapterSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> ToolweaveSettings:
    """Get the global settings instance (cached)."""
    return ToolweaveSettings()


def clear_settings_cache() -> None:
    """Drop the cached instance; the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
