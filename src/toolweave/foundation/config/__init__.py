"""Configuration management using pydantic-settings.

Provides environment-based configuration with type safety and validation.
"""

from .settings import (
    DEFAULT_MODELS,
    AdapterSettings,
    CacheSettings,
    LoggingSettings,
    LoopSettings,
    Provider,
    ServerSettings,
    ToolweaveSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "DEFAULT_MODELS",
    "AdapterSettings",
    "CacheSettings",
    "LoggingSettings",
    "LoopSettings",
    "Provider",
    "ServerSettings",
    "ToolweaveSettings",
    "clear_settings_cache",
    "get_settings",
]
