"""Adapter construction from settings."""

from __future__ import annotations

from collections.abc import Callable

from toolweave.foundation.config import AdapterSettings
from toolweave.foundation.errors import ConfigurationError

from .anthropic import AnthropicAdapter
from .base import Adapter
from .gemini import GeminiAdapter
from .openai import OpenAIAdapter

ADAPTERS: dict[str, Callable[..., Adapter]] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "gemini": GeminiAdapter,
}


def create_adapter(settings: AdapterSettings) -> Adapter:
    """Build the adapter selected by `settings.provider`.

    Raises:
        ConfigurationError: unknown provider or missing API key
    """
    factory = ADAPTERS.get(settings.provider)
    if factory is None:
        raise ConfigurationError(f"unknown adapter provider '{settings.provider}'. Supported: {', '.join(ADAPTERS)}")
    if settings.api_key is None or not settings.api_key.get_secret_value():
        raise ConfigurationError(f"TOOLWEAVE_ADAPTER_API_KEY is required for the {settings.provider} adapter")
    return factory(
        settings.resolved_model,
        api_key=settings.api_key.get_secret_value(),
        base_url=settings.base_url,
        timeout=settings.timeout,
        max_tokens=settings.max_tokens,
        system_prompt=settings.system_prompt,
    )
