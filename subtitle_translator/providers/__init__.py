"""Translation backends and the factory used by the CLI."""

from __future__ import annotations

from typing import Optional

from subtitle_translator import config_manager as cfg
from subtitle_translator.config_manager import TranslatorSettings, get_settings, normalize_provider
from subtitle_translator.llm_client import create_client

from .anthropic import AnthropicProvider
from .base import TranslationProvider
from .mock import MockProvider, echo_response
from .ollama import OllamaProvider


def create_provider(
    name: Optional[str] = None, settings: Optional[TranslatorSettings] = None
) -> TranslationProvider:
    """Return a provider for ``name`` configured from ``settings``."""

    settings = settings or get_settings()
    provider_name = normalize_provider(name or settings.provider)
    if provider_name == "mock":
        return MockProvider(model=settings.model, max_concurrent_requests=settings.max_concurrency)
    if provider_name == "anthropic":
        model = settings.model
        if model == cfg.DEFAULT_MODEL:
            model = cfg.DEFAULT_ANTHROPIC_MODEL
        anthropic_key = settings.anthropic_api_key
        return AnthropicProvider(
            anthropic_key.get_secret_value() if anthropic_key else None,
            model=model,
            api_url=settings.anthropic_url,
            max_concurrent_requests=settings.max_concurrency,
            timeout_seconds=settings.request_timeout_seconds,
        )

    api_key = settings.api_key.get_secret_value() if settings.api_key else None
    client = create_client(
        model=settings.model,
        api_url=settings.api_url,
        debug=settings.debug,
        api_key=api_key,
        timeout_seconds=settings.request_timeout_seconds,
    )
    return OllamaProvider(client, max_concurrent_requests=settings.max_concurrency)


__all__ = [
    "AnthropicProvider",
    "MockProvider",
    "OllamaProvider",
    "TranslationProvider",
    "create_provider",
    "echo_response",
]
