"""High-level configuration management for subtitle-translator."""
from __future__ import annotations

from .constants import (
    ANTHROPIC_API_VERSION,
    CONFIG_FILE_ENV,
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_ANTHROPIC_URL,
    DEFAULT_CONFIG_PATH,
    DEFAULT_DATABASE_URL,
    DEFAULT_DISPATCH_DELAY_SECONDS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_URL,
    DEFAULT_PROFILE,
    DEFAULT_PROVIDER,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    SENSITIVE_CONFIG_KEYS,
    VALID_PROFILES,
    VALID_PROVIDERS,
)
from .loader import export_configuration, get_settings, load_configuration, reset_settings
from .settings import (
    EnvironmentOverrides,
    TranslatorSettings,
    apply_settings_updates,
    load_environment_overrides,
    normalize_provider,
)


def get_ollama_url() -> str:
    """Return the chat endpoint URL from the active settings."""

    return get_settings().api_url


def get_max_concurrency() -> int:
    """Return the configured number of concurrent provider requests."""

    return get_settings().max_concurrency


__all__ = [
    "ANTHROPIC_API_VERSION",
    "CONFIG_FILE_ENV",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_ANTHROPIC_URL",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_DATABASE_URL",
    "DEFAULT_DISPATCH_DELAY_SECONDS",
    "DEFAULT_MAX_CONCURRENCY",
    "DEFAULT_MODEL",
    "DEFAULT_OLLAMA_URL",
    "DEFAULT_PROFILE",
    "DEFAULT_PROVIDER",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "DEFAULT_SOURCE_LANGUAGE",
    "DEFAULT_TARGET_LANGUAGE",
    "EnvironmentOverrides",
    "SENSITIVE_CONFIG_KEYS",
    "TranslatorSettings",
    "VALID_PROFILES",
    "VALID_PROVIDERS",
    "apply_settings_updates",
    "export_configuration",
    "get_max_concurrency",
    "get_ollama_url",
    "get_settings",
    "load_configuration",
    "load_environment_overrides",
    "normalize_provider",
    "reset_settings",
]
