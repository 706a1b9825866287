"""Pydantic models and helper utilities for configuration values."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from subtitle_translator import logging_manager

from .constants import (
    DEFAULT_ANTHROPIC_URL,
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
    VALID_PROFILES,
    VALID_PROVIDERS,
)

logger = logging_manager.get_logger().getChild("config")


class TranslatorSettings(BaseModel):
    """Typed representation of the translator configuration."""

    model_config = ConfigDict(extra="ignore")

    source_language: str = DEFAULT_SOURCE_LANGUAGE
    target_language: str = DEFAULT_TARGET_LANGUAGE
    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    api_url: str = DEFAULT_OLLAMA_URL
    api_key: Optional[SecretStr] = None
    anthropic_url: str = DEFAULT_ANTHROPIC_URL
    anthropic_api_key: Optional[SecretStr] = None
    profile: str = DEFAULT_PROFILE
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0)
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1)
    dispatch_delay_seconds: float = Field(default=DEFAULT_DISPATCH_DELAY_SECONDS, ge=0)
    custom_instructions: Optional[str] = None
    enable_analysis: bool = True
    enable_validation: bool = True
    enable_cache: bool = True
    database_url: Optional[SecretStr] = None
    debug: bool = False

    @field_validator("provider")
    @classmethod
    def _check_provider(cls, value: str) -> str:
        return normalize_provider(value)

    @field_validator("profile")
    @classmethod
    def _check_profile(cls, value: str) -> str:
        normalized = str(value or "").strip().lower()
        if normalized not in VALID_PROFILES:
            raise ValueError(
                f"profile must be one of {sorted(VALID_PROFILES)}, got {value!r}"
            )
        return normalized

    def resolved_database_url(self) -> str:
        """Return the session database URL, falling back to the local SQLite file."""

        if self.database_url is None:
            return DEFAULT_DATABASE_URL
        return self.database_url.get_secret_value()


class EnvironmentOverrides(BaseSettings):
    """Configuration overrides sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    source_language: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_SOURCE_LANGUAGE")
    )
    target_language: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_TARGET_LANGUAGE")
    )
    provider: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_PROVIDER", "LLM_PROVIDER")
    )
    model: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_MODEL", "OLLAMA_MODEL")
    )
    api_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OLLAMA_URL", "SUBTITLE_TRANSLATOR_API_URL")
    )
    api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("OLLAMA_API_KEY", "SUBTITLE_TRANSLATOR_API_KEY"),
    )
    anthropic_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_ANTHROPIC_URL"),
    )
    anthropic_api_key: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("ANTHROPIC_API_KEY")
    )
    profile: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_PROFILE")
    )
    request_timeout_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_TIMEOUT")
    )
    max_concurrency: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_MAX_CONCURRENCY")
    )
    dispatch_delay_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_DISPATCH_DELAY")
    )
    enable_cache: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_CACHE")
    )
    database_url: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_DATABASE_URL", "DATABASE_URL"),
    )
    debug: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("SUBTITLE_TRANSLATOR_DEBUG")
    )


def load_environment_overrides() -> Dict[str, Any]:
    """Return configuration overrides sourced from environment variables."""

    try:
        overrides = EnvironmentOverrides()
    except ValidationError as exc:
        logger.warning(
            "Invalid environment configuration detected; using defaults.",
            extra={"event": "config.env.validation_error", "error": str(exc)},
        )
        return {}
    return overrides.model_dump(exclude_none=True)


def apply_settings_updates(
    settings: TranslatorSettings, updates: Dict[str, Any]
) -> TranslatorSettings:
    """Return a validated copy of ``settings`` updated with ``updates``."""

    if not updates:
        return settings
    payload = settings.model_dump()
    payload.update(updates)
    return TranslatorSettings.model_validate(payload)


def normalize_provider(candidate: Any, *, default: str = DEFAULT_PROVIDER) -> str:
    """Return a normalised provider identifier."""

    if isinstance(candidate, str):
        normalized = candidate.strip().lower().replace("-", "_")
        if normalized in {"ollama_local", "ollama_cloud"}:
            normalized = "ollama"
        if normalized in VALID_PROVIDERS:
            return normalized
        if normalized:
            raise ValueError(
                f"provider must be one of {sorted(VALID_PROVIDERS)}, got {candidate!r}"
            )
    return default


__all__ = [
    "EnvironmentOverrides",
    "TranslatorSettings",
    "apply_settings_updates",
    "load_environment_overrides",
    "normalize_provider",
]
