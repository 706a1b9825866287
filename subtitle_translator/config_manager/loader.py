"""Configuration loading utilities."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from subtitle_translator import logging_manager

from .constants import CONFIG_FILE_ENV, DEFAULT_CONFIG_PATH, SENSITIVE_CONFIG_KEYS
from .settings import (
    TranslatorSettings,
    apply_settings_updates,
    load_environment_overrides,
)

logger = logging_manager.get_logger().getChild("config")


_ACTIVE_SETTINGS: Optional[TranslatorSettings] = None


def _read_config_json(path: Optional[Path], label: str = "configuration") -> Dict[str, Any]:
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        logger.debug(
            "No %s found at %s.",
            label,
            path,
            extra={"event": "config.file.missing"},
        )
        return {}
    except json.JSONDecodeError as exc:
        logger.warning(
            "Error loading %s from %s: %s. Proceeding without it.",
            label,
            path,
            exc,
            extra={"event": "config.file.invalid"},
        )
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring %s at %s: top-level JSON value must be an object.",
            label,
            path,
            extra={"event": "config.file.invalid"},
        )
        return {}
    logger.debug("Loaded %s from %s", label, path, extra={"event": "config.file.loaded"})
    return data


def _resolve_config_path(config_file: Optional[str]) -> Path:
    candidate = config_file or os.environ.get(CONFIG_FILE_ENV)
    if not candidate:
        return DEFAULT_CONFIG_PATH
    path = Path(candidate).expanduser()
    if not path.is_absolute():
        path = (Path.cwd() / path).resolve()
    return path


def load_configuration(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> TranslatorSettings:
    """Load file, environment and explicit overrides into the active settings.

    Precedence, lowest first: model defaults, the JSON config file, environment
    variables, then ``overrides`` (typically CLI arguments with ``None`` values
    removed).
    """

    global _ACTIVE_SETTINGS

    file_payload = _read_config_json(_resolve_config_path(config_file))
    try:
        settings = TranslatorSettings.model_validate(file_payload)
    except ValidationError as exc:
        raise RuntimeError("Invalid configuration detected") from exc

    try:
        settings = apply_settings_updates(settings, load_environment_overrides())
        explicit = {key: value for key, value in (overrides or {}).items() if value is not None}
        settings = apply_settings_updates(settings, explicit)
    except ValidationError as exc:
        raise RuntimeError("Invalid configuration override detected") from exc

    _ACTIVE_SETTINGS = settings
    return settings


def export_configuration(settings: TranslatorSettings) -> Dict[str, Any]:
    """Return a dictionary view of ``settings`` without secret values."""

    return settings.model_dump(mode="python", exclude=set(SENSITIVE_CONFIG_KEYS))


def get_settings() -> TranslatorSettings:
    """Return the currently loaded :class:`TranslatorSettings` instance."""

    global _ACTIVE_SETTINGS
    if _ACTIVE_SETTINGS is None:
        settings = TranslatorSettings()
        settings = apply_settings_updates(settings, load_environment_overrides())
        _ACTIVE_SETTINGS = settings
    return _ACTIVE_SETTINGS


def reset_settings() -> None:
    """Forget the cached settings so the next lookup reloads them."""

    global _ACTIVE_SETTINGS
    _ACTIVE_SETTINGS = None


__all__ = [
    "export_configuration",
    "get_settings",
    "load_configuration",
    "reset_settings",
]
