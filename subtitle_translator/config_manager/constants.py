"""Shared constants for the configuration manager package."""
from __future__ import annotations

import os
from pathlib import Path

MODULE_DIR = Path(__file__).resolve().parent
PACKAGE_DIR = MODULE_DIR.parent.resolve()
DEFAULT_CONFIG_FILENAME = "subtitle_translator.json"
DEFAULT_CONFIG_PATH = Path.cwd() / DEFAULT_CONFIG_FILENAME
CONFIG_FILE_ENV = "SUBTITLE_TRANSLATOR_CONFIG"

SENSITIVE_CONFIG_KEYS = {"api_key", "anthropic_api_key", "database_url"}

DEFAULT_OLLAMA_URL = os.environ.get("OLLAMA_URL", "http://localhost:11434/api/chat")
DEFAULT_MODEL = "llama3.1:8b"
DEFAULT_PROVIDER = "ollama"
DEFAULT_ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_ANTHROPIC_MODEL = "claude-3-haiku-20240307"
ANTHROPIC_API_VERSION = "2023-06-01"
VALID_PROVIDERS = {"ollama", "anthropic", "mock"}
DEFAULT_SOURCE_LANGUAGE = "en"
DEFAULT_TARGET_LANGUAGE = "fr"
DEFAULT_PROFILE = "default"
VALID_PROFILES = {"default", "fast", "quality"}
DEFAULT_REQUEST_TIMEOUT_SECONDS = 120.0
DEFAULT_MAX_CONCURRENCY = 2
DEFAULT_DISPATCH_DELAY_SECONDS = 0.5
DEFAULT_DATABASE_URL = "sqlite:///subtitle_translator_sessions.db"

__all__ = [
    "ANTHROPIC_API_VERSION",
    "CONFIG_FILE_ENV",
    "DEFAULT_ANTHROPIC_MODEL",
    "DEFAULT_ANTHROPIC_URL",
    "DEFAULT_CONFIG_FILENAME",
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
    "MODULE_DIR",
    "PACKAGE_DIR",
    "SENSITIVE_CONFIG_KEYS",
    "VALID_PROFILES",
    "VALID_PROVIDERS",
]
