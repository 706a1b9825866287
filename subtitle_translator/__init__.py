"""Context-aware subtitle translation with large language models."""

from __future__ import annotations

__version__ = "0.1.0"

from .document import DocumentEntry, Glossary, Scene, SubtitleDocument, Timecode
from .pipeline import (
    PipelineConfig,
    PipelineResult,
    TranslationPipeline,
    translate_entries,
)
from .providers import AnthropicProvider, MockProvider, OllamaProvider, create_provider
from .quality import ErrorKind, TranslationError
from .translation_cache import TranslationCache

__all__ = [
    "AnthropicProvider",
    "DocumentEntry",
    "ErrorKind",
    "Glossary",
    "MockProvider",
    "OllamaProvider",
    "PipelineConfig",
    "PipelineResult",
    "Scene",
    "SubtitleDocument",
    "Timecode",
    "TranslationCache",
    "TranslationError",
    "TranslationPipeline",
    "__version__",
    "create_provider",
    "translate_entries",
]
