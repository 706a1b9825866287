"""Subtitle file exceptions."""

from __future__ import annotations


class SubtitleProcessingError(RuntimeError):
    """Raised when a subtitle file cannot be decoded, parsed or written."""


__all__ = ["SubtitleProcessingError"]
