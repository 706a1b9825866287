"""Subtitle file reading and writing."""

from __future__ import annotations

from .errors import SubtitleProcessingError
from .io import load_subtitle_rows, write_srt
from .models import SubtitleRow

__all__ = ["SubtitleProcessingError", "SubtitleRow", "load_subtitle_rows", "write_srt"]
