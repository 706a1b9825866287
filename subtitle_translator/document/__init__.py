"""Document model: entries, timing, scenes and glossary."""

from __future__ import annotations

from .glossary import Glossary, GlossaryTerm
from .models import (
    DocumentEntry,
    FormattingTag,
    OutputRow,
    Scene,
    SubtitleDocument,
    Timecode,
    detect_formatting,
    format_srt_timestamp,
    is_sound_effect_text,
    parse_srt_timestamp,
)

__all__ = [
    "DocumentEntry",
    "FormattingTag",
    "Glossary",
    "GlossaryTerm",
    "OutputRow",
    "Scene",
    "SubtitleDocument",
    "Timecode",
    "detect_formatting",
    "format_srt_timestamp",
    "is_sound_effect_text",
    "parse_srt_timestamp",
]
