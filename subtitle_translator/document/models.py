"""Document model for subtitle translation.

A :class:`SubtitleDocument` is built once from an ordered list of timed text
rows. Analysis attaches scenes, a glossary and a summary; translation and
repair write ``translated_text`` on each :class:`DocumentEntry`. Timing never
changes after construction.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .glossary import Glossary

OutputRow = Tuple[int, int, int, str]

_SRT_TIMESTAMP = re.compile(r"^\s*(\d{1,2}):(\d{2}):(\d{2})[,.](\d{3})\s*$")


def parse_srt_timestamp(value: str) -> int:
    """Return milliseconds for an ``HH:MM:SS,mmm`` (or ``.mmm``) timestamp."""

    match = _SRT_TIMESTAMP.match(value or "")
    if not match:
        raise ValueError(f"Invalid SRT timestamp: {value!r}")
    hours, minutes, seconds, millis = (int(part) for part in match.groups())
    return ((hours * 60 + minutes) * 60 + seconds) * 1000 + millis


def format_srt_timestamp(value_ms: int) -> str:
    hours, remainder = divmod(int(value_ms), 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    seconds, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


@dataclass(frozen=True)
class Timecode:
    """Immutable display span of one subtitle line, in milliseconds."""

    start_ms: int
    end_ms: int

    def __post_init__(self) -> None:
        if self.start_ms < 0:
            raise ValueError(f"start_ms must be non-negative, got {self.start_ms}")
        if self.end_ms <= self.start_ms:
            raise ValueError(
                f"end_ms ({self.end_ms}) must be greater than start_ms ({self.start_ms})"
            )

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def format_srt(self) -> str:
        return f"{format_srt_timestamp(self.start_ms)} --> {format_srt_timestamp(self.end_ms)}"


class FormattingTag(str, enum.Enum):
    """Markup families whose presence must survive translation."""

    ITALIC = "italic"
    BOLD = "bold"
    UNDERLINE = "underline"
    POSITION = "position"
    COLOR = "color"

    def is_present(self, text: str) -> bool:
        return any(marker in text for marker in _TAG_MARKERS[self])


_TAG_MARKERS: Dict[FormattingTag, Tuple[str, ...]] = {
    FormattingTag.ITALIC: ("<i>", "</i>"),
    FormattingTag.BOLD: ("<b>", "</b>"),
    FormattingTag.UNDERLINE: ("<u>", "</u>"),
    FormattingTag.POSITION: ("{\\an",),
    FormattingTag.COLOR: ("<font", "</font>"),
}


def detect_formatting(text: str) -> Tuple[FormattingTag, ...]:
    """Return the formatting tags found in ``text`` in declaration order."""

    return tuple(tag for tag in FormattingTag if tag.is_present(text))


def is_sound_effect_text(text: str) -> bool:
    stripped = text.strip()
    if len(stripped) < 2:
        return False
    return (stripped[0] == "[" and stripped[-1] == "]") or (
        stripped[0] == "(" and stripped[-1] == ")"
    )


@dataclass(slots=True)
class DocumentEntry:
    """Lifecycle of one dialogue line from original text to translation."""

    id: int
    timecode: Timecode
    original_text: str
    translated_text: Optional[str] = None
    speaker: Optional[str] = None
    scene_id: Optional[int] = None
    formatting: Tuple[FormattingTag, ...] = ()
    confidence: Optional[float] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("id", "timecode", "original_text", "formatting"):
            try:
                object.__getattribute__(self, name)
            except AttributeError:
                pass
            else:
                raise AttributeError(f"DocumentEntry.{name} is read-only")
        object.__setattr__(self, name, value)

    def set_translation(self, text: str, confidence: Optional[float] = None) -> None:
        self.translated_text = text
        self.confidence = confidence

    @property
    def is_translated(self) -> bool:
        return self.translated_text is not None

    @property
    def is_sound_effect(self) -> bool:
        return is_sound_effect_text(self.original_text)

    @property
    def output_text(self) -> str:
        if self.translated_text is not None:
            return self.translated_text
        return self.original_text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start_ms": self.timecode.start_ms,
            "end_ms": self.timecode.end_ms,
            "original_text": self.original_text,
            "translated_text": self.translated_text,
            "speaker": self.speaker,
            "scene_id": self.scene_id,
            "formatting": [tag.value for tag in self.formatting],
            "confidence": self.confidence,
        }


@dataclass(slots=True)
class Scene:
    """A contiguous run of entries sharing narrative context."""

    id: int
    start_entry_id: int
    end_entry_id: int
    description: Optional[str] = None
    tone: Optional[str] = None

    @property
    def entry_count(self) -> int:
        return self.end_entry_id - self.start_entry_id + 1

    def contains(self, entry_id: int) -> bool:
        return self.start_entry_id <= entry_id <= self.end_entry_id


def _coerce_row(row: Any) -> Tuple[int, int, int, str]:
    if isinstance(row, (tuple, list)):
        if len(row) != 4:
            raise ValueError(f"Expected (seq, start_ms, end_ms, text), got {row!r}")
        seq, start_ms, end_ms, text = row
    else:
        seq = getattr(row, "seq", None)
        if seq is None:
            seq = getattr(row, "seq_num", None)
        if seq is None:
            seq = getattr(row, "id", None)
        if seq is None:
            seq = getattr(row, "index")
        start_ms = getattr(row, "start_ms")
        end_ms = getattr(row, "end_ms")
        text = getattr(row, "text")
    return int(seq), int(start_ms), int(end_ms), str(text)


@dataclass(slots=True)
class SubtitleDocument:
    """Aggregate root holding entries plus derived scenes, glossary and summary."""

    source_language: str
    target_language: Optional[str] = None
    entries: List[DocumentEntry] = field(default_factory=list)
    scenes: List[Scene] = field(default_factory=list)
    glossary: Glossary = field(default_factory=Glossary)
    context_summary: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    _index: Dict[int, int] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_entries(
        cls,
        rows: Iterable[Any],
        source_language: str,
        target_language: Optional[str] = None,
        *,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "SubtitleDocument":
        """Build a document from ``(seq, start_ms, end_ms, text)`` rows."""

        coerced = sorted((_coerce_row(row) for row in rows), key=lambda item: item[0])
        entries: List[DocumentEntry] = []
        seen: set[int] = set()
        for seq, start_ms, end_ms, text in coerced:
            if seq in seen:
                raise ValueError(f"Duplicate entry id {seq}")
            seen.add(seq)
            entries.append(
                DocumentEntry(
                    id=seq,
                    timecode=Timecode(start_ms, end_ms),
                    original_text=text,
                    formatting=detect_formatting(text),
                )
            )
        return cls(
            source_language=source_language,
            target_language=target_language,
            entries=entries,
            metadata=dict(metadata or {}),
        )

    def __len__(self) -> int:
        return len(self.entries)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def _lookup(self) -> Dict[int, int]:
        if len(self._index) != len(self.entries):
            self._index = {entry.id: position for position, entry in enumerate(self.entries)}
        return self._index

    def index_of(self, entry_id: int) -> Optional[int]:
        return self._lookup().get(entry_id)

    def get_entry(self, entry_id: int) -> Optional[DocumentEntry]:
        position = self.index_of(entry_id)
        if position is None:
            return None
        return self.entries[position]

    def scene_for_entry(self, entry_id: int) -> Optional[Scene]:
        for scene in self.scenes:
            if scene.contains(entry_id):
                return scene
        return None

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------
    def translated_entries(self) -> List[DocumentEntry]:
        return [entry for entry in self.entries if entry.is_translated]

    def pending_entries(self) -> List[DocumentEntry]:
        return [entry for entry in self.entries if not entry.is_translated]

    def translation_progress(self) -> float:
        """Return the translated share of entries as a percentage."""

        if not self.entries:
            return 100.0
        return len(self.translated_entries()) / len(self.entries) * 100.0

    def is_fully_translated(self) -> bool:
        return all(entry.is_translated for entry in self.entries)

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------
    def apply_scenes(self, scenes: Sequence[Scene]) -> None:
        """Replace the scene partition and refresh ``scene_id`` on every entry."""

        self.scenes = list(scenes)
        for entry in self.entries:
            entry.scene_id = None
        for scene in self.scenes:
            for entry in self.entries:
                if scene.contains(entry.id):
                    entry.scene_id = scene.id

    def to_output_entries(self) -> List[OutputRow]:
        """Return ``(id, start_ms, end_ms, text)`` rows, translated where available."""

        return [
            (entry.id, entry.timecode.start_ms, entry.timecode.end_ms, entry.output_text)
            for entry in self.entries
        ]


__all__ = [
    "DocumentEntry",
    "FormattingTag",
    "OutputRow",
    "Scene",
    "SubtitleDocument",
    "Timecode",
    "detect_formatting",
    "format_srt_timestamp",
    "is_sound_effect_text",
    "parse_srt_timestamp",
]
