"""Bounded context windows sent with each translation request.

A window at position ``p`` holds the already-translated entries just before
``p``, the batch to translate starting at ``p``, a few entries of lookahead
and a snapshot of the glossary. Windows are built lazily by
:func:`iter_windows` so that each one observes translations applied after the
previous window was handled.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Iterator, List, Optional

from subtitle_translator.document import DocumentEntry, Glossary, SubtitleDocument

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .dynamic import DynamicWindowSizer


@dataclass(frozen=True)
class WindowConfig:
    recent_entries_count: int = 10
    batch_size: int = 15
    lookahead_count: int = 5
    enable_summarization: bool = True
    summarization_threshold: int = 50

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")

    @classmethod
    def minimal(cls) -> "WindowConfig":
        return cls(
            recent_entries_count=3,
            batch_size=5,
            lookahead_count=2,
            enable_summarization=False,
            summarization_threshold=100,
        )

    @classmethod
    def large_context(cls) -> "WindowConfig":
        return cls(
            recent_entries_count=20,
            batch_size=10,
            lookahead_count=10,
            enable_summarization=True,
            summarization_threshold=30,
        )


@dataclass(frozen=True)
class RecentEntry:
    id: int
    original: str
    translated: str


@dataclass(frozen=True)
class WindowEntry:
    id: int
    text: str
    timecode: str
    is_sound_effect: bool = False

    @classmethod
    def from_entry(cls, entry: DocumentEntry) -> "WindowEntry":
        return cls(
            id=entry.id,
            text=entry.original_text,
            timecode=entry.timecode.format_srt(),
            is_sound_effect=entry.is_sound_effect,
        )


@dataclass(frozen=True)
class ContextWindow:
    """Everything one translation request may see. Only ``current_batch`` must be translated."""

    source_language: str
    target_language: str
    position: int
    total_entries: int
    current_batch: List[WindowEntry] = field(default_factory=list)
    recent_entries: List[RecentEntry] = field(default_factory=list)
    lookahead: List[WindowEntry] = field(default_factory=list)
    glossary: Glossary = field(default_factory=Glossary)
    # Covers entries before ``position`` only.
    history_summary: Optional[str] = None

    def is_at_end(self) -> bool:
        return not self.current_batch

    def batch_ids(self) -> List[int]:
        return [entry.id for entry in self.current_batch]

    def progress_percent(self) -> float:
        if self.total_entries == 0:
            return 100.0
        return self.position / self.total_entries * 100.0

    def remaining_entries(self) -> int:
        return max(0, self.total_entries - self.position)

    def needs_summarization(self, config: WindowConfig) -> bool:
        return (
            config.enable_summarization
            and self.history_summary is None
            and self.position >= config.summarization_threshold
        )

    def with_history_summary(self, summary: str) -> "ContextWindow":
        return replace(self, history_summary=summary)

    def with_batch(self, batch: List[WindowEntry]) -> "ContextWindow":
        """Return a copy that requests only ``batch``, keeping the surrounding context."""

        return replace(self, current_batch=list(batch))

    def update_glossary(self, new_terms: Glossary) -> None:
        self.glossary.merge(new_terms)


def build_window(
    document: SubtitleDocument,
    position: int,
    config: WindowConfig,
    *,
    batch_size: Optional[int] = None,
    lookahead_count: Optional[int] = None,
    source_language: Optional[str] = None,
    target_language: Optional[str] = None,
) -> ContextWindow:
    """Assemble the window at ``position``; every range is clipped to the document."""

    entries = document.entries
    total = len(entries)
    position = max(0, min(position, total))
    size = config.batch_size if batch_size is None else max(0, batch_size)
    ahead = config.lookahead_count if lookahead_count is None else max(0, lookahead_count)

    recent_start = max(0, position - config.recent_entries_count)
    recent = [
        RecentEntry(id=entry.id, original=entry.original_text, translated=entry.translated_text)
        for entry in entries[recent_start:position]
        if entry.translated_text is not None
    ]

    batch_end = min(total, position + size)
    batch = [WindowEntry.from_entry(entry) for entry in entries[position:batch_end]]

    lookahead_end = min(total, batch_end + ahead)
    lookahead = [WindowEntry.from_entry(entry) for entry in entries[batch_end:lookahead_end]]

    return ContextWindow(
        source_language=source_language or document.source_language,
        target_language=target_language or document.target_language or "",
        position=position,
        total_entries=total,
        current_batch=batch,
        recent_entries=recent,
        lookahead=lookahead,
        glossary=document.glossary.copy(),
    )


def iter_windows(
    document: SubtitleDocument,
    config: WindowConfig,
    *,
    sizer: Optional["DynamicWindowSizer"] = None,
    source_language: Optional[str] = None,
    target_language: Optional[str] = None,
) -> Iterator[ContextWindow]:
    """Yield windows front to back, building each one only when requested."""

    position = 0
    total = len(document.entries)
    while position < total:
        if sizer is not None:
            size = sizer.calculate_batch_size(document, position)
            lookahead = sizer.calculate_lookahead(
                document, position + size, config.lookahead_count
            )
        else:
            size = config.batch_size
            lookahead = config.lookahead_count
        window = build_window(
            document,
            position,
            config,
            batch_size=size,
            lookahead_count=lookahead,
            source_language=source_language,
            target_language=target_language,
        )
        if window.is_at_end():
            return
        yield window
        position += len(window.current_batch)


def count_windows(
    document: SubtitleDocument,
    config: WindowConfig,
    *,
    sizer: Optional["DynamicWindowSizer"] = None,
) -> int:
    """Return how many windows :func:`iter_windows` will yield for ``document``."""

    total = len(document.entries)
    position = 0
    count = 0
    while position < total:
        size = sizer.calculate_batch_size(document, position) if sizer else config.batch_size
        position += max(1, min(size, total - position))
        count += 1
    return count


__all__ = [
    "ContextWindow",
    "RecentEntry",
    "WindowConfig",
    "WindowEntry",
    "build_window",
    "count_windows",
    "iter_windows",
]
