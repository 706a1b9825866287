"""Extractive history summaries for long documents.

Summaries are built from cheap heuristics (recurring names and evenly spaced
dialogue snippets) so that attaching history to a request never costs an
additional model call.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import List, Sequence

import regex

from subtitle_translator.document import DocumentEntry

_SIMPLE_NAME_PATTERN = regex.compile(r"\b([A-Z][a-z]+)\b")
_SUMMARY_EXCLUDE = frozenset(
    {
        "The", "This", "That", "What", "Where", "When", "Why", "How", "Yes",
        "No", "Oh", "Hey", "Well", "Now", "Here", "Please", "Thank", "Hello",
        "Sorry", "Just", "Really",
    }
)
_SNIPPET_LIMIT = 50
_MAX_NAMES = 5
_SNIPPET_COUNT = 3


@dataclass(frozen=True)
class SummarizationConfig:
    max_summary_chars: int = 500
    entries_per_summary: int = 50
    include_character_names: bool = True
    include_key_dialogue: bool = True


@dataclass(frozen=True)
class HistorySummary:
    text: str
    start_entry_id: int
    end_entry_id: int
    entry_count: int

    @classmethod
    def empty(cls) -> "HistorySummary":
        return cls(text="", start_entry_id=0, end_entry_id=0, entry_count=0)


class HistorySummarizer:
    """Compress already-seen dialogue into a short context paragraph."""

    def __init__(self, config: SummarizationConfig | None = None) -> None:
        self.config = config or SummarizationConfig()

    def summarize_extractive(self, entries: Sequence[DocumentEntry]) -> HistorySummary:
        if not entries:
            return HistorySummary.empty()

        parts: List[str] = []
        if self.config.include_character_names:
            names = self._likely_names(entries)
            if names:
                parts.append("Characters: " + ", ".join(names))
        if self.config.include_key_dialogue:
            snippets = self._key_snippets(entries, _SNIPPET_COUNT)
            if snippets:
                parts.append("Key dialogue: " + " ... ".join(snippets))
        parts.append(f"[{len(entries)} lines of dialogue]")

        return HistorySummary(
            text=self.truncate_to_limit(". ".join(parts)),
            start_entry_id=entries[0].id,
            end_entry_id=entries[-1].id,
            entry_count=len(entries),
        )

    def summarize_history(self, entries: Sequence[DocumentEntry]) -> HistorySummary:
        """Summarize ``entries`` in chunks of ``entries_per_summary`` and combine them."""

        chunk_size = max(1, self.config.entries_per_summary)
        if len(entries) <= chunk_size:
            return self.summarize_extractive(entries)
        chunks = [
            self.summarize_extractive(entries[start : start + chunk_size])
            for start in range(0, len(entries), chunk_size)
        ]
        return self.combine_summaries(chunks)

    def combine_summaries(self, summaries: Sequence[HistorySummary]) -> HistorySummary:
        if not summaries:
            return HistorySummary.empty()
        return HistorySummary(
            text=self.truncate_to_limit(" ".join(summary.text for summary in summaries)),
            start_entry_id=summaries[0].start_entry_id,
            end_entry_id=summaries[-1].end_entry_id,
            entry_count=sum(summary.entry_count for summary in summaries),
        )

    def build_summarization_prompt(self, entries: Sequence[DocumentEntry]) -> str:
        """Return a prompt asking a model for a 2-3 sentence summary of ``entries``."""

        dialogue = "".join(f"{entry.original_text}\n" for entry in entries)
        return "\n".join(
            [
                "Summarize the following dialogue in 2-3 sentences, focusing on:",
                "- Main characters and their relationships",
                "- Key plot points or events",
                "- Overall tone and setting",
                "",
                "Dialogue:",
                dialogue,
                "Summary:",
            ]
        )

    def truncate_to_limit(self, text: str) -> str:
        """Trim ``text`` to the configured size at a sentence, then word, boundary."""

        limit = self.config.max_summary_chars
        if len(text) <= limit:
            return text
        truncated = text[: max(0, limit - 3)]
        sentence_end = truncated.rfind(". ")
        if sentence_end != -1:
            return truncated[:sentence_end] + "."
        last_space = truncated.rfind(" ")
        if last_space != -1:
            return truncated[:last_space] + "..."
        return truncated + "..."

    def _likely_names(self, entries: Sequence[DocumentEntry]) -> List[str]:
        counts: Counter[str] = Counter()
        for entry in entries:
            for match in _SIMPLE_NAME_PATTERN.finditer(entry.original_text):
                name = match.group(1)
                if name not in _SUMMARY_EXCLUDE:
                    counts[name] += 1
        # Counter.most_common keeps first-seen order among equal counts.
        return [name for name, count in counts.most_common() if count >= 2][:_MAX_NAMES]

    def _key_snippets(self, entries: Sequence[DocumentEntry], count: int) -> List[str]:
        total = len(entries)
        if total <= count:
            indices = list(range(total))
        else:
            step = total // count
            indices = [index * step for index in range(count)]

        snippets: List[str] = []
        for index in indices:
            text = entries[index].original_text
            if len(text) > _SNIPPET_LIMIT:
                text = text[: _SNIPPET_LIMIT - 3] + "..."
            snippets.append(text)
        return snippets


__all__ = ["HistorySummarizer", "HistorySummary", "SummarizationConfig"]
