"""Token-budgeted, scene-aware batch sizing."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from subtitle_translator.document import Scene, SubtitleDocument

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class DynamicWindowConfig:
    min_batch_size: int = 5
    max_batch_size: int = 25
    target_tokens: int = 2000
    respect_scene_boundaries: bool = True
    lookahead_factor: float = 1.5

    def __post_init__(self) -> None:
        if self.min_batch_size < 1:
            raise ValueError("min_batch_size must be at least 1")
        if self.max_batch_size < self.min_batch_size:
            raise ValueError("max_batch_size must not be smaller than min_batch_size")

    @classmethod
    def fast(cls) -> "DynamicWindowConfig":
        return cls(
            min_batch_size=10,
            max_batch_size=30,
            target_tokens=3000,
            respect_scene_boundaries=False,
            lookahead_factor=1.0,
        )

    @classmethod
    def quality(cls) -> "DynamicWindowConfig":
        return cls(
            min_batch_size=3,
            max_batch_size=15,
            target_tokens=1500,
            respect_scene_boundaries=True,
            lookahead_factor=2.0,
        )


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, rounded up."""

    return math.ceil(len(text) / CHARS_PER_TOKEN)


class DynamicWindowSizer:
    """Pick a batch length from a token budget, then align it with scene ends."""

    def __init__(self, config: Optional[DynamicWindowConfig] = None) -> None:
        self.config = config or DynamicWindowConfig()

    def size_by_complexity(self, document: SubtitleDocument, position: int) -> int:
        tokens = 0
        count = 0
        for entry in document.entries[position : position + self.config.max_batch_size]:
            entry_tokens = estimate_tokens(entry.original_text)
            if tokens + entry_tokens > self.config.target_tokens and count >= self.config.min_batch_size:
                break
            tokens += entry_tokens
            count += 1
        return max(count, self.config.min_batch_size)

    def _scene_at(self, document: SubtitleDocument, position: int) -> Optional[Scene]:
        if position >= len(document.entries):
            return None
        return document.scene_for_entry(document.entries[position].id)

    def _entries_to_scene_end(self, document: SubtitleDocument, position: int, scene: Scene) -> int:
        end_index = document.index_of(scene.end_entry_id)
        if end_index is None or end_index < position:
            return 0
        return end_index - position + 1

    def adjust_for_scenes(self, document: SubtitleDocument, position: int, base_size: int) -> int:
        scene = self._scene_at(document, position)
        if scene is None:
            return base_size

        remaining = len(document.entries) - position
        to_scene_end = self._entries_to_scene_end(document, position, scene)
        if to_scene_end == 0:
            return base_size

        if self.config.min_batch_size <= to_scene_end <= self.config.max_batch_size:
            return min(to_scene_end, remaining)

        ends_mid_scene = base_size < to_scene_end
        extension_limit = int(self.config.max_batch_size * self.config.lookahead_factor)
        if ends_mid_scene and to_scene_end <= extension_limit:
            return min(to_scene_end, remaining, self.config.max_batch_size)
        return base_size

    def calculate_batch_size(self, document: SubtitleDocument, position: int) -> int:
        """Return the batch length for the window starting at ``position``."""

        total = len(document.entries)
        if position >= total:
            return 0
        remaining = total - position

        size = self.size_by_complexity(document, position)
        if self.config.respect_scene_boundaries and document.scenes:
            size = self.adjust_for_scenes(document, position, size)

        size = max(size, self.config.min_batch_size)
        size = min(size, self.config.max_batch_size)
        return min(size, remaining)

    def calculate_lookahead(
        self, document: SubtitleDocument, batch_end: int, base_lookahead: int
    ) -> int:
        """Return how many entries after ``batch_end`` to show as lookahead."""

        total = len(document.entries)
        if batch_end >= total:
            return 0
        remaining = total - batch_end

        if not self.config.respect_scene_boundaries:
            return min(base_lookahead, remaining)

        scene = self._scene_at(document, batch_end)
        if scene is not None:
            to_scene_end = self._entries_to_scene_end(document, batch_end, scene)
            return min(to_scene_end, remaining, base_lookahead * 2)
        return min(base_lookahead, remaining)


__all__ = [
    "CHARS_PER_TOKEN",
    "DynamicWindowConfig",
    "DynamicWindowSizer",
    "estimate_tokens",
]
