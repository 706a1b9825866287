"""Typed container for timed subtitle rows read from disk."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass(slots=True)
class SubtitleRow:
    """One numbered, timed subtitle block.

    Exposes ``seq``, ``start_ms``, ``end_ms`` and ``text`` so it can be passed
    straight to :meth:`SubtitleDocument.from_entries`.
    """

    seq: int
    start_ms: int
    end_ms: int
    lines: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.lines).strip()

    @property
    def duration_ms(self) -> int:
        return max(0, self.end_ms - self.start_ms)

    def as_tuple(self) -> Tuple[int, int, int, str]:
        return (self.seq, self.start_ms, self.end_ms, self.text)


__all__ = ["SubtitleRow"]
