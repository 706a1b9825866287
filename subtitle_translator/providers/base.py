"""Interface shared by every translation backend."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TranslationProvider(Protocol):
    """A model backend able to answer one structured translation request.

    ``complete`` receives the rendered system prompt and the JSON user payload
    and returns the raw model text. Failures are raised as
    :class:`~subtitle_translator.quality.errors.TranslationError`.
    """

    name: str
    model: str
    max_concurrent_requests: int

    def complete(self, system_prompt: str, payload: str) -> str:
        ...


__all__ = ["TranslationProvider"]
