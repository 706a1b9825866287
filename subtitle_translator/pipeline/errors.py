"""Exceptions raised by the translation pipeline."""

from __future__ import annotations


class PipelineCancelled(RuntimeError):
    """Raised when the caller's cancel check asks the pipeline to stop."""

    def __init__(self, message: str = "Translation cancelled", *, completed_batches: int = 0) -> None:
        super().__init__(message)
        self.completed_batches = completed_batches


__all__ = ["PipelineCancelled"]
