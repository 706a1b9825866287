"""Context window construction for translation requests."""

from __future__ import annotations

from .dynamic import DynamicWindowConfig, DynamicWindowSizer, estimate_tokens
from .window import (
    ContextWindow,
    RecentEntry,
    WindowConfig,
    WindowEntry,
    build_window,
    count_windows,
    iter_windows,
)

__all__ = [
    "ContextWindow",
    "DynamicWindowConfig",
    "DynamicWindowSizer",
    "RecentEntry",
    "WindowConfig",
    "WindowEntry",
    "build_window",
    "count_windows",
    "estimate_tokens",
    "iter_windows",
]
