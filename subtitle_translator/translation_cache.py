"""Two-tier cache of finished translations.

Lookups try an in-memory map first, then the optional database store; store
hits are promoted into memory. Database failures are logged and treated as
misses so a broken cache never stops a translation run.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from subtitle_translator import logging_manager as log_mgr
from subtitle_translator.session.cache_store import TranslationCacheStore

logger = log_mgr.get_logger().getChild("translation_cache")

CacheKey = Tuple[str, str, str]

_PREVIEW_LENGTH = 30


@dataclass(frozen=True)
class CacheConfig:
    memory_enabled: bool = True
    store_enabled: bool = True
    # 0 keeps every entry.
    max_memory_entries: int = 10000

    @classmethod
    def memory_only(cls) -> "CacheConfig":
        return cls(store_enabled=False)


@dataclass(slots=True)
class CacheStats:
    memory_hits: int = 0
    memory_misses: int = 0
    store_hits: int = 0
    store_misses: int = 0
    memory_entries: int = 0

    def hit_rate(self) -> float:
        """Percentage of lookups answered by either tier."""

        lookups = self.memory_hits + self.memory_misses
        if lookups == 0:
            return 0.0
        return (self.memory_hits + self.store_hits) / lookups * 100.0

    def summary(self) -> str:
        return (
            f"Cache: memory {self.memory_hits}/{self.memory_hits + self.memory_misses} hits, "
            f"store {self.store_hits}/{self.store_hits + self.store_misses} hits, "
            f"{self.hit_rate():.1f}% overall hit rate"
        )


def _preview(text: str) -> str:
    if len(text) <= _PREVIEW_LENGTH:
        return text
    return f"{text[:_PREVIEW_LENGTH]}..."


class TranslationCache:
    """Thread-safe translation cache shared by the batches of a run."""

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        store: Optional[TranslationCacheStore] = None,
    ) -> None:
        self.config = config or CacheConfig()
        self._store = store if self.config.store_enabled else None
        self._memory: "OrderedDict[CacheKey, str]" = OrderedDict()
        self._stats = CacheStats()
        self._lock = threading.Lock()

    @property
    def has_store(self) -> bool:
        return self._store is not None

    def get(self, text: str, source_language: str, target_language: str) -> Optional[str]:
        key = (text, source_language, target_language)
        if self.config.memory_enabled:
            with self._lock:
                cached = self._memory.get(key)
                if cached is not None:
                    self._stats.memory_hits += 1
                    return cached
                self._stats.memory_misses += 1

        if self._store is None:
            return None
        try:
            cached = self._store.get(text, source_language, target_language)
        except SQLAlchemyError as exc:
            logger.warning(
                "Cache store lookup failed: %s",
                exc,
                extra={"event": "translation_cache.store_error"},
            )
            return None

        with self._lock:
            if cached is None:
                self._stats.store_misses += 1
                return None
            self._stats.store_hits += 1
            if self.config.memory_enabled:
                self._remember(key, cached)
        logger.debug(
            "Store cache hit for '%s' (%s -> %s)",
            _preview(text),
            source_language,
            target_language,
            extra={"event": "translation_cache.store_hit"},
        )
        return cached

    def store(
        self, text: str, source_language: str, target_language: str, translation: str
    ) -> None:
        if self.config.memory_enabled:
            with self._lock:
                self._remember((text, source_language, target_language), translation)
        if self._store is None:
            return
        try:
            self._store.put(text, source_language, target_language, translation)
        except SQLAlchemyError as exc:
            logger.warning(
                "Cache store write failed: %s",
                exc,
                extra={"event": "translation_cache.store_error"},
            )

    def _remember(self, key: CacheKey, translation: str) -> None:
        # Caller holds the lock.
        if key in self._memory:
            self._memory.move_to_end(key)
        elif 0 < self.config.max_memory_entries <= len(self._memory):
            self._memory.popitem(last=False)
        self._memory[key] = translation

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                memory_hits=self._stats.memory_hits,
                memory_misses=self._stats.memory_misses,
                store_hits=self._stats.store_hits,
                store_misses=self._stats.store_misses,
                memory_entries=len(self._memory),
            )

    def clear_memory(self) -> None:
        with self._lock:
            self._memory.clear()
            self._stats.memory_hits = 0
            self._stats.memory_misses = 0


__all__ = ["CacheConfig", "CacheStats", "TranslationCache"]
