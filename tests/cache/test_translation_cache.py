"""Tests for the two-tier translation cache and its database store."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from subtitle_translator.session import TranslationCacheStore, create_session_factory
from subtitle_translator.translation_cache import CacheConfig, CacheStats, TranslationCache

pytestmark = pytest.mark.cache


@pytest.fixture
def store() -> TranslationCacheStore:
    return TranslationCacheStore(create_session_factory("sqlite://"), provider="ollama", model="m")


class TestTranslationCacheStore:
    """Tests for TranslationCacheStore."""

    def test_put_then_get(self, store):
        assert store.get("Hello", "en", "fr") is None
        store.put("Hello", "en", "fr", "Bonjour")
        assert store.get("Hello", "en", "fr") == "Bonjour"
        assert store.get("Hello", "en", "de") is None
        assert store.count() == 1

    def test_put_replaces_existing_translation(self, store):
        store.put("Hello", "en", "fr", "Salut")
        store.put("Hello", "en", "fr", "Bonjour")
        assert store.get("Hello", "en", "fr") == "Bonjour"
        assert store.count() == 1

    def test_entries_are_scoped_to_provider_and_model(self, store):
        store.put("Hello", "en", "fr", "Bonjour")
        other_model = TranslationCacheStore(store._factory, provider="ollama", model="other")
        assert other_model.get("Hello", "en", "fr") is None

    def test_clear(self, store):
        store.put("Hello", "en", "fr", "Bonjour")
        store.put("Bye", "en", "fr", "Salut")
        assert store.clear() == 2
        assert store.count() == 0


class TestTranslationCache:
    """Tests for TranslationCache lookups, promotion and eviction."""

    def test_memory_hit(self):
        cache = TranslationCache(CacheConfig.memory_only())
        assert cache.get("Hello", "en", "fr") is None
        cache.store("Hello", "en", "fr", "Bonjour")

        assert cache.get("Hello", "en", "fr") == "Bonjour"
        stats = cache.stats()
        assert (stats.memory_hits, stats.memory_misses) == (1, 1)
        assert stats.memory_entries == 1
        assert not cache.has_store

    def test_language_pair_is_part_of_the_key(self):
        cache = TranslationCache(CacheConfig.memory_only())
        cache.store("Hello", "en", "fr", "Bonjour")
        assert cache.get("Hello", "en", "es") is None

    def test_store_hit_is_promoted_to_memory(self, store):
        store.put("Hello", "en", "fr", "Bonjour")
        cache = TranslationCache(store=store)

        assert cache.get("Hello", "en", "fr") == "Bonjour"
        assert cache.get("Hello", "en", "fr") == "Bonjour"

        stats = cache.stats()
        assert stats.store_hits == 1
        assert stats.memory_hits == 1
        assert stats.memory_entries == 1

    def test_store_written_through(self, store):
        TranslationCache(store=store).store("Hello", "en", "fr", "Bonjour")
        fresh = TranslationCache(store=store)
        assert fresh.get("Hello", "en", "fr") == "Bonjour"

    def test_oldest_entry_evicted_when_full(self):
        cache = TranslationCache(CacheConfig(store_enabled=False, max_memory_entries=2))
        cache.store("one", "en", "fr", "un")
        cache.store("two", "en", "fr", "deux")
        cache.store("three", "en", "fr", "trois")

        assert cache.get("one", "en", "fr") is None
        assert cache.get("three", "en", "fr") == "trois"
        assert cache.stats().memory_entries == 2

    def test_store_disabled_by_config(self, store):
        cache = TranslationCache(CacheConfig(store_enabled=False), store=store)
        cache.store("Hello", "en", "fr", "Bonjour")
        assert store.count() == 0

    def test_store_errors_become_misses(self):
        broken = MagicMock(spec=TranslationCacheStore)
        broken.get.side_effect = OperationalError("SELECT", {}, Exception("locked"))
        broken.put.side_effect = OperationalError("INSERT", {}, Exception("locked"))
        cache = TranslationCache(store=broken)

        cache.store("Hello", "en", "fr", "Bonjour")
        cache.clear_memory()

        assert cache.get("Hello", "en", "fr") is None

    def test_clear_memory_resets_memory_counters(self):
        cache = TranslationCache(CacheConfig.memory_only())
        cache.store("Hello", "en", "fr", "Bonjour")
        cache.get("Hello", "en", "fr")
        cache.clear_memory()
        stats = cache.stats()
        assert (stats.memory_hits, stats.memory_entries) == (0, 0)


class TestCacheStats:
    """Tests for CacheStats."""

    def test_hit_rate_counts_both_tiers(self):
        stats = CacheStats(memory_hits=2, memory_misses=2, store_hits=1, store_misses=1)
        assert stats.hit_rate() == pytest.approx(75.0)
        assert "75.0% overall hit rate" in stats.summary()

    def test_empty_hit_rate(self):
        assert CacheStats().hit_rate() == 0.0
