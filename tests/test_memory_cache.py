"""Tests for the in-memory cache."""

import threading

import pytest

from conftest import FakeClock
from plugin_filters.models.model_cache import CacheKind
from plugin_filters.storage.cache.memory_cache import MemoryCache


@pytest.fixture
def cache(fake_clock: FakeClock) -> MemoryCache:
    return MemoryCache(clock=fake_clock)


class TestMemoryCache:
    """Tests for MemoryCache class."""

    def test_set_and_get(self, cache: MemoryCache) -> None:
        value = {"plugins": ["a", "b"], "total": 2}
        cache.set("q1", CacheKind.SEARCH_RESULTS, value)
        assert cache.get("q1", CacheKind.SEARCH_RESULTS) == value

    def test_get_nonexistent(self, cache: MemoryCache) -> None:
        assert cache.get("missing", CacheKind.PLUGIN_METADATA) is None

    def test_kinds_are_separate(self, cache: MemoryCache) -> None:
        cache.set("key", CacheKind.PLUGIN_METADATA, "meta")
        cache.set("key", CacheKind.CALCULATED_SCORES, "scores")
        assert cache.get("key", CacheKind.PLUGIN_METADATA) == "meta"
        assert cache.get("key", CacheKind.CALCULATED_SCORES) == "scores"

    def test_overwrite_replaces_wholesale(self, cache: MemoryCache) -> None:
        cache.set("key", CacheKind.PLUGIN_METADATA, {"a": 1, "b": 2})
        cache.set("key", CacheKind.PLUGIN_METADATA, {"a": 3})
        assert cache.get("key", CacheKind.PLUGIN_METADATA) == {"a": 3}

    def test_search_results_expire_after_default_ttl(
        self, cache: MemoryCache, fake_clock: FakeClock
    ) -> None:
        cache.set("q", CacheKind.SEARCH_RESULTS, [1, 2, 3])
        fake_clock.advance(3599)
        assert cache.get("q", CacheKind.SEARCH_RESULTS) == [1, 2, 3]
        fake_clock.advance(2)  # stored_at + 3601s
        assert cache.get("q", CacheKind.SEARCH_RESULTS) is None
        assert len(cache) == 0

    def test_expired_at_exact_ttl(self, cache: MemoryCache, fake_clock: FakeClock) -> None:
        cache.set("q", CacheKind.SEARCH_RESULTS, "v", ttl=60)
        fake_clock.advance(60)
        assert cache.get("q", CacheKind.SEARCH_RESULTS) is None

    def test_ttl_override(self, cache: MemoryCache, fake_clock: FakeClock) -> None:
        cache.set("meta", CacheKind.PLUGIN_METADATA, "v", ttl=100)
        fake_clock.advance(101)
        assert cache.get("meta", CacheKind.PLUGIN_METADATA) is None

    def test_configured_kind_ttl(self, fake_clock: FakeClock) -> None:
        cache = MemoryCache(ttls={CacheKind.PLUGIN_METADATA: 120}, clock=fake_clock)
        cache.set("meta", CacheKind.PLUGIN_METADATA, "v")
        fake_clock.advance(121)
        assert cache.get("meta", CacheKind.PLUGIN_METADATA) is None

    def test_falsy_values_are_cached(self, cache: MemoryCache) -> None:
        cache.set("empty", CacheKind.SEARCH_RESULTS, [])
        assert cache.get("empty", CacheKind.SEARCH_RESULTS) == []
        assert cache.exists("empty", CacheKind.SEARCH_RESULTS)

    def test_delete(self, cache: MemoryCache) -> None:
        cache.set("key", CacheKind.PLUGIN_METADATA, "v")
        assert cache.delete("key", CacheKind.PLUGIN_METADATA)
        assert not cache.delete("key", CacheKind.PLUGIN_METADATA)

    def test_invalidate_kind(self, cache: MemoryCache) -> None:
        cache.set("a", CacheKind.SEARCH_RESULTS, 1)
        cache.set("b", CacheKind.SEARCH_RESULTS, 2)
        cache.set("c", CacheKind.PLUGIN_METADATA, 3)

        assert cache.invalidate(kind=CacheKind.SEARCH_RESULTS) == 2
        assert cache.get("c", CacheKind.PLUGIN_METADATA) == 3

    def test_invalidate_prefix(self, cache: MemoryCache) -> None:
        cache.set("search:forms:1", CacheKind.PLUGIN_METADATA, 1)
        cache.set("search:forms:2", CacheKind.PLUGIN_METADATA, 2)
        cache.set("details:akismet", CacheKind.PLUGIN_METADATA, 3)

        assert cache.invalidate(prefix="search:") == 2
        assert cache.get("details:akismet", CacheKind.PLUGIN_METADATA) == 3

    def test_invalidate_all(self, cache: MemoryCache) -> None:
        for kind in CacheKind:
            cache.set("k", kind, 1)
        assert cache.invalidate() == 3
        assert len(cache) == 0

    def test_stats(self, cache: MemoryCache, fake_clock: FakeClock) -> None:
        cache.set("old", CacheKind.SEARCH_RESULTS, 1, ttl=60)
        cache.set("new", CacheKind.SEARCH_RESULTS, 2)
        fake_clock.advance(61)

        stats = cache.stats()
        assert stats["search-results"] == {"total": 2, "expired": 1, "valid": 1}
        assert stats["plugin-metadata"]["total"] == 0

    def test_concurrent_writers(self, cache: MemoryCache) -> None:
        def writer(n: int) -> None:
            for i in range(200):
                cache.set(f"key-{n}-{i}", CacheKind.PLUGIN_METADATA, i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 800
