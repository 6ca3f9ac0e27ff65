"""Tests for the per-user document cache."""

from activity_tracker.cache import CacheEntry, DocumentCache


class FakeMonotonic:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestCacheEntry:
    def test_fresh_within_ttl(self):
        assert CacheEntry("v", fetched_at=10.0).is_stale(now=39.9, ttl=30) is False

    def test_stale_at_ttl(self):
        assert CacheEntry("v", fetched_at=10.0).is_stale(now=40.0, ttl=30) is True


class TestDocumentCache:
    def test_get_fresh(self):
        clock = FakeMonotonic()
        cache = DocumentCache(ttl_seconds=5, clock=clock)
        cache.set("ana", [1])
        assert cache.get("ana") == [1]

    def test_stale_get_misses_but_last_good_remains(self):
        clock = FakeMonotonic()
        cache = DocumentCache(ttl_seconds=5, clock=clock)
        cache.set("ana", [1])
        clock.now += 6
        assert cache.get("ana") is None
        assert cache.last_good("ana") == [1]

    def test_invalidate_one_key(self):
        cache = DocumentCache(ttl_seconds=5)
        cache.set("ana", 1)
        cache.set("luis", 2)
        cache.invalidate("ana")
        assert cache.last_good("ana") is None
        assert cache.get("luis") == 2

    def test_invalidate_all(self):
        cache = DocumentCache(ttl_seconds=5)
        cache.set("ana", 1)
        cache.invalidate()
        assert cache.last_good("ana") is None
