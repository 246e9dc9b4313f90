"""
Unit Tests for ResultCache

Run with:
    pytest tests/unit/test_cache.py -v
"""

import pytest

from core.cache import CacheEntry, ResultCache


@pytest.fixture
def cache(clock):
    return ResultCache(clock=clock)


class TestResultCache:

    def test_get_returns_stored_value_within_ttl(self, cache, clock):
        cache.put("coins:1:100", ["btc"], ttl=60)
        clock.advance(59)
        assert cache.get("coins:1:100") == ["btc"]

    def test_entry_expires_at_ttl(self, cache, clock):
        cache.put("coins:1:100", ["btc"], ttl=60)
        clock.advance(60)
        assert cache.get("coins:1:100") is None

    def test_expired_entry_is_evicted_on_lookup(self, cache, clock):
        cache.put("detail:bitcoin", "btc", ttl=120)
        clock.advance(121)

        # Membership does not evict
        assert "detail:bitcoin" in cache
        cache.get("detail:bitcoin")
        assert "detail:bitcoin" not in cache
        assert len(cache) == 0

    def test_missing_key(self, cache):
        assert cache.get("search:btc") is None

    def test_put_replaces_and_restarts_ttl(self, cache, clock):
        cache.put("k", 1, ttl=10)
        clock.advance(8)
        cache.put("k", 2, ttl=10)
        clock.advance(8)
        assert cache.get("k") == 2

    def test_invalidate_and_clear(self, cache):
        cache.put("a", 1, ttl=10)
        cache.put("b", 2, ttl=10)
        cache.invalidate("a")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0

    def test_empty_list_is_a_hit(self, cache):
        cache.put("search:zzz", [], ttl=600)
        assert cache.get("search:zzz") == []


def test_cache_entry_is_expired():
    entry = CacheEntry(value="v", stored_at=100.0, ttl=5)
    assert not entry.is_expired(104.9)
    assert entry.is_expired(105.0)
