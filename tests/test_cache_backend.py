"""Tests for cache_backend.py — InMemoryCache and RedisCache."""

from __future__ import annotations

import pytest


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis():
    import fakeredis
    return fakeredis.FakeRedis()


class TestInMemoryCache:
    def test_set_and_get(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        cache.set("key1", {"data": "value"}, ttl=60)
        assert cache.get("key1") == {"data": "value"}

    def test_get_missing_key(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        assert cache.get("nonexistent") is None

    def test_ttl_expiry(self, clock):
        from cache_backend import InMemoryCache, TTLCache
        cache = InMemoryCache(TTLCache(clock=clock))
        cache.set("expiring", "data", ttl=1)
        assert cache.get("expiring") == "data"
        clock.now += 1.1
        assert cache.get("expiring") is None

    def test_delete(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        cache.set("to_delete", "value")
        cache.delete("to_delete")
        assert cache.get("to_delete") is None

    def test_clear(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert cache.get("a") is None
        assert cache.get("b") is None

    def test_cleanup(self, clock):
        from cache_backend import InMemoryCache, TTLCache
        cache = InMemoryCache(TTLCache(clock=clock))
        cache.set("fresh", "data", ttl=60)
        cache.set("expired", "old", ttl=0)
        clock.now += 0.1
        assert cache.cleanup() == 1
        assert cache.get("fresh") == "data"

    def test_list_values(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        cache.set("list_key", [{"id": 1}, {"id": 2}], ttl=60)
        assert cache.get("list_key") == [{"id": 1}, {"id": 2}]


class TestTTLCacheEviction:
    def test_evicts_earliest_expiry_when_full(self, clock, monkeypatch):
        from cache_backend import TTLCache
        monkeypatch.setattr(TTLCache, "MAX_ENTRIES", 2)
        store = TTLCache(clock=clock)
        store.set("short", "1", ttl_seconds=10)
        store.set("long", "2", ttl_seconds=100)
        store.set("new", "3", ttl_seconds=50)
        assert store.get("short") is None
        assert store.get("long") == "2"
        assert store.get("new") == "3"


class TestRedisCache:
    def test_set_and_get(self, fake_redis):
        from cache_backend import RedisCache
        cache = RedisCache(fake_redis)
        cache.set("key1", {"data": "value"}, ttl=60)
        assert cache.get("key1") == {"data": "value"}

    def test_get_missing_key(self, fake_redis):
        from cache_backend import RedisCache
        cache = RedisCache(fake_redis)
        assert cache.get("nonexistent") is None

    def test_delete(self, fake_redis):
        from cache_backend import RedisCache
        cache = RedisCache(fake_redis)
        cache.set("to_delete", "value", ttl=60)
        cache.delete("to_delete")
        assert cache.get("to_delete") is None

    def test_clear_only_touches_own_prefix(self, fake_redis):
        from cache_backend import RedisCache
        cache = RedisCache(fake_redis)
        fake_redis.set("other-app:key", "keep")
        cache.set("a", 1, ttl=60)
        cache.set("b", 2, ttl=60)
        cache.clear()
        assert cache.get("a") is None
        assert cache.get("b") is None
        assert fake_redis.get("other-app:key") == b"keep"

    def test_errors_degrade_to_miss(self):
        from unittest.mock import MagicMock

        import redis
        from cache_backend import RedisCache
        broken = MagicMock()
        broken.get.side_effect = redis.ConnectionError("down")
        assert RedisCache(broken).get("anything") is None

    def test_cleanup_returns_zero(self, fake_redis):
        from cache_backend import RedisCache
        cache = RedisCache(fake_redis)
        assert cache.cleanup() == 0


class TestInitCache:
    def test_init_without_redis(self, app):
        from cache_backend import InMemoryCache, init_cache
        cache = init_cache(app)
        assert isinstance(cache, InMemoryCache)
        assert app.extensions["cache"] is cache

    def test_cached_computes_once(self):
        from cache_backend import InMemoryCache, cached
        cache = InMemoryCache()
        calls = []

        def produce():
            calls.append(1)
            return [{"id": 1}]

        assert cached(cache, "k", 60, produce) == [{"id": 1}]
        assert cached(cache, "k", 60, produce) == [{"id": 1}]
        assert len(calls) == 1
