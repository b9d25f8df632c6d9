"""Unified caching interface with Redis / in-memory swap.

Provides a simple get/set/delete/clear API. When REDIS_URL is configured
and reachable, uses Redis; otherwise uses an in-process TTLCache. The app
uses it for the subject and reward catalogs.

Usage:
    from cache_backend import init_cache
    cache = init_cache(app)  # stored in app.extensions["cache"]
    cache.set("key", value, ttl=300)
    value = cache.get("key")
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

# ── Protocol ───────────────────────────────────────────────

class CacheBackend(Protocol):
    def get(self, key: str) -> Any | None: ...
    def set(self, key: str, value: Any, ttl: int = 300) -> None: ...
    def delete(self, key: str) -> None: ...
    def clear(self) -> None: ...
    def cleanup(self) -> int: ...


# ── In-Memory Implementation ──────────────────────────────

class TTLCache:
    """In-memory dict with expiry timestamps and eviction at MAX_ENTRIES."""

    MAX_ENTRIES = 1000

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._store: dict[str, tuple[str, float]] = {}  # key -> (value, expires_at)
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() > expires_at:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int = 300) -> None:
        with self._lock:
            if key not in self._store and len(self._store) >= self.MAX_ENTRIES:
                self._evict_oldest()
            self._store[key] = (value, self._clock() + ttl_seconds)

    def pop(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def _evict_oldest(self) -> None:
        """Remove the entry with the earliest expiry."""
        if not self._store:
            return
        oldest_key = min(self._store, key=lambda k: self._store[k][1])
        del self._store[oldest_key]

    def cleanup(self) -> int:
        """Remove all expired entries. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, exp) in self._store.items() if now > exp]
            for k in expired:
                del self._store[k]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class InMemoryCache:
    """JSON-encodes values into a TTLCache so both backends behave alike."""

    def __init__(self, store: TTLCache | None = None) -> None:
        self._store = store or TTLCache()

    def get(self, key: str) -> Any | None:
        raw = self._store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return raw

    def set(self, key: str, value: Any, ttl: int = 300) -> None:
        raw = json.dumps(value) if not isinstance(value, str) else value
        self._store.set(key, raw, ttl)

    def delete(self, key: str) -> None:
        self._store.pop(key)

    def clear(self) -> None:
        self._store.clear()

    def cleanup(self) -> int:
        return self._store.cleanup()


# ── Redis Implementation ──────────────────────────────────

class RedisCache:
    """Wraps redis.Redis; a Redis outage degrades to cache misses."""

    def __init__(self, redis_client, prefix: str = "learnquest:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def get(self, key: str) -> Any | None:
        try:
            raw = self._redis.get(self._prefix + key)
            if raw is None:
                return None
            try:
                return json.loads(raw)
            except (json.JSONDecodeError, TypeError):
                return raw.decode() if isinstance(raw, bytes) else raw
        except Exception as e:
            logger.warning("Redis GET error (key=%s): %s", key, e)
            return None

    def set(self, key: str, value: Any, ttl: int = 300) -> None:
        try:
            raw = json.dumps(value) if not isinstance(value, str) else value
            self._redis.setex(self._prefix + key, ttl, raw)
        except Exception as e:
            logger.warning("Redis SET error (key=%s): %s", key, e)

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(self._prefix + key)
        except Exception as e:
            logger.warning("Redis DELETE error (key=%s): %s", key, e)

    def clear(self) -> None:
        try:
            keys = list(self._redis.scan_iter(match=self._prefix + "*"))
            if keys:
                self._redis.delete(*keys)
        except Exception as e:
            logger.warning("Redis CLEAR error: %s", e)

    def cleanup(self) -> int:
        # Redis handles expiry natively
        return 0


def init_cache(app) -> CacheBackend:
    """Pick the cache backend for ``app`` and register it as ``app.extensions["cache"]``."""
    cache: CacheBackend | None = None
    redis_url = app.config.get("REDIS_URL", "")
    if redis_url:
        import redis

        try:
            client = redis.Redis.from_url(redis_url, decode_responses=False)
            client.ping()
            cache = RedisCache(client)
            app.logger.info("Cache backend: Redis (%s)", redis_url)
        except redis.RedisError as e:
            app.logger.warning("Redis connection failed (%s) — falling back to in-memory cache.", e)

    if cache is None:
        cache = InMemoryCache()
        app.logger.info("Cache backend: in-memory (TTLCache)")
    app.extensions["cache"] = cache
    return cache


def cached(cache: CacheBackend, key: str, ttl: int, produce: Callable[[], Any]) -> Any:
    """Return the cached value for ``key``, computing and storing it on a miss."""
    value = cache.get(key)
    if value is None:
        value = produce()
        cache.set(key, value, ttl)
    return value
