"""Tests for cache_backend.py: InMemoryCache and RedisCache."""

from __future__ import annotations

import time
from unittest.mock import MagicMock


class TestInMemoryCache:
    def test_set_and_get(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        cache.set("students", [{"Admission Number": "A1"}], ttl=60)
        assert cache.get("students") == [{"Admission Number": "A1"}]

    def test_get_missing_key(self):
        from cache_backend import InMemoryCache
        assert InMemoryCache().get("nonexistent") is None

    def test_expired_entry_is_gone(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        cache.set("expiring", "data", ttl=0)
        time.sleep(0.01)
        assert cache.get("expiring") is None

    def test_delete_and_clear(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        assert cache.get("a") is None
        cache.clear()
        assert cache.get("b") is None

    def test_cleanup(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        cache.set("fresh", "data", ttl=60)
        cache.set("expired", "old", ttl=0)
        time.sleep(0.01)
        assert cache.cleanup() == 1
        assert cache.get("fresh") == "data"

    def test_evicts_when_full(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        cache.MAX_ENTRIES = 2
        cache.set("short", 1, ttl=10)
        cache.set("long", 2, ttl=100)
        cache.set("new", 3, ttl=50)
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_returns_copies(self):
        from cache_backend import InMemoryCache
        cache = InMemoryCache()
        cache.set("rows", [{"a": 1}])
        cache.get("rows")[0]["a"] = 99
        assert cache.get("rows") == [{"a": 1}]


class TestRedisCache:
    def test_set_and_get(self, fake_redis):
        from cache_backend import RedisCache
        cache = RedisCache(fake_redis)
        cache.set("key1", {"data": "value"}, ttl=60)
        assert cache.get("key1") == {"data": "value"}
        assert "portal:key1" in fake_redis.store

    def test_clear_only_touches_prefix(self, fake_redis):
        from cache_backend import RedisCache
        fake_redis.store["other:key"] = b"1"
        cache = RedisCache(fake_redis)
        cache.set("a", 1)
        cache.clear()
        assert cache.get("a") is None
        assert "other:key" in fake_redis.store

    def test_errors_become_misses(self):
        from cache_backend import RedisCache
        client = MagicMock()
        client.get.side_effect = ConnectionError("down")
        assert RedisCache(client).get("k") is None


class TestInitCache:
    def test_in_memory_without_redis(self, app):
        import cache_backend
        assert isinstance(cache_backend.get_cache(), cache_backend.InMemoryCache)

    def test_unreachable_redis_falls_back(self, app):
        import cache_backend
        app.config["REDIS_URL"] = "redis://127.0.0.1:1/0"
        cache_backend.init_cache(app)
        assert isinstance(cache_backend.get_cache(), cache_backend.InMemoryCache)

    def test_get_cache_initializes_lazily(self):
        import cache_backend
        assert cache_backend._cache is None
        assert isinstance(cache_backend.get_cache(), cache_backend.InMemoryCache)
