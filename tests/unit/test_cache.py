"""
Unit Tests - Cache Layer
"""
from datetime import date, timedelta

import fakeredis
import pytest
from prometheus_client import REGISTRY

from authorstack.serving.cache import CacheKeys, RedisCache


def cache_errors(operation: str) -> float:
    return REGISTRY.get_sample_value("authorstack_cache_errors_total", {"operation": operation}) or 0.0


class TestCacheKeys:
    """Tests for key derivation"""

    def test_keys_are_namespaced(self):
        """Test every key starts with the prefix and entity"""
        keys = CacheKeys("authorstack")

        assert keys.book("b1") == "authorstack:book:b1"
        assert keys.dashboard("u1", 30) == "authorstack:dashboard:u1:30"
        assert keys.insights("u1") == "authorstack:insights:u1:all"
        assert keys.insights("u1", "b1") == "authorstack:insights:u1:b1"

    def test_sales_range_key_is_deterministic(self):
        """Test identical queries share a key and distinct queries do not"""
        keys = CacheKeys()
        first = keys.sales_range("u1", date(2024, 1, 1), date(2024, 1, 31))

        assert first == keys.sales_range("u1", date(2024, 1, 1), date(2024, 1, 31))
        assert first != keys.sales_range("u2", date(2024, 1, 1), date(2024, 1, 31))
        assert first != keys.sales_range("u1", date(2024, 1, 2), date(2024, 1, 31))

    def test_parse_sales_range(self):
        """Test range bounds are recovered from a key"""
        keys = CacheKeys()
        key = keys.sales_range("u1", date(2024, 1, 1), date(2024, 1, 31))

        assert CacheKeys.parse_sales_range(key) == (date(2024, 1, 1), date(2024, 1, 31))
        assert CacheKeys.parse_sales_range("authorstack:sales:u1:garbage") is None


class TestRedisCache:
    """Tests for RedisCache"""

    async def test_get_missing_returns_none(self, cache):
        """Test an absent key is a miss"""
        assert await cache.get("authorstack:book:none") is None

    async def test_set_then_get(self, cache):
        """Test values round-trip as JSON"""
        value = {"title": "Dune", "genres": ["sf"], "price": 9.99}

        assert await cache.set("authorstack:book:b1", value, ttl=300) is True
        assert await cache.get("authorstack:book:b1") == value

    async def test_set_with_ttl_expires(self, cache, redis_client):
        """Test a TTL is applied when given"""
        await cache.set("authorstack:book:b1", {"a": 1}, ttl=300)

        ttl = await redis_client.ttl("authorstack:book:b1")
        assert 0 < ttl <= 300

    async def test_set_without_ttl_persists(self, cache, redis_client):
        """Test no TTL keeps the value until deleted"""
        await cache.set("authorstack:book:b1", {"a": 1})

        assert await redis_client.ttl("authorstack:book:b1") == -1

    @pytest.mark.parametrize("ttl", [0, -5, timedelta(0)])
    async def test_non_positive_ttl_rejected(self, cache, redis_client, ttl):
        """Test a zero or negative TTL raises instead of storing without expiry"""
        with pytest.raises(ValueError):
            await cache.set("authorstack:book:b1", {"a": 1}, ttl=ttl)

        assert await redis_client.exists("authorstack:book:b1") == 0

    async def test_timedelta_ttl(self, cache, redis_client):
        """Test a timedelta TTL is applied in seconds"""
        await cache.set("authorstack:book:b1", {"a": 1}, ttl=timedelta(minutes=2))

        assert 0 < await redis_client.ttl("authorstack:book:b1") <= 120

    async def test_delete_then_get_misses(self, cache):
        """Test delete removes the key"""
        await cache.set("authorstack:book:b1", {"a": 1})

        assert await cache.delete("authorstack:book:b1") == 1
        assert await cache.get("authorstack:book:b1") is None

    async def test_delete_absent_key_is_not_an_error(self, cache):
        """Test deleting a missing key returns zero"""
        assert await cache.delete("authorstack:book:missing") == 0
        assert await cache.delete() == 0

    async def test_delete_pattern(self, cache):
        """Test pattern deletion only touches matching keys"""
        await cache.set("authorstack:dashboard:u1:7", {"a": 1})
        await cache.set("authorstack:dashboard:u1:30", {"a": 2})
        await cache.set("authorstack:dashboard:u2:30", {"a": 3})

        removed = await cache.delete_pattern(cache.keys.dashboard_pattern("u1"))

        assert removed == 2
        assert await cache.get("authorstack:dashboard:u2:30") == {"a": 3}

    async def test_get_or_set_computes_once(self, cache):
        """Test the factory runs only on a miss"""
        calls = []

        async def factory():
            calls.append(1)
            return {"computed": True}

        first = await cache.get_or_set("authorstack:dashboard:u1:7", factory, ttl=60)
        second = await cache.get_or_set("authorstack:dashboard:u1:7", factory, ttl=60)

        assert first == second == {"computed": True}
        assert len(calls) == 1


class TestCacheFailures:
    """Redis outages degrade to cache misses"""

    @pytest.fixture
    def broken_cache(self):
        server = fakeredis.FakeServer()
        server.connected = False
        return RedisCache(fakeredis.FakeAsyncRedis(server=server, decode_responses=True))

    async def test_get_failure_is_a_miss(self, broken_cache):
        """Test get returns None and counts the error"""
        before = cache_errors("get")

        assert await broken_cache.get("authorstack:book:b1") is None
        assert cache_errors("get") == before + 1

    async def test_set_failure_returns_false(self, broken_cache):
        """Test set reports failure without raising"""
        assert await broken_cache.set("authorstack:book:b1", {"a": 1}, ttl=10) is False

    async def test_delete_and_scan_failures(self, broken_cache):
        """Test delete and scan degrade to no-ops"""
        assert await broken_cache.delete("authorstack:book:b1") == 0
        assert await broken_cache.scan("authorstack:*") == []

    async def test_get_or_set_still_computes(self, broken_cache):
        """Test the factory result is returned when Redis is down"""
        async def factory():
            return [1, 2, 3]

        assert await broken_cache.get_or_set("authorstack:dashboard:u1:7", factory) == [1, 2, 3]

    async def test_connect_raises(self, broken_cache):
        """Test startup connectivity check fails fast"""
        with pytest.raises(Exception):
            await broken_cache.connect()
