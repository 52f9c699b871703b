"""
Redis Cache Module

Read-through caching layer with:
- Connection pooling
- JSON serialization
- TTL management
- Deterministic, namespaced keys
- Failures degrade to cache misses
"""

import json
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Optional, Union

import structlog
from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError

from authorstack.config.settings import RedisSettings
from authorstack.metrics import CACHE_ERRORS

logger = structlog.get_logger(__name__)


class CacheKeys:
    """
    Key derivation, namespaced per entity and scope.

    Identical queries always map to the same key; distinct queries never collide.
    """

    def __init__(self, prefix: str = "authorstack"):
        self.prefix = prefix

    def book(self, book_id: str) -> str:
        return f"{self.prefix}:book:{book_id}"

    def sales_range(self, user_id: str, start: date, end: date) -> str:
        return f"{self.prefix}:sales:{user_id}:{start.isoformat()}:{end.isoformat()}"

    def sales_ranges_pattern(self, user_id: str) -> str:
        return f"{self.prefix}:sales:{user_id}:*"

    def dashboard(self, user_id: str, days: int) -> str:
        return f"{self.prefix}:dashboard:{user_id}:{days}"

    def dashboard_pattern(self, user_id: str) -> str:
        return f"{self.prefix}:dashboard:{user_id}:*"

    def insights(self, user_id: str, book_id: Optional[str] = None) -> str:
        return f"{self.prefix}:insights:{user_id}:{book_id or 'all'}"

    @staticmethod
    def parse_sales_range(key: str) -> Optional[tuple]:
        """Return (start, end) encoded in a sales range key, or None"""
        try:
            _, start, end = key.rsplit(":", 2)
            return date.fromisoformat(start), date.fromisoformat(end)
        except ValueError:
            return None


class RedisCache:
    """
    Cache client with JSON values and optional TTL.

    Example:
        cache = RedisCache.from_settings(settings.redis)
        await cache.connect()
        await cache.set(cache.keys.book("123"), book, ttl=300)
        book = await cache.get(cache.keys.book("123"))
    """

    def __init__(self, client: Redis, prefix: str = "authorstack"):
        self.client = client
        self.keys = CacheKeys(prefix)

    @classmethod
    def from_settings(cls, settings: RedisSettings) -> "RedisCache":
        pool = ConnectionPool.from_url(
            settings.url,
            max_connections=settings.max_connections,
            socket_timeout=settings.socket_timeout,
            decode_responses=True,
        )
        return cls(Redis(connection_pool=pool), prefix=settings.key_prefix)

    async def connect(self) -> None:
        """Verify connectivity. Raises if Redis is unreachable."""
        try:
            await self.client.ping()
        except RedisError as e:
            logger.error("Redis connection failed", error=str(e))
            raise
        logger.info("Redis connection established")

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Redis connection closed")

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Returns:
            Cached value, or None if absent or Redis is unavailable
        """
        try:
            value = await self.client.get(key)
        except RedisError as e:
            CACHE_ERRORS.labels(operation="get").inc()
            logger.warning("Cache get failed, treating as miss", key=key, error=str(e))
            return None

        if value is None:
            return None

        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[Union[int, timedelta]] = None,
    ) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache (JSON serialized)
            ttl: Time-to-live in seconds or timedelta; None keeps the value until deleted

        Returns:
            True if stored

        Raises:
            ValueError: ttl is zero or negative
        """
        if isinstance(ttl, timedelta):
            ttl = int(ttl.total_seconds())
        if ttl is not None and ttl <= 0:
            raise ValueError(f"Cache TTL must be positive, got {ttl}")

        try:
            serialized = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to serialize value for cache", key=key, error=str(e))
            return False

        try:
            if ttl is not None:
                await self.client.setex(key, ttl, serialized)
            else:
                await self.client.set(key, serialized)
        except RedisError as e:
            CACHE_ERRORS.labels(operation="set").inc()
            logger.warning("Cache set failed", key=key, error=str(e))
            return False

        return True

    async def delete(self, *keys: str) -> int:
        """Delete keys; absent keys are ignored. Returns the number removed."""
        if not keys:
            return 0
        try:
            return await self.client.delete(*keys)
        except RedisError as e:
            CACHE_ERRORS.labels(operation="delete").inc()
            logger.warning("Cache delete failed", keys=list(keys), error=str(e))
            return 0

    async def scan(self, pattern: str) -> list:
        """Keys matching ``pattern``; empty when Redis is unavailable"""
        try:
            return [key async for key in self.client.scan_iter(match=pattern)]
        except RedisError as e:
            CACHE_ERRORS.labels(operation="scan").inc()
            logger.warning("Cache scan failed", pattern=pattern, error=str(e))
            return []

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern"""
        keys = await self.scan(pattern)
        return await self.delete(*keys)

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """
        Get from cache or compute and cache.

        Args:
            key: Cache key
            factory: Async function computing the value on a miss
            ttl: Time-to-live

        Returns:
            Cached or computed value
        """
        value = await self.get(key)

        if value is not None:
            logger.debug("Cache hit", key=key)
            return value

        value = await factory()
        await self.set(key, value, ttl)

        return value
