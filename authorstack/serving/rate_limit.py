"""
Redis Rate Limiter

Fixed-window limiter shared by every process that talks to the same Redis.
The window counter is created and incremented inside one MULTI/EXEC block, so
two concurrent callers can never both take the last slot.
"""

import time
from dataclasses import dataclass
from typing import Callable

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from authorstack.errors import RateLimitedError, UpstreamUnavailableError
from authorstack.metrics import RATE_LIMIT_REJECTIONS

logger = structlog.get_logger(__name__)


@dataclass
class RateLimitResult:
    """Outcome of one admission attempt"""
    allowed: bool
    limit: int
    remaining: int
    reset_after: int


class RateLimiter:
    """
    Admit at most ``max_requests`` per ``window_seconds`` for each identifier.

    Limiters built with the same ``prefix`` share one budget per identifier.

    Example:
        limiter = RateLimiter(redis, max_requests=5, window_seconds=60, prefix="authorstack:ai-ratelimit")
        await limiter.check(user_id)  # raises RateLimitedError when exhausted
    """

    def __init__(
        self,
        client: Redis,
        max_requests: int,
        window_seconds: int,
        prefix: str,
        clock: Callable[[], float] = time.time,
    ):
        if max_requests < 1 or window_seconds < 1:
            raise ValueError("max_requests and window_seconds must be positive")
        self.client = client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prefix = prefix
        self._clock = clock

    def _window(self) -> tuple:
        now = self._clock()
        index = int(now // self.window_seconds)
        reset_after = max(1, int((index + 1) * self.window_seconds - now))
        return index, reset_after

    async def hit(self, identifier: str) -> RateLimitResult:
        """Count one request for ``identifier`` and report whether it is admitted"""
        index, reset_after = self._window()
        key = f"{self.prefix}:{identifier}:{index}"

        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=self.window_seconds, nx=True)
                pipe.incr(key)
                _, count = await pipe.execute()
        except RedisError as e:
            logger.error("Rate limiter unavailable", prefix=self.prefix, error=str(e))
            raise UpstreamUnavailableError(
                "Rate limiter unavailable", code="RATE_LIMITER_UNAVAILABLE"
            ) from e

        count = int(count)
        return RateLimitResult(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_after=reset_after,
        )

    async def check(self, identifier: str, code: str = "RATE_LIMITED") -> RateLimitResult:
        """
        Admit or reject.

        Raises:
            RateLimitedError: when the window budget is exhausted
        """
        result = await self.hit(identifier)
        if not result.allowed:
            RATE_LIMIT_REJECTIONS.labels(scope=self.prefix).inc()
            logger.warning(
                "Rate limit exceeded",
                prefix=self.prefix,
                identifier=identifier,
                limit=self.max_requests,
            )
            raise RateLimitedError(
                f"Rate limit exceeded. Try again in {result.reset_after} seconds.",
                retry_after=result.reset_after,
                code=code,
            )
        return result
