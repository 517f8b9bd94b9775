"""Rate limiter implementation using fixed-window counters in the shared cache."""

import time
from typing import Callable, Optional

from fastapi import Request
from structlog import get_logger

from ..cache.base import Cache, CacheError
from ..domain.errors import RateLimitExceeded

logger = get_logger()


class RateLimiter:
    """Bounds requests per key per time window.

    Counters live in the cache, so every process sharing the cache enforces
    the same limit.
    """

    def __init__(
        self,
        cache: Cache,
        rate_limit: int = 50,
        time_window: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize rate limiter with configurable parameters."""
        self.cache = cache
        self.rate_limit = rate_limit
        self.time_window = time_window  # in seconds
        self._clock = clock
        logger.info(
            "rate_limiter_initialized",
            rate_limit=rate_limit,
            time_window=time_window
        )

    def _window_key(self, key: str) -> str:
        window = int(self._clock() // self.time_window)
        return f"ratelimit:{key}:{window}"

    async def check_rate_limit(self, key: str) -> None:
        """Check if the request should be rate limited."""
        try:
            count = await self.cache.incr(self._window_key(key), self.time_window)
        except CacheError as e:
            # Fail open on cache outages
            logger.error("rate_limiter_cache_error", key=key, error=str(e))
            return

        if count > self.rate_limit:
            logger.warning(
                "rate_limit_exceeded",
                key=key,
                current_requests=count,
                rate_limit=self.rate_limit
            )
            raise RateLimitExceeded(
                f"Rate limit of {self.rate_limit} requests per {self.time_window} seconds exceeded"
            )

        logger.debug(
            "request_tracked",
            key=key,
            current_requests=count,
            rate_limit=self.rate_limit
        )

    async def get_remaining_requests(self, key: str) -> int:
        """Get remaining requests for the key."""
        try:
            count = await self.cache.get(self._window_key(key))
        except CacheError:
            return self.rate_limit
        return max(0, self.rate_limit - int(count or 0))


async def rate_limit_middleware(
    request: Request,
    rate_limiter: Optional[RateLimiter] = None
) -> None:
    """Rate limiting middleware."""
    if rate_limiter is None:
        return

    client_ip = request.client.host if request.client else "unknown"
    path = request.url.path
    key = f"{client_ip}:{path}"

    await rate_limiter.check_rate_limit(key)
