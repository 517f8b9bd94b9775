"""Redis-backed cache shared across service instances."""

import json
from typing import Any, Optional

import structlog
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from .base import Cache, CacheError

logger = structlog.get_logger()


class RedisCache(Cache):
    """Cache stored in Redis, values serialized as JSON."""

    def __init__(self, url: str, client: Optional[aioredis.Redis] = None) -> None:
        self.url = url
        self._client = client or aioredis.Redis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._client.get(key)
        except RedisError as e:
            logger.error("redis_get_error", key=key, error=str(e))
            raise CacheError(str(e)) from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    async def set(self, key: str, value: Any, ttl: int) -> None:
        payload = value if isinstance(value, str) else json.dumps(value)
        try:
            await self._client.set(key, payload, ex=ttl)
        except RedisError as e:
            logger.error("redis_set_error", key=key, error=str(e))
            raise CacheError(str(e)) from e

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as e:
            logger.error("redis_delete_error", key=key, error=str(e))
            raise CacheError(str(e)) from e

    async def incr(self, key: str, ttl: int) -> int:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl, nx=True)
                count, _ = await pipe.execute()
            return int(count)
        except RedisError as e:
            logger.error("redis_incr_error", key=key, error=str(e))
            raise CacheError(str(e)) from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("redis_cache_closed", url=self.url)
