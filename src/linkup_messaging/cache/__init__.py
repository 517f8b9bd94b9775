"""Key-value cache backends."""

from ..config import Settings
from .base import Cache, CacheError
from .memory import InMemoryCache


def build_cache(settings: Settings) -> Cache:
    """Create the cache selected by ``settings.cache_backend``."""
    if settings.cache_backend == "redis":
        from .redis_cache import RedisCache

        return RedisCache(settings.redis_url)
    return InMemoryCache()


__all__ = ["Cache", "CacheError", "InMemoryCache", "build_cache"]
