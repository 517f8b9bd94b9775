"""Base key-value cache interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional


class CacheError(Exception):
    """Raised when the cache backend cannot serve a request."""


class Cache(ABC):
    """Abstract base class for key-value caches.

    Values are JSON-compatible structures. Implementations raise
    :class:`CacheError` when the backend is unreachable.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the value stored under ``key`` or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop ``key``; missing keys are ignored."""
        pass

    @abstractmethod
    async def incr(self, key: str, ttl: int) -> int:
        """Increment a counter, starting its ``ttl`` when it is created."""
        pass

    async def ping(self) -> bool:
        return True

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass
