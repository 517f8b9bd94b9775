"""In-process cache with per-key expiry."""

import asyncio
import copy
import time
from typing import Any, Callable, Dict, Optional, Tuple

import structlog

from .base import Cache

logger = structlog.get_logger()


class InMemoryCache(Cache):
    """Process-local TTL cache.

    Expired entries are dropped lazily on access and by a periodic sweep
    task started with :meth:`start`.
    """

    def __init__(
        self,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self.sweep_interval = sweep_interval
        self._sweep_task: Optional[asyncio.Task] = None

    def _live(self, key: str, now: float) -> Optional[Tuple[Any, float]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= now:
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._live(key, self._clock())
            return copy.deepcopy(entry[0]) if entry else None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        async with self._lock:
            self._entries[key] = (copy.deepcopy(value), self._clock() + ttl)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def incr(self, key: str, ttl: int) -> int:
        async with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            if entry is None:
                self._entries[key] = (1, now + ttl)
                return 1
            count = entry[0] + 1
            self._entries[key] = (count, entry[1])
            return count

    async def start(self) -> None:
        """Start the expiry sweep task."""
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._periodic_sweep())

    async def close(self) -> None:
        """Stop the expiry sweep task."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    async def _periodic_sweep(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.sweep_interval)
                async with self._lock:
                    now = self._clock()
                    expired = [key for key, (_, expires) in self._entries.items() if expires <= now]
                    for key in expired:
                        del self._entries[key]
                if expired:
                    logger.debug("cache_sweep", expired=len(expired))
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("cache_sweep_error", error=str(e))
