"""Per-user conversation list cache and its invalidation."""

from typing import Iterable, Optional
from uuid import UUID, uuid4

import structlog

from ..cache.base import Cache, CacheError
from ..domain.errors import DependencyUnavailable
from ..domain.views import ConversationPage

logger = structlog.get_logger()


def conversation_list_key(user_id: UUID) -> str:
    return f"conversations:{user_id}"


def conversation_version_key(user_id: UUID) -> str:
    return f"conversations:{user_id}:version"


class ConversationListCache:
    """Caches conversation list pages under one key per user.

    All pages of a user live in a single entry so that one delete drops
    every stale page. Each entry is stamped with the user's version token,
    taken before the store was read; evicting drops the token, so a page
    computed before a write and stored after it is never served.

    Writers call :meth:`prepare` before touching the store (refusing the
    write while the cache is unreachable) and :meth:`invalidate` after it.
    """

    def __init__(self, cache: Cache, ttl: int = 300, retries: int = 2) -> None:
        self.cache = cache
        self.ttl = ttl
        self.retries = retries

    @staticmethod
    def _page_field(page: int, limit: int) -> str:
        return f"{page}:{limit}"

    async def version(self, user_id: UUID) -> Optional[str]:
        """Current version token of the user's list, created when missing.

        Returns None when the cache is unreachable; nothing is stored then.
        """
        key = conversation_version_key(user_id)
        try:
            token = await self.cache.get(key)
            if token is None:
                token = uuid4().hex
                await self.cache.set(key, token, self.ttl)
            return token
        except CacheError as e:
            logger.warning("conversation_cache_version_failed", user_id=str(user_id), error=str(e))
            return None

    async def get(self, user_id: UUID, page: int, limit: int) -> Optional[ConversationPage]:
        try:
            token = await self.cache.get(conversation_version_key(user_id))
            entry = await self.cache.get(conversation_list_key(user_id))
        except CacheError as e:
            logger.warning("conversation_cache_read_failed", user_id=str(user_id), error=str(e))
            return None
        if token is None or not isinstance(entry, dict) or entry.get("version") != token:
            return None
        payload = entry.get("pages", {}).get(self._page_field(page, limit))
        if payload is None:
            return None
        logger.debug("conversation_cache_hit", user_id=str(user_id), page=page, limit=limit)
        return ConversationPage.model_validate(payload)

    async def store(self, user_id: UUID, result: ConversationPage, version: Optional[str]) -> None:
        """Cache a page computed while ``version`` was current."""
        if version is None:
            return
        key = conversation_list_key(user_id)
        try:
            entry = await self.cache.get(key)
            if not isinstance(entry, dict) or entry.get("version") != version:
                entry = {"version": version, "pages": {}}
            entry["pages"][self._page_field(result.page, result.limit)] = result.model_dump(
                mode="json", by_alias=True
            )
            await self.cache.set(key, entry, self.ttl)
        except CacheError as e:
            logger.warning("conversation_cache_write_failed", user_id=str(user_id), error=str(e))

    async def _evict(self, user_ids: Iterable[UUID], attempts: int) -> bool:
        pending = list(dict.fromkeys(user_ids))
        for attempt in range(1, attempts + 1):
            failed = []
            for user_id in pending:
                try:
                    await self.cache.delete(conversation_version_key(user_id))
                    await self.cache.delete(conversation_list_key(user_id))
                except CacheError as e:
                    logger.warning(
                        "conversation_cache_evict_failed",
                        user_id=str(user_id),
                        attempt=attempt,
                        error=str(e),
                    )
                    failed.append(user_id)
            if not failed:
                return True
            pending = failed
        logger.error("conversation_cache_unavailable", users=[str(u) for u in pending])
        return False

    async def prepare(self, user_ids: Iterable[UUID]) -> None:
        """Evict once before a write; raises DependencyUnavailable on failure."""
        if not await self._evict(user_ids, attempts=1):
            raise DependencyUnavailable("Cache unavailable, please retry")

    async def invalidate(self, user_ids: Iterable[UUID]) -> None:
        """Evict after a committed write, retrying before giving up.

        The write stands either way; entries that survive expire with the TTL.
        """
        await self._evict(user_ids, attempts=1 + self.retries)
