"""Typing indicators stored as short-lived cache flags."""

from typing import Iterable, List
from uuid import UUID

import structlog

from ..cache.base import Cache, CacheError
from ..domain.errors import DependencyUnavailable

logger = structlog.get_logger()


def typing_key(conversation_id: UUID, user_id: UUID) -> str:
    return f"typing:{conversation_id}:{user_id}"


class TypingPresence:
    """Best-effort typing flags; nothing is persisted beyond the TTL."""

    def __init__(self, cache: Cache, ttl: int = 10) -> None:
        self.cache = cache
        self.ttl = ttl

    async def set_typing(self, conversation_id: UUID, user_id: UUID, is_typing: bool) -> None:
        key = typing_key(conversation_id, user_id)
        try:
            if is_typing:
                await self.cache.set(key, "true", self.ttl)
            else:
                await self.cache.delete(key)
        except CacheError as e:
            logger.error("typing_update_failed", conversation_id=str(conversation_id), error=str(e))
            raise DependencyUnavailable("Cache unavailable, please retry") from e

    async def typing_users(
        self, conversation_id: UUID, candidate_ids: Iterable[UUID]
    ) -> List[UUID]:
        typing = []
        try:
            for user_id in candidate_ids:
                if await self.cache.get(typing_key(conversation_id, user_id)) is not None:
                    typing.append(user_id)
        except CacheError as e:
            logger.error("typing_lookup_failed", conversation_id=str(conversation_id), error=str(e))
            raise DependencyUnavailable("Cache unavailable, please retry") from e
        return typing
