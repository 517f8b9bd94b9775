"""Participant directory: users, follows and activity."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID, uuid4

import structlog

from ..domain.models import UserSummary, utcnow

logger = structlog.get_logger()


@dataclass
class UserRecord:
    username: str
    user_id: UUID = field(default_factory=uuid4)
    profile_picture: Optional[str] = None
    is_banned: bool = False
    last_active: Optional[datetime] = None

    def summary(self) -> UserSummary:
        return UserSummary(
            user_id=self.user_id,
            username=self.username,
            profile_picture=self.profile_picture,
        )


class UserDirectory(ABC):
    """Read access to the user/follow store owned by the rest of the app."""

    @abstractmethod
    async def get_user(self, user_id: UUID) -> Optional[UserRecord]:
        """Retrieve a user by ID."""
        pass

    @abstractmethod
    async def get_users(self, user_ids: Iterable[UUID]) -> Dict[UUID, UserRecord]:
        """Retrieve the known users among ``user_ids``."""
        pass

    @abstractmethod
    async def list_following(self, user_id: UUID) -> List[UserRecord]:
        """Users that ``user_id`` follows with an accepted follow."""
        pass

    async def summaries(self, user_ids: Iterable[UUID]) -> Dict[UUID, UserSummary]:
        users = await self.get_users(user_ids)
        return {user_id: record.summary() for user_id, record in users.items()}


class InMemoryUserDirectory(UserDirectory):
    """Directory kept in process memory, used for development and tests."""

    def __init__(self) -> None:
        self._users: Dict[UUID, UserRecord] = {}
        self._following: Dict[UUID, Set[UUID]] = {}
        self._lock = asyncio.Lock()

    async def add_user(
        self,
        username: str,
        profile_picture: Optional[str] = None,
        is_banned: bool = False,
        last_active: Optional[datetime] = None,
    ) -> UserRecord:
        record = UserRecord(
            username=username,
            profile_picture=profile_picture,
            is_banned=is_banned,
            last_active=last_active,
        )
        async with self._lock:
            self._users[record.user_id] = record
        logger.info("user_added", user_id=str(record.user_id), username=username)
        return record

    async def follow(self, follower_id: UUID, followed_id: UUID) -> None:
        """Record an accepted follow."""
        async with self._lock:
            self._following.setdefault(follower_id, set()).add(followed_id)

    async def touch(self, user_id: UUID, when: Optional[datetime] = None) -> None:
        async with self._lock:
            record = self._users.get(user_id)
            if record is not None:
                record.last_active = when or utcnow()

    async def get_user(self, user_id: UUID) -> Optional[UserRecord]:
        async with self._lock:
            return self._users.get(user_id)

    async def get_users(self, user_ids: Iterable[UUID]) -> Dict[UUID, UserRecord]:
        async with self._lock:
            return {uid: self._users[uid] for uid in user_ids if uid in self._users}

    async def list_following(self, user_id: UUID) -> List[UserRecord]:
        async with self._lock:
            followed = self._following.get(user_id, set())
            return [self._users[uid] for uid in followed if uid in self._users]
