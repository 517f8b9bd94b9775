"""Follow-based chat suggestions."""

from datetime import timedelta
from typing import List
from uuid import UUID

from ..domain.models import UserSummary, utcnow
from ..domain.views import ActiveUser
from ..repositories.base import Repository
from ..repositories.directory import UserDirectory


class SocialService:
    def __init__(
        self,
        repository: Repository,
        directory: UserDirectory,
        active_window_minutes: int = 5,
    ) -> None:
        self.repository = repository
        self.directory = directory
        self.active_window = timedelta(minutes=active_window_minutes)

    async def active_following(self, user_id: UUID) -> List[ActiveUser]:
        """Followed, non-banned users seen within the active window, most recent first."""
        cutoff = utcnow() - self.active_window
        following = await self.directory.list_following(user_id)
        active = [
            u for u in following
            if not u.is_banned and u.last_active is not None and u.last_active >= cutoff
        ]
        active.sort(key=lambda u: u.last_active, reverse=True)
        return [
            ActiveUser(
                user_id=u.user_id,
                username=u.username,
                profile_picture=u.profile_picture,
                last_active=u.last_active,
            )
            for u in active
        ]

    async def suggested_chat_users(self, user_id: UUID) -> List[UserSummary]:
        """Followed, non-banned users without a direct conversation yet."""
        suggestions = []
        for user in await self.directory.list_following(user_id):
            if user.is_banned:
                continue
            if await self.repository.find_direct_conversation(user_id, user.user_id):
                continue
            suggestions.append(user.summary())
        suggestions.sort(key=lambda s: s.username)
        return suggestions
