"""Conversation store operations: listing, creation and membership."""

from typing import List
from uuid import UUID

import structlog

from ..config import Settings
from ..domain.errors import DuplicateConversation, PermissionDenied, ValidationFailed
from ..domain.models import DirectConversation, GroupConversation
from ..domain.views import (
    ConversationListItem,
    ConversationPage,
    ConversationSummary,
    LastMessagePreview,
)
from ..repositories.base import AnyConversation, Repository
from ..repositories.directory import UserDirectory
from .access import AccessGuard
from .invalidation import ConversationListCache

logger = structlog.get_logger()


class ConversationService:
    def __init__(
        self,
        repository: Repository,
        directory: UserDirectory,
        guard: AccessGuard,
        list_cache: ConversationListCache,
        settings: Settings,
    ) -> None:
        self.repository = repository
        self.directory = directory
        self.guard = guard
        self.list_cache = list_cache
        self.settings = settings

    async def describe(self, conversation: AnyConversation) -> ConversationSummary:
        """Summary with participants expanded to user summaries."""
        summaries = await self.directory.summaries(conversation.participant_ids)
        return ConversationSummary(
            conversation_id=conversation.id,
            kind=conversation.kind,
            title=getattr(conversation, "title", None),
            admin_id=getattr(conversation, "admin_id", None),
            participants=[summaries[uid] for uid in conversation.participant_ids if uid in summaries],
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )

    async def list_for_user(self, user_id: UUID, page: int = 1, limit: int = 10) -> ConversationPage:
        """Paginated conversation list with last message and unread counts."""
        cached = await self.list_cache.get(user_id, page, limit)
        if cached is not None:
            return cached

        version = await self.list_cache.version(user_id)
        conversations = await self.repository.list_conversations(
            user_id, limit=limit, offset=(page - 1) * limit
        )
        total = await self.repository.count_conversations(user_id)

        other_ids = [
            c.other_participant(user_id)
            for c in conversations
            if isinstance(c, DirectConversation)
        ]
        others = await self.directory.summaries(other_ids)

        items: List[ConversationListItem] = []
        for conversation in conversations:
            last = await self.repository.last_message(conversation.id)
            unread = await self.repository.count_unread(conversation.id, user_id)
            item = ConversationListItem(
                conversation_id=conversation.id,
                kind=conversation.kind,
                last_message=(
                    LastMessagePreview(
                        id=last.id,
                        content=last.content,
                        sender_id=last.sender_id,
                        sequence=last.sequence,
                        created_at=last.created_at,
                    )
                    if last
                    else None
                ),
                unread_count=unread,
                participant_count=len(conversation.participant_ids),
                updated_at=conversation.updated_at,
            )
            if isinstance(conversation, DirectConversation):
                item.other_participant = others.get(conversation.other_participant(user_id))
            else:
                item.title = conversation.title
                item.admin_id = conversation.admin_id
            items.append(item)

        result = ConversationPage(conversations=items, total=total, page=page, limit=limit)
        await self.list_cache.store(user_id, result, version)
        return result

    async def create_direct(self, user_id: UUID, participant_id: UUID) -> ConversationSummary:
        """Start a one-on-one conversation; one per user pair."""
        if participant_id == user_id:
            raise ValidationFailed("Cannot start a conversation with yourself")
        if await self.directory.get_user(participant_id) is None:
            raise ValidationFailed("Invalid participant ID")
        if await self.repository.find_direct_conversation(user_id, participant_id):
            raise DuplicateConversation()

        participants = [user_id, participant_id]
        await self.list_cache.prepare(participants)
        conversation = await self.repository.create_conversation(
            DirectConversation(participant_ids=participants)
        )
        await self.list_cache.invalidate(participants)
        return await self.describe(conversation)

    async def create_group(
        self, user_id: UUID, participant_ids: List[UUID], title: str
    ) -> ConversationSummary:
        """Create a titled group; the creator becomes its admin."""
        title = (title or "").strip()
        if not title:
            raise ValidationFailed("Group title is required")
        if len(title) > self.settings.max_title_length:
            raise ValidationFailed("Title too long")
        if not 1 <= len(participant_ids) <= self.settings.max_group_invitees:
            raise ValidationFailed(
                f"Must include 1-{self.settings.max_group_invitees} participants"
            )
        if len(set(participant_ids)) != len(participant_ids) or user_id in participant_ids:
            raise ValidationFailed("Duplicate participant IDs")
        known = await self.directory.get_users(participant_ids)
        if len(known) != len(participant_ids):
            raise ValidationFailed("One or more participants not found")

        participants = [user_id] + list(participant_ids)
        await self.list_cache.prepare(participants)
        conversation = await self.repository.create_conversation(
            GroupConversation(participant_ids=participants, title=title, admin_id=user_id)
        )
        await self.list_cache.invalidate(participants)
        return await self.describe(conversation)

    async def update_members(
        self,
        user_id: UUID,
        conversation_id: UUID,
        add: List[UUID],
        remove: List[UUID],
    ) -> ConversationSummary:
        """Add or remove group members; admin only."""
        conversation = await self.guard.require_conversation(conversation_id, user_id)
        if not isinstance(conversation, GroupConversation):
            raise ValidationFailed("Not a group conversation")
        if conversation.admin_id != user_id:
            raise PermissionDenied("Only the conversation admin can change members")
        if not add and not remove:
            raise ValidationFailed("Must provide userIdsToAdd or userIdsToRemove")
        if len(set(add)) != len(add) or len(set(remove)) != len(remove) or set(add) & set(remove):
            raise ValidationFailed("Duplicate participant IDs")
        known = await self.directory.get_users(add)
        if len(known) != len(add):
            raise ValidationFailed("One or more participants not found")

        affected = list(conversation.participant_ids) + list(add)
        await self.list_cache.prepare(affected)
        updated = await self.repository.update_participants(
            conversation_id, add=add, remove=remove, max_size=self.settings.max_group_size
        )
        await self.list_cache.invalidate(affected)
        logger.info(
            "group_members_updated",
            conversation_id=str(conversation_id),
            admin_id=str(user_id),
            size=len(updated.participant_ids),
        )
        return await self.describe(updated)
