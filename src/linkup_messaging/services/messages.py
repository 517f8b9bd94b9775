"""Message store operations: history, sending, reactions, read state, typing."""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID

import structlog

from ..config import Settings
from ..domain.errors import ValidationFailed
from ..domain.models import Attachment, Message, Reaction
from ..domain.validation import is_valid_emoji
from ..domain.views import MessagesPage, MessageView, ReplyPreview
from ..repositories.base import Repository
from ..repositories.directory import UserDirectory
from .access import AccessGuard
from .conversations import ConversationService
from .invalidation import ConversationListCache
from .moderation import ContentFilter
from .presence import TypingPresence

logger = structlog.get_logger()


class MessageService:
    def __init__(
        self,
        repository: Repository,
        directory: UserDirectory,
        guard: AccessGuard,
        conversations: ConversationService,
        list_cache: ConversationListCache,
        presence: TypingPresence,
        content_filter: ContentFilter,
        settings: Settings,
    ) -> None:
        self.repository = repository
        self.directory = directory
        self.guard = guard
        self.conversations = conversations
        self.list_cache = list_cache
        self.presence = presence
        self.content_filter = content_filter
        self.settings = settings

    async def _expand(self, messages: List[Message]) -> List[MessageView]:
        senders = await self.directory.summaries({m.sender_id for m in messages})
        reply_ids = {m.reply_to_id for m in messages if m.reply_to_id is not None}
        targets = await self.repository.get_messages_by_id(reply_ids) if reply_ids else {}

        views = []
        for message in messages:
            target = targets.get(message.reply_to_id) if message.reply_to_id else None
            views.append(
                MessageView(
                    id=message.id,
                    conversation_id=message.conversation_id,
                    sequence=message.sequence,
                    content=message.content,
                    sender_id=message.sender_id,
                    sender=senders.get(message.sender_id),
                    attachments=message.attachments,
                    reactions=message.reactions,
                    read_by=message.read_by,
                    reply_to_id=message.reply_to_id,
                    reply_to=(
                        ReplyPreview(id=target.id, content=target.content, sender_id=target.sender_id)
                        if target
                        else None
                    ),
                    created_at=message.created_at,
                )
            )
        return views

    async def list_messages(
        self,
        user_id: UUID,
        conversation_id: UUID,
        limit: int = 20,
        before: Optional[datetime] = None,
        before_sequence: Optional[int] = None,
    ) -> MessagesPage:
        """Chronological page of messages ending before the given cursor.

        Listing does not mark anything as read.
        """
        if before is not None and before.tzinfo is None:
            before = before.replace(tzinfo=timezone.utc)
        conversation = await self.guard.require_conversation(conversation_id, user_id)
        newest_first = await self.repository.get_messages(
            conversation.id, limit=limit + 1, before=before, before_sequence=before_sequence
        )
        has_more = len(newest_first) > limit
        page = list(reversed(newest_first[:limit]))
        return MessagesPage(
            conversation=await self.conversations.describe(conversation),
            messages=await self._expand(page),
            has_more=has_more,
        )

    async def send_message(
        self,
        user_id: UUID,
        conversation_id: UUID,
        content: Optional[str] = None,
        attachments: Optional[List[Attachment]] = None,
        reply_to_id: Optional[UUID] = None,
    ) -> MessageView:
        conversation = await self.guard.require_conversation(conversation_id, user_id)

        attachments = list(attachments or [])
        if content is not None and not content.strip():
            content = None
        if content is None and not attachments:
            raise ValidationFailed("Content or attachments required")
        if content is not None and len(content) > self.settings.max_content_length:
            raise ValidationFailed("Message too long")
        if len(attachments) > self.settings.max_attachments:
            raise ValidationFailed(f"Maximum {self.settings.max_attachments} attachments")

        if reply_to_id is not None:
            target = await self.repository.get_message(reply_to_id)
            if target is None or target.conversation_id != conversation.id:
                raise ValidationFailed("Invalid reply message")

        await self.content_filter.check(content)

        await self.list_cache.prepare(conversation.participant_ids)
        message = await self.repository.add_message(
            Message(
                conversation_id=conversation.id,
                sender_id=user_id,
                content=content,
                reply_to_id=reply_to_id,
                attachments=attachments,
            )
        )
        await self.list_cache.invalidate(conversation.participant_ids)

        logger.info(
            "message_sent",
            conversation_id=str(conversation.id),
            message_id=str(message.id),
            sequence=message.sequence,
            attachments=len(attachments),
        )
        return (await self._expand([message]))[0]

    async def add_reaction(self, user_id: UUID, message_id: UUID, emoji: str) -> Reaction:
        """React to a message; one reaction per user per message."""
        message, conversation = await self.guard.require_message(message_id, user_id)
        if not is_valid_emoji(emoji):
            raise ValidationFailed("Invalid emoji")

        await self.list_cache.prepare(conversation.participant_ids)
        reaction = await self.repository.add_reaction(
            message.id, Reaction(emoji=emoji, user_id=user_id)
        )
        await self.list_cache.invalidate(conversation.participant_ids)
        logger.info("reaction_added", message_id=str(message.id), user_id=str(user_id))
        return reaction

    async def _participants_of(self, conversation_ids: Iterable[UUID], user_id: UUID) -> Set[UUID]:
        participants: Set[UUID] = set()
        for conversation_id in conversation_ids:
            conversation = await self.repository.get_conversation(conversation_id)
            if conversation is not None and conversation.has_participant(user_id):
                participants.update(conversation.participant_ids)
        return participants

    async def mark_read(self, user_id: UUID, message_ids: List[UUID]) -> int:
        """Mark messages read; rejects the whole request if any id is not visible."""
        if not message_ids:
            raise ValidationFailed("messageIds must be a non-empty array")
        if len(set(message_ids)) != len(message_ids):
            raise ValidationFailed("Duplicate message IDs")

        found: Dict[UUID, Message] = await self.repository.get_messages_by_id(message_ids)
        affected = await self._participants_of(
            {m.conversation_id for m in found.values()}, user_id
        )

        await self.list_cache.prepare(affected)
        result = await self.repository.mark_read(user_id, message_ids)
        await self.list_cache.invalidate(affected)

        logger.info(
            "messages_marked_read",
            user_id=str(user_id),
            requested=len(message_ids),
            updated=result.updated_count,
        )
        return result.updated_count

    async def set_typing(self, user_id: UUID, conversation_id: UUID, is_typing: bool) -> None:
        conversation = await self.guard.require_conversation(conversation_id, user_id)
        await self.presence.set_typing(conversation.id, user_id, is_typing)

    async def typing_users(self, user_id: UUID, conversation_id: UUID) -> List[UUID]:
        """Other participants currently flagged as typing."""
        conversation = await self.guard.require_conversation(conversation_id, user_id)
        others = [uid for uid in conversation.participant_ids if uid != user_id]
        return await self.presence.typing_users(conversation.id, others)
