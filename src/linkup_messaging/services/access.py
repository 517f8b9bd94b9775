"""Conversation membership checks.

Missing records and records the caller may not see are reported with the
same error so that non-participants cannot probe for conversation ids.
"""

from typing import Optional, Tuple
from uuid import UUID

import structlog

from ..domain.errors import ConversationNotFound, MessageNotFound
from ..domain.models import Message
from ..repositories.base import AnyConversation, Repository

logger = structlog.get_logger()


class AccessGuard:
    """Gate every conversation-scoped operation on membership."""

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    @staticmethod
    def is_participant(conversation: Optional[AnyConversation], user_id: UUID) -> bool:
        return conversation is not None and conversation.has_participant(user_id)

    async def require_conversation(
        self, conversation_id: UUID, user_id: UUID
    ) -> AnyConversation:
        """Return the conversation or raise ConversationNotFound."""
        conversation = await self.repository.get_conversation(conversation_id)
        if not self.is_participant(conversation, user_id):
            logger.warning(
                "conversation_access_denied",
                conversation_id=str(conversation_id),
                user_id=str(user_id),
            )
            raise ConversationNotFound()
        return conversation

    async def require_message(
        self, message_id: UUID, user_id: UUID
    ) -> Tuple[Message, AnyConversation]:
        """Return a message and its conversation or raise MessageNotFound."""
        message = await self.repository.get_message(message_id)
        conversation = (
            await self.repository.get_conversation(message.conversation_id)
            if message is not None
            else None
        )
        if not self.is_participant(conversation, user_id):
            logger.warning(
                "message_access_denied",
                message_id=str(message_id),
                user_id=str(user_id),
            )
            raise MessageNotFound()
        return message, conversation
