"""In-memory repository implementation."""

import asyncio
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional
from uuid import UUID

import structlog

from ..domain.errors import (
    ConversationNotFound,
    DuplicateConversation,
    DuplicateReaction,
    MessageNotFound,
    ValidationFailed,
)
from ..domain.models import (
    DirectConversation,
    GroupConversation,
    Message,
    Reaction,
    ReadReceipt,
    utcnow,
)
from ..services.unread import count_unread, is_unread_for
from .base import AnyConversation, MarkReadResult, Repository

logger = structlog.get_logger()


class InMemoryRepository(Repository):
    """Async-safe in-memory repository implementation.

    Every mutation runs under one ``asyncio.Lock`` so uniqueness checks and
    the writes they guard happen in a single step. Records handed out are
    copies; the repository stays the only owner of stored state.
    """

    def __init__(self) -> None:
        """Initialize the repository with lock-protected storage."""
        self._conversations: Dict[UUID, AnyConversation] = {}
        self._direct_pairs: Dict[FrozenSet[UUID], UUID] = {}
        self._messages: Dict[UUID, List[Message]] = {}
        self._message_index: Dict[UUID, Message] = {}
        self._lock = asyncio.Lock()
        logger.info("repository_initialized")

    def _user_conversations(self, user_id: UUID) -> List[AnyConversation]:
        return sorted(
            (c for c in self._conversations.values() if c.has_participant(user_id)),
            key=lambda c: (c.updated_at, str(c.id)),
            reverse=True,
        )

    async def get_conversation(self, conversation_id: UUID) -> Optional[AnyConversation]:
        """Retrieve a conversation by ID."""
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            return conversation.model_copy(deep=True) if conversation else None

    async def list_conversations(
        self, user_id: UUID, limit: int = 10, offset: int = 0
    ) -> List[AnyConversation]:
        """List a user's conversations, most recently active first."""
        async with self._lock:
            conversations = self._user_conversations(user_id)
            return [c.model_copy(deep=True) for c in conversations[offset : offset + limit]]

    async def count_conversations(self, user_id: UUID) -> int:
        async with self._lock:
            return sum(1 for c in self._conversations.values() if c.has_participant(user_id))

    async def find_direct_conversation(
        self, user_a: UUID, user_b: UUID
    ) -> Optional[DirectConversation]:
        async with self._lock:
            conversation_id = self._direct_pairs.get(frozenset((user_a, user_b)))
            if conversation_id is None:
                return None
            return self._conversations[conversation_id].model_copy(deep=True)

    async def create_conversation(self, conversation: AnyConversation) -> AnyConversation:
        """Create a new conversation."""
        async with self._lock:
            if isinstance(conversation, DirectConversation):
                pair = conversation.pair_key
                if pair in self._direct_pairs:
                    logger.warning(
                        "direct_conversation_exists",
                        conversation_id=str(self._direct_pairs[pair]),
                    )
                    raise DuplicateConversation()
                self._direct_pairs[pair] = conversation.id
            stored = conversation.model_copy(deep=True)
            self._conversations[stored.id] = stored
            self._messages[stored.id] = []
            logger.info(
                "conversation_created",
                conversation_id=str(stored.id),
                kind=stored.kind,
                participants=len(stored.participant_ids),
            )
            return stored.model_copy(deep=True)

    async def update_participants(
        self,
        conversation_id: UUID,
        add: Iterable[UUID],
        remove: Iterable[UUID],
        max_size: int,
    ) -> GroupConversation:
        add, remove = list(add), list(remove)
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                raise ConversationNotFound()
            if not isinstance(conversation, GroupConversation):
                raise ValidationFailed("Not a group conversation")

            members = list(conversation.participant_ids)
            if any(user_id in members for user_id in add):
                raise ValidationFailed("User is already a participant")
            if any(user_id not in members for user_id in remove):
                raise ValidationFailed("User is not a participant")
            if conversation.admin_id in remove:
                raise ValidationFailed("The conversation admin cannot be removed")

            members = [m for m in members if m not in remove] + add
            if len(members) < 2:
                raise ValidationFailed("A group needs at least two participants")
            if len(members) > max_size:
                raise ValidationFailed(f"A group allows at most {max_size} participants")

            conversation.participant_ids = members
            conversation.updated_at = utcnow()
            logger.info(
                "participants_updated",
                conversation_id=str(conversation_id),
                added=len(add),
                removed=len(remove),
            )
            return conversation.model_copy(deep=True)

    async def add_message(self, message: Message) -> Message:
        """Add a message to a conversation, assigning its sequence number."""
        async with self._lock:
            conversation = self._conversations.get(message.conversation_id)
            if conversation is None or not conversation.has_participant(message.sender_id):
                logger.error(
                    "conversation_not_found_for_message",
                    conversation_id=str(message.conversation_id),
                )
                raise ConversationNotFound()

            if message.reply_to_id is not None:
                target = self._message_index.get(message.reply_to_id)
                if target is None or target.conversation_id != message.conversation_id:
                    raise ValidationFailed("Invalid reply message")

            stored = message.model_copy(deep=True)
            conversation.last_sequence += 1
            stored.sequence = conversation.last_sequence
            stored.created_at = utcnow()
            conversation.updated_at = stored.created_at

            self._messages[conversation.id].append(stored)
            self._message_index[stored.id] = stored

            logger.info(
                "message_added",
                conversation_id=str(stored.conversation_id),
                message_id=str(stored.id),
                sequence=stored.sequence,
            )
            return stored.model_copy(deep=True)

    async def get_message(self, message_id: UUID) -> Optional[Message]:
        async with self._lock:
            message = self._message_index.get(message_id)
            return message.model_copy(deep=True) if message else None

    async def get_messages(
        self,
        conversation_id: UUID,
        limit: int = 20,
        before: Optional[datetime] = None,
        before_sequence: Optional[int] = None,
    ) -> List[Message]:
        """Get a page of messages, newest first."""
        async with self._lock:
            if conversation_id not in self._conversations:
                raise ConversationNotFound()

            page: List[Message] = []
            for message in reversed(self._messages[conversation_id]):
                if before_sequence is not None and message.sequence >= before_sequence:
                    continue
                if before is not None and message.created_at >= before:
                    continue
                page.append(message.model_copy(deep=True))
                if len(page) == limit:
                    break
            return page

    async def get_messages_by_id(self, message_ids: Iterable[UUID]) -> Dict[UUID, Message]:
        async with self._lock:
            return {
                mid: self._message_index[mid].model_copy(deep=True)
                for mid in message_ids
                if mid in self._message_index
            }

    async def last_message(self, conversation_id: UUID) -> Optional[Message]:
        async with self._lock:
            messages = self._messages.get(conversation_id)
            return messages[-1].model_copy(deep=True) if messages else None

    async def count_unread(self, conversation_id: UUID, user_id: UUID) -> int:
        async with self._lock:
            return count_unread(self._messages.get(conversation_id, []), user_id)

    async def add_reaction(self, message_id: UUID, reaction: Reaction) -> Reaction:
        async with self._lock:
            message = self._message_index.get(message_id)
            if message is None:
                raise MessageNotFound()
            if message.reaction_by(reaction.user_id) is not None:
                logger.warning(
                    "duplicate_reaction",
                    message_id=str(message_id),
                    user_id=str(reaction.user_id),
                )
                raise DuplicateReaction()
            stored = reaction.model_copy(deep=True)
            message.reactions.append(stored)
            return stored.model_copy(deep=True)

    async def mark_read(self, user_id: UUID, message_ids: List[UUID]) -> MarkReadResult:
        async with self._lock:
            visible = []
            for message_id in message_ids:
                message = self._message_index.get(message_id)
                if message is None:
                    continue
                if self._conversations[message.conversation_id].has_participant(user_id):
                    visible.append(message)

            if len(visible) != len(message_ids):
                logger.warning(
                    "mark_read_rejected",
                    user_id=str(user_id),
                    requested=len(message_ids),
                    visible=len(visible),
                )
                raise ValidationFailed("One or more message IDs are invalid or inaccessible")

            result = MarkReadResult(updated_count=0)
            read_at = utcnow()
            for message in visible:
                result.conversation_ids.add(message.conversation_id)
                if is_unread_for(message, user_id):
                    message.read_by.append(ReadReceipt(user_id=user_id, read_at=read_at))
                    result.updated_count += 1
            return result
