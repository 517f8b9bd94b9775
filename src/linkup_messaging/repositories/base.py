"""Base repository interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Union
from uuid import UUID

from ..domain.models import (
    DirectConversation,
    GroupConversation,
    Message,
    Reaction,
)

AnyConversation = Union[DirectConversation, GroupConversation]


@dataclass
class MarkReadResult:
    """Outcome of a mark-as-read call."""

    updated_count: int
    conversation_ids: Set[UUID] = field(default_factory=set)


class Repository(ABC):
    """Conversation and message store.

    Implementations enforce the storage-level constraints themselves:
    one direct conversation per user pair, one reaction per (message, user),
    and per-conversation message sequence numbers.
    """

    @abstractmethod
    async def get_conversation(self, conversation_id: UUID) -> Optional[AnyConversation]:
        """Retrieve a conversation by ID."""
        pass

    @abstractmethod
    async def list_conversations(
        self, user_id: UUID, limit: int = 10, offset: int = 0
    ) -> List[AnyConversation]:
        """List a user's conversations, most recently active first."""
        pass

    @abstractmethod
    async def count_conversations(self, user_id: UUID) -> int:
        """Count the conversations ``user_id`` participates in."""
        pass

    @abstractmethod
    async def find_direct_conversation(
        self, user_a: UUID, user_b: UUID
    ) -> Optional[DirectConversation]:
        """Return the direct conversation between two users, if any."""
        pass

    @abstractmethod
    async def create_conversation(self, conversation: AnyConversation) -> AnyConversation:
        """Create a new conversation.

        Raises DuplicateConversation when a direct conversation for the same
        pair already exists.
        """
        pass

    @abstractmethod
    async def update_participants(
        self,
        conversation_id: UUID,
        add: Iterable[UUID],
        remove: Iterable[UUID],
        max_size: int,
    ) -> GroupConversation:
        """Apply a membership change to a group conversation."""
        pass

    @abstractmethod
    async def add_message(self, message: Message) -> Message:
        """Add a message to a conversation, assigning its sequence number."""
        pass

    @abstractmethod
    async def get_message(self, message_id: UUID) -> Optional[Message]:
        """Retrieve a message by ID."""
        pass

    @abstractmethod
    async def get_messages(
        self,
        conversation_id: UUID,
        limit: int = 20,
        before: Optional[datetime] = None,
        before_sequence: Optional[int] = None,
    ) -> List[Message]:
        """Get a page of messages, newest first."""
        pass

    @abstractmethod
    async def get_messages_by_id(self, message_ids: Iterable[UUID]) -> Dict[UUID, Message]:
        """Retrieve the existing messages among ``message_ids``."""
        pass

    @abstractmethod
    async def last_message(self, conversation_id: UUID) -> Optional[Message]:
        """Most recent message of a conversation."""
        pass

    @abstractmethod
    async def count_unread(self, conversation_id: UUID, user_id: UUID) -> int:
        """Messages in the conversation not sent or read by ``user_id``."""
        pass

    @abstractmethod
    async def add_reaction(self, message_id: UUID, reaction: Reaction) -> Reaction:
        """Attach a reaction; raises DuplicateReaction for a repeat by the same user."""
        pass

    @abstractmethod
    async def mark_read(self, user_id: UUID, message_ids: List[UUID]) -> MarkReadResult:
        """Mark messages read for ``user_id``, all or nothing."""
        pass
