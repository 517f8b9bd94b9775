"""Domain models for the messaging service."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserSummary(CamelModel):
    """Public view of a user."""

    user_id: UUID
    username: str
    profile_picture: Optional[str] = None


class AttachmentType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"
    VOICE = "voice"


class Attachment(CamelModel):
    """File attached to a message."""

    id: UUID = Field(default_factory=uuid4)
    url: str
    type: AttachmentType
    file_name: Optional[str] = None
    file_size: Optional[int] = None


class Reaction(CamelModel):
    """Emoji reaction; one per user per message."""

    id: UUID = Field(default_factory=uuid4)
    emoji: str
    user_id: UUID
    created_at: datetime = Field(default_factory=utcnow)


class ReadReceipt(CamelModel):
    user_id: UUID
    read_at: datetime = Field(default_factory=utcnow)


class Message(CamelModel):
    """Message model.

    Immutable after creation apart from ``reactions`` and ``read_by``.
    """

    id: UUID = Field(default_factory=uuid4)
    conversation_id: UUID
    sequence: int = 0  # assigned by the store
    sender_id: UUID
    content: Optional[str] = None
    reply_to_id: Optional[UUID] = None
    attachments: List[Attachment] = []
    reactions: List[Reaction] = []
    read_by: List[ReadReceipt] = []
    created_at: datetime = Field(default_factory=utcnow)

    def is_read_by(self, user_id: UUID) -> bool:
        return any(receipt.user_id == user_id for receipt in self.read_by)

    def reaction_by(self, user_id: UUID) -> Optional[Reaction]:
        for reaction in self.reactions:
            if reaction.user_id == user_id:
                return reaction
        return None


class ConversationBase(CamelModel):
    id: UUID = Field(default_factory=uuid4)
    participant_ids: List[UUID]
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_sequence: int = 0

    def has_participant(self, user_id: UUID) -> bool:
        return user_id in self.participant_ids


class DirectConversation(ConversationBase):
    """Conversation between exactly two users."""

    kind: Literal["direct"] = "direct"

    @property
    def pair_key(self) -> frozenset:
        return frozenset(self.participant_ids)

    def other_participant(self, user_id: UUID) -> UUID:
        first, second = self.participant_ids
        return second if first == user_id else first


class GroupConversation(ConversationBase):
    """Titled conversation administered by its creator."""

    kind: Literal["group"] = "group"
    title: str
    admin_id: UUID

