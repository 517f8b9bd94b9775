"""Read models returned to API callers."""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from .models import Attachment, CamelModel, Reaction, ReadReceipt, UserSummary


class ConversationSummary(CamelModel):
    conversation_id: UUID
    kind: Literal["direct", "group"]
    title: Optional[str] = None
    admin_id: Optional[UUID] = None
    participants: List[UserSummary]
    created_at: datetime
    updated_at: datetime


class LastMessagePreview(CamelModel):
    id: UUID
    content: Optional[str] = None
    sender_id: UUID
    sequence: int
    created_at: datetime


class ConversationListItem(CamelModel):
    """One row of a user's conversation list."""

    conversation_id: UUID
    kind: Literal["direct", "group"]
    last_message: Optional[LastMessagePreview] = None
    unread_count: int
    # Only set for direct conversations
    other_participant: Optional[UserSummary] = None
    title: Optional[str] = None
    admin_id: Optional[UUID] = None
    participant_count: int
    updated_at: datetime


class ConversationPage(CamelModel):
    conversations: List[ConversationListItem]
    total: int
    page: int
    limit: int


class ReplyPreview(CamelModel):
    id: UUID
    content: Optional[str] = None
    sender_id: UUID


class MessageView(CamelModel):
    """Message expanded with sender, reply target and receipts."""

    id: UUID
    conversation_id: UUID
    sequence: int
    content: Optional[str] = None
    sender_id: UUID
    sender: Optional[UserSummary] = None
    attachments: List[Attachment] = []
    reactions: List[Reaction] = []
    read_by: List[ReadReceipt] = []
    reply_to_id: Optional[UUID] = None
    reply_to: Optional[ReplyPreview] = None
    created_at: datetime


class MessagesPage(CamelModel):
    conversation: ConversationSummary
    messages: List[MessageView]
    has_more: bool


class ActiveUser(UserSummary):
    last_active: datetime
