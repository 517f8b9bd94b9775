"""Request and response bodies of the HTTP API."""

from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from ..domain.models import Attachment, AttachmentType, CamelModel, UserSummary
from ..domain.validation import is_https_url
from ..domain.views import ActiveUser


class ConversationCreate(CamelModel):
    """Direct: ``participantId`` (or a single ``participantIds`` entry).
    Group: ``isGroup`` with ``participantIds`` and ``title``."""

    participant_id: Optional[UUID] = None
    participant_ids: Optional[List[UUID]] = None
    is_group: bool = False
    title: Optional[str] = None

    @model_validator(mode="after")
    def _check_participants(self) -> "ConversationCreate":
        if self.participant_id is not None and self.participant_ids is not None:
            raise ValueError("Provide participantId or participantIds, not both")
        if self.participant_id is None and not self.participant_ids:
            raise ValueError("At least one participant ID is required")
        if not self.is_group and self.participant_id is None and len(self.participant_ids) != 1:
            raise ValueError("Exactly one participant ID is required")
        if self.is_group and not (self.title and self.title.strip()):
            raise ValueError("Group title is required")
        return self

    def member_ids(self) -> List[UUID]:
        if self.participant_id is not None:
            return [self.participant_id]
        return list(self.participant_ids)


class MembersUpdate(CamelModel):
    user_ids_to_add: List[UUID] = []
    user_ids_to_remove: List[UUID] = []

    @model_validator(mode="after")
    def _check_not_empty(self) -> "MembersUpdate":
        if not self.user_ids_to_add and not self.user_ids_to_remove:
            raise ValueError("Must provide userIdsToAdd or userIdsToRemove")
        return self


class AttachmentIn(CamelModel):
    url: str
    type: AttachmentType
    file_name: Optional[str] = Field(default=None, max_length=255)
    file_size: Optional[int] = Field(default=None, ge=0)

    @field_validator("url")
    @classmethod
    def _https_only(cls, value: str) -> str:
        if not is_https_url(value):
            raise ValueError("Attachment URL must use https")
        return value

    def to_attachment(self) -> Attachment:
        return Attachment(
            url=self.url, type=self.type, file_name=self.file_name, file_size=self.file_size
        )


class MessageCreate(CamelModel):
    """Defines the structure for message creation requests"""

    content: Optional[str] = None
    attachments: List[AttachmentIn] = []
    reply_to_id: Optional[UUID] = None


class ReactionCreate(CamelModel):
    emoji: str = Field(min_length=1, max_length=10)


class ReactionOut(CamelModel):
    message_id: UUID
    emoji: str


class MarkReadRequest(CamelModel):
    message_ids: List[UUID] = Field(min_length=1)


class MarkReadOut(CamelModel):
    success: bool = True
    updated_count: int


class TypingRequest(CamelModel):
    conversation_id: UUID
    is_typing: bool = True


class SuccessOut(CamelModel):
    success: bool = True


class TypingStatusOut(CamelModel):
    conversation_id: UUID
    typing_user_ids: List[UUID]


class ActiveFollowingOut(CamelModel):
    active_following: List[ActiveUser]
    count: int


class SuggestedUsersOut(CamelModel):
    suggested_users: List[UserSummary]
    count: int
