"""Unread message counting."""

from typing import Iterable
from uuid import UUID

from ..domain.models import Message


def is_unread_for(message: Message, user_id: UUID) -> bool:
    """A message is unread for everyone but its sender until they mark it read."""
    return message.sender_id != user_id and not message.is_read_by(user_id)


def count_unread(messages: Iterable[Message], user_id: UUID) -> int:
    """Count messages not authored by ``user_id`` and not yet read by them."""
    return sum(1 for message in messages if is_unread_for(message, user_id))
