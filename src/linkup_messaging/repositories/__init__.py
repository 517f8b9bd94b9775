"""Conversation, message and user stores."""

from .base import AnyConversation, MarkReadResult, Repository
from .directory import InMemoryUserDirectory, UserDirectory, UserRecord
from .memory import InMemoryRepository

__all__ = [
    "AnyConversation",
    "InMemoryRepository",
    "InMemoryUserDirectory",
    "MarkReadResult",
    "Repository",
    "UserDirectory",
    "UserRecord",
]
