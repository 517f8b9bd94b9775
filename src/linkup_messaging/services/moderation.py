"""Pre-commit content checks for outgoing messages."""

import re
from abc import ABC, abstractmethod
from typing import Iterable, Optional

import structlog

from ..domain.errors import ValidationFailed

logger = structlog.get_logger()


class ContentFilter(ABC):
    """Accepts or rejects message content before it is stored."""

    @abstractmethod
    async def check(self, content: Optional[str]) -> None:
        """Raise ValidationFailed to reject ``content``."""
        pass


class AllowAllFilter(ContentFilter):
    async def check(self, content: Optional[str]) -> None:
        return None


class BlockedWordsFilter(ContentFilter):
    """Rejects content containing any configured word (case-insensitive)."""

    def __init__(self, words: Iterable[str]) -> None:
        self.words = sorted({w.lower() for w in words if w})
        self._pattern = (
            re.compile(r"\b(" + "|".join(re.escape(w) for w in self.words) + r")\b", re.IGNORECASE)
            if self.words
            else None
        )

    async def check(self, content: Optional[str]) -> None:
        if not content or self._pattern is None:
            return
        match = self._pattern.search(content)
        if match:
            logger.info("message_rejected_by_filter", word=match.group(1).lower())
            raise ValidationFailed("Message content is not allowed")


def build_content_filter(blocked_words: Iterable[str]) -> ContentFilter:
    words = list(blocked_words)
    return BlockedWordsFilter(words) if words else AllowAllFilter()
