"""Service wiring and FastAPI dependencies."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from structlog import get_logger

from ..cache import Cache, build_cache
from ..config import Settings, get_settings
from ..domain.errors import Unauthenticated
from ..repositories.base import Repository
from ..repositories.directory import InMemoryUserDirectory, UserDirectory, UserRecord
from ..repositories.memory import InMemoryRepository
from ..services.access import AccessGuard
from ..services.conversations import ConversationService
from ..services.invalidation import ConversationListCache
from ..services.messages import MessageService
from ..services.moderation import build_content_filter
from ..services.presence import TypingPresence
from ..services.social import SocialService
from .rate_limiter import RateLimiter

logger = get_logger()


@dataclass
class Components:
    """Everything a request handler can depend on."""

    settings: Settings
    cache: Cache
    repository: Repository
    directory: UserDirectory
    conversations: ConversationService
    messages: MessageService
    social: SocialService
    rate_limiter: RateLimiter


def build_components(
    settings: Settings,
    cache: Optional[Cache] = None,
    repository: Optional[Repository] = None,
    directory: Optional[UserDirectory] = None,
) -> Components:
    cache = cache or build_cache(settings)
    repository = repository or InMemoryRepository()
    directory = directory or InMemoryUserDirectory()

    guard = AccessGuard(repository)
    list_cache = ConversationListCache(
        cache,
        ttl=settings.conversation_cache_ttl,
        retries=settings.cache_invalidation_retries,
    )
    conversations = ConversationService(repository, directory, guard, list_cache, settings)
    messages = MessageService(
        repository,
        directory,
        guard,
        conversations,
        list_cache,
        TypingPresence(cache, ttl=settings.typing_ttl),
        build_content_filter(settings.blocked_words),
        settings,
    )
    return Components(
        settings=settings,
        cache=cache,
        repository=repository,
        directory=directory,
        conversations=conversations,
        messages=messages,
        social=SocialService(repository, directory, settings.active_window_minutes),
        rate_limiter=RateLimiter(
            cache, rate_limit=settings.rate_limit, time_window=settings.rate_limit_window
        ),
    )


_components: Optional[Components] = None


def get_components() -> Components:
    """Get the process-wide components, building them on first use."""
    global _components
    if _components is None:
        _components = build_components(get_settings())
    return _components


def set_components(components: Components) -> None:
    """Replace the process-wide components."""
    global _components
    _components = components


def get_conversation_service() -> ConversationService:
    return get_components().conversations


def get_message_service() -> MessageService:
    return get_components().messages


def get_social_service() -> SocialService:
    return get_components().social


def get_directory() -> UserDirectory:
    return get_components().directory


def get_rate_limiter() -> RateLimiter:
    """Returns the rate limiting service"""
    return get_components().rate_limiter


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    directory: UserDirectory = Depends(get_directory),
) -> UserRecord:
    """Resolve the caller from the ``X-User-ID`` header set by the auth gateway."""
    if not x_user_id:
        raise Unauthenticated()
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise Unauthenticated("Invalid user id")
    user = await directory.get_user(user_id)
    if user is None or user.is_banned:
        logger.warning("unknown_caller", user_id=x_user_id)
        raise Unauthenticated()
    return user
