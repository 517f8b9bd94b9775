"""
FastAPI Application Module

HTTP surface of the LinkUp messaging service: direct and group
conversations, message history, replies, attachments, reactions, read
receipts and typing indicators.

Key Features:
- Membership-gated access to every conversation-scoped operation
- Per-user cached conversation lists with unread counts
- Shared-cache rate limiting
- Structured logging, Prometheus metrics and OpenTelemetry tracing
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CollectorRegistry, Counter, generate_latest
from structlog import get_logger

from ..config import get_settings
from ..domain.errors import MessagingError, RateLimitExceeded
from ..domain.views import ConversationPage, ConversationSummary, MessagesPage, MessageView
from ..log_config import configure_logging
from ..repositories.directory import UserRecord
from ..services.conversations import ConversationService
from ..services.messages import MessageService
from ..services.social import SocialService
from .dependencies import (
    get_components,
    get_conversation_service,
    get_current_user,
    get_message_service,
    get_rate_limiter,
    get_social_service,
)
from .rate_limiter import rate_limit_middleware
from .schemas import (
    ActiveFollowingOut,
    ConversationCreate,
    MarkReadOut,
    MarkReadRequest,
    MembersUpdate,
    MessageCreate,
    ReactionCreate,
    ReactionOut,
    SuccessOut,
    SuggestedUsersOut,
    TypingRequest,
    TypingStatusOut,
)

settings = get_settings()
configure_logging(settings)

# Registry for isolated metric collection
CUSTOM_REGISTRY = CollectorRegistry()

# Core operational metrics for monitoring
REQUESTS = Counter("requests_total", "Total requests by endpoint", ["endpoint"], registry=CUSTOM_REGISTRY)
ERRORS = Counter("errors_total", "Total errors by endpoint", ["endpoint"], registry=CUSTOM_REGISTRY)
PROCESSING_TIME = Counter("processing_time_seconds", "Total processing time by endpoint", ["endpoint"], registry=CUSTOM_REGISTRY)

logger = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles app startup/shutdown and resource management"""
    cache = get_components().cache
    await cache.start()
    logger.info("application_startup_complete", cache_backend=settings.cache_backend)

    yield

    await cache.close()
    logger.info("application_shutdown_complete")


app = FastAPI(
    title="LinkUp Messaging API",
    description="Conversations, messages, reactions and read receipts for LinkUp",
    version="0.1.0",
    lifespan=lifespan
)

# Enable cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Set up request tracing
FastAPIInstrumentor.instrument_app(app)


def _endpoint(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Tracks requests and enforces rate limits"""
    logger.info("request_started", method=request.method, path=request.url.path)
    started = time.perf_counter()
    try:
        await rate_limit_middleware(request, get_rate_limiter())
    except RateLimitExceeded as e:
        REQUESTS.labels(endpoint="rate_limited").inc()
        return JSONResponse(status_code=e.status_code, content={"detail": e.detail})

    try:
        response = await call_next(request)
    except Exception as e:
        ERRORS.labels(endpoint=_endpoint(request)).inc()
        logger.error("request_failed", path=request.url.path, error=str(e))
        raise

    endpoint = _endpoint(request)
    REQUESTS.labels(endpoint=endpoint).inc()
    PROCESSING_TIME.labels(endpoint=endpoint).inc(time.perf_counter() - started)
    if response.status_code >= 500:
        ERRORS.labels(endpoint=endpoint).inc()
    return response


@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError) -> JSONResponse:
    """Renders domain failures with their status and public detail"""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_rejected",
        path=request.url.path,
        status=exc.status_code,
        error=type(exc).__name__,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.get("/health")
async def health():
    """Liveness probe including cache reachability"""
    cache_ok = await get_components().cache.ping()
    return {"status": "ok" if cache_ok else "degraded", "cache": cache_ok}


@app.get("/conversations", response_model=ConversationPage)
async def list_conversations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    user: UserRecord = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationPage:
    """Gets the caller's conversations, most recently active first"""
    try:
        return await service.list_for_user(user.user_id, page=page, limit=limit)
    except MessagingError:
        raise
    except Exception as e:
        logger.error("list_conversations_error", user_id=str(user.user_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch conversations")


@app.post("/conversations", response_model=ConversationSummary, status_code=201)
async def create_conversation(
    body: ConversationCreate,
    user: UserRecord = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationSummary:
    """Starts a direct conversation or a titled group"""
    try:
        if body.is_group:
            return await service.create_group(user.user_id, body.member_ids(), body.title)
        return await service.create_direct(user.user_id, body.member_ids()[0])
    except MessagingError:
        raise
    except Exception as e:
        logger.error("create_conversation_error", user_id=str(user.user_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to create conversation")


@app.patch("/conversations/{conversation_id}/members", response_model=ConversationSummary)
async def update_group_members(
    conversation_id: UUID,
    body: MembersUpdate,
    user: UserRecord = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationSummary:
    """Adds or removes group members; admin only"""
    try:
        return await service.update_members(
            user.user_id,
            conversation_id,
            add=body.user_ids_to_add,
            remove=body.user_ids_to_remove,
        )
    except MessagingError:
        raise
    except Exception as e:
        logger.error("update_members_error", conversation_id=str(conversation_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to update group members")


@app.post("/conversations/typing", response_model=SuccessOut)
async def handle_typing(
    body: TypingRequest,
    user: UserRecord = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
) -> SuccessOut:
    """Sets or clears the caller's typing flag"""
    try:
        await service.set_typing(user.user_id, body.conversation_id, body.is_typing)
        return SuccessOut()
    except MessagingError:
        raise
    except Exception as e:
        logger.error("typing_error", conversation_id=str(body.conversation_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to handle typing status")


@app.get("/conversations/{conversation_id}/typing", response_model=TypingStatusOut)
async def get_typing(
    conversation_id: UUID,
    user: UserRecord = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
) -> TypingStatusOut:
    """Lists the other participants currently typing"""
    try:
        typing = await service.typing_users(user.user_id, conversation_id)
        return TypingStatusOut(conversation_id=conversation_id, typing_user_ids=typing)
    except MessagingError:
        raise
    except Exception as e:
        logger.error("typing_lookup_error", conversation_id=str(conversation_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch typing status")


@app.get("/conversations/{conversation_id}/messages", response_model=MessagesPage)
async def get_messages(
    conversation_id: UUID,
    limit: int = Query(20, ge=1, le=100),
    before: Optional[datetime] = Query(None),
    before_sequence: Optional[int] = Query(None, alias="beforeSequence", ge=1),
    user: UserRecord = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
) -> MessagesPage:
    """Gets a chronological page of messages before the given cursor"""
    try:
        return await service.list_messages(
            user.user_id,
            conversation_id,
            limit=limit,
            before=before,
            before_sequence=before_sequence,
        )
    except MessagingError:
        raise
    except Exception as e:
        logger.error("get_messages_error", conversation_id=str(conversation_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch conversation messages")


@app.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageView,
    status_code=201,
)
async def send_message(
    conversation_id: UUID,
    body: MessageCreate,
    user: UserRecord = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
) -> MessageView:
    """Sends a message with optional attachments and reply target"""
    try:
        return await service.send_message(
            user.user_id,
            conversation_id,
            content=body.content,
            attachments=[a.to_attachment() for a in body.attachments],
            reply_to_id=body.reply_to_id,
        )
    except MessagingError:
        raise
    except Exception as e:
        logger.error("send_message_error", conversation_id=str(conversation_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to send message")


@app.post("/messages/read", response_model=MarkReadOut)
async def mark_messages_read(
    body: MarkReadRequest,
    user: UserRecord = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
) -> MarkReadOut:
    """Marks messages read for the caller, all or nothing"""
    try:
        updated = await service.mark_read(user.user_id, body.message_ids)
        return MarkReadOut(updated_count=updated)
    except MessagingError:
        raise
    except Exception as e:
        logger.error("mark_read_error", user_id=str(user.user_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to mark messages as read")


@app.post("/messages/{message_id}/reactions", response_model=ReactionOut, status_code=201)
async def add_reaction(
    message_id: UUID,
    body: ReactionCreate,
    user: UserRecord = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
) -> ReactionOut:
    """Adds the caller's reaction to a message"""
    try:
        reaction = await service.add_reaction(user.user_id, message_id, body.emoji)
        return ReactionOut(message_id=message_id, emoji=reaction.emoji)
    except MessagingError:
        raise
    except Exception as e:
        logger.error("add_reaction_error", message_id=str(message_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to add reaction")


@app.get("/active-following", response_model=ActiveFollowingOut)
async def active_following(
    user: UserRecord = Depends(get_current_user),
    service: SocialService = Depends(get_social_service),
) -> ActiveFollowingOut:
    """Followed users active in the last few minutes"""
    try:
        users = await service.active_following(user.user_id)
        return ActiveFollowingOut(active_following=users, count=len(users))
    except MessagingError:
        raise
    except Exception as e:
        logger.error("active_following_error", user_id=str(user.user_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch active following")


@app.get("/suggested-chat-users", response_model=SuggestedUsersOut)
async def suggested_chat_users(
    user: UserRecord = Depends(get_current_user),
    service: SocialService = Depends(get_social_service),
) -> SuggestedUsersOut:
    """Followed users the caller has no direct conversation with"""
    try:
        users = await service.suggested_chat_users(user.user_id)
        return SuggestedUsersOut(suggested_users=users, count=len(users))
    except MessagingError:
        raise
    except Exception as e:
        logger.error("suggested_chat_users_error", user_id=str(user.user_id), error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch suggested chat users")


@app.get("/metrics")
async def metrics():
    """Provides Prometheus metrics for system monitoring"""
    return Response(generate_latest(CUSTOM_REGISTRY), media_type="text/plain")
