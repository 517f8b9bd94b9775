"""Domain exceptions raised by the stores and services.

Each exception carries the HTTP status and the public detail the API layer
renders; internal context goes to the logs only.
"""


class MessagingError(Exception):
    """Base class for failures reported to the caller."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationFailed(MessagingError):
    status_code = 400
    default_detail = "Invalid request"


class Unauthenticated(MessagingError):
    status_code = 401
    default_detail = "Authentication required"


class PermissionDenied(MessagingError):
    status_code = 403
    default_detail = "Not allowed"


class ConversationNotFound(MessagingError):
    """Raised both for missing conversations and for non-participants."""

    status_code = 404
    default_detail = "Conversation not found or access denied"


class MessageNotFound(MessagingError):
    """Raised both for missing messages and for non-participants."""

    status_code = 404
    default_detail = "Message not found or access denied"


class Conflict(MessagingError):
    status_code = 409
    default_detail = "Conflict"


class DuplicateConversation(Conflict):
    default_detail = "Conversation with this user already exists"


class DuplicateReaction(Conflict):
    default_detail = "Reaction already exists"


class RateLimitExceeded(MessagingError):
    """Exception raised when rate limit is exceeded."""

    status_code = 429
    default_detail = "Rate limit exceeded"


class DependencyUnavailable(MessagingError):
    status_code = 503
    default_detail = "Service temporarily unavailable"
