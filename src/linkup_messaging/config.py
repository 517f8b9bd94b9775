"""Runtime configuration read from the environment."""

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Service settings, one instance per process."""

    cache_backend: str = "memory"  # "memory" or "redis"
    redis_url: str = "redis://localhost:6379/0"
    conversation_cache_ttl: int = 300
    typing_ttl: int = 10
    cache_invalidation_retries: int = 2
    rate_limit: int = 50
    rate_limit_window: int = 60
    max_group_invitees: int = 20
    max_title_length: int = 50
    max_content_length: int = 2000
    max_attachments: int = 10
    active_window_minutes: int = 5
    blocked_words: List[str] = field(default_factory=list)
    log_level: str = "INFO"
    log_json: bool = False
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def max_group_size(self) -> int:
        # Invitees plus the creating admin
        return self.max_group_invitees + 1

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            cache_backend=os.getenv("CACHE_BACKEND", "memory").lower(),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            conversation_cache_ttl=int(os.getenv("CONVERSATION_CACHE_TTL", "300")),
            typing_ttl=int(os.getenv("TYPING_TTL", "10")),
            cache_invalidation_retries=int(os.getenv("CACHE_INVALIDATION_RETRIES", "2")),
            rate_limit=int(os.getenv("RATE_LIMIT", "50")),
            rate_limit_window=int(os.getenv("RATE_LIMIT_WINDOW", "60")),
            max_group_invitees=int(os.getenv("MAX_GROUP_INVITEES", "20")),
            max_title_length=int(os.getenv("MAX_TITLE_LENGTH", "50")),
            max_content_length=int(os.getenv("MAX_CONTENT_LENGTH", "2000")),
            max_attachments=int(os.getenv("MAX_ATTACHMENTS", "10")),
            active_window_minutes=int(os.getenv("ACTIVE_WINDOW_MINUTES", "5")),
            blocked_words=_env_list("BLOCKED_WORDS"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON", False),
            cors_origins=_env_list("CORS_ORIGINS") or ["*"],
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
