"""Data models for credential and cache state."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

STATUS_ACTIVE = "active"
STATUS_QUOTA_EXCEEDED = "quota_exceeded"
STATUS_DISABLED = "disabled"


@dataclass
class Credential:
    """A single API key and its health state.

    ``status`` and ``quota_reset_at`` are owned by the credential pool;
    callers only read them.
    """

    index: int
    value: str
    status: str = STATUS_ACTIVE
    consecutive_failures: int = 0
    last_used_at: Optional[datetime] = None
    last_error: Optional[str] = None
    quota_reset_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def quota_window_elapsed(self, now: datetime) -> bool:
        return (
            self.status == STATUS_QUOTA_EXCEEDED
            and self.quota_reset_at is not None
            and now >= self.quota_reset_at
        )

    def key_prefix(self) -> str:
        if len(self.value) <= 11:
            return self.value
        return f"{self.value[:8]}...{self.value[-3:]}"

    def snapshot(self, is_current: bool) -> Dict[str, object]:
        return {
            "index": self.index,
            "key_prefix": self.key_prefix(),
            "status": self.status,
            "consecutive_failures": self.consecutive_failures,
            "last_used_at": self.last_used_at,
            "last_error": self.last_error,
            "quota_reset_at": self.quota_reset_at,
            "is_current": is_current,
        }


@dataclass
class CacheEntry:
    """A cached upstream payload."""

    key: str
    value: Any
    stored_at: float
    ttl: float
    hits: int = field(default=0)

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl
