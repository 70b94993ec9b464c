"""Error taxonomy shared by the pool, the orchestrator and the HTTP layer."""

from enum import Enum
from typing import Any, Dict, Optional, cast

import httpx


class FailureKind(str, Enum):
    QUOTA = "quota"
    INVALID_CREDENTIAL = "invalid_credential"
    TRANSIENT = "transient"
    FATAL = "fatal"


class ProxyError(Exception):
    """Base class for every error this package raises on purpose."""

    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AllCredentialsExhausted(ProxyError):
    """No credential is eligible; recovers on quota rollover or manual reset."""

    retryable = True

    def __init__(self, message: str = "All API keys are exhausted"):
        super().__init__(message)


class InvalidIndex(ProxyError):
    def __init__(self, index: int, pool_size: int):
        super().__init__(f"Invalid key index {index} (pool has {pool_size} keys)")
        self.index = index
        self.pool_size = pool_size


class ApiError(Exception):
    """Raw non-2xx response from the YouTube Data API."""

    def __init__(
        self, status_code: int, message: str, reason: Optional[str] = None
    ):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.reason = reason

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        """Parse the ``{"error": {"code", "message", "errors": [...]}}`` envelope."""
        message = response.reason_phrase or "Upstream error"
        reason = None
        try:
            data = cast(Dict[str, Any], response.json())
        except ValueError:
            return cls(response.status_code, response.text or message)

        error_obj = data.get("error") if isinstance(data, dict) else None
        if isinstance(error_obj, dict):
            message = str(error_obj.get("message") or message)
            details = error_obj.get("errors")
            if isinstance(details, list) and details and isinstance(details[0], dict):
                reason = details[0].get("reason")
        elif isinstance(error_obj, str):
            message = error_obj
        return cls(response.status_code, message, reason)


class UpstreamError(ProxyError):
    """Caller-visible upstream failure, raised once the orchestrator gives up."""

    kind: FailureKind = FailureKind.FATAL

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason

    @classmethod
    def from_exception(cls, exc: BaseException) -> "UpstreamError":
        if isinstance(exc, ApiError):
            return cls(exc.message, status_code=exc.status_code, reason=exc.reason)
        return cls(str(exc) or type(exc).__name__)

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "reason": self.reason,
            "retryable": self.retryable,
        }


class UpstreamFatal(UpstreamError):
    kind = FailureKind.FATAL


class UpstreamTransient(UpstreamError):
    kind = FailureKind.TRANSIENT
    retryable = True


class UpstreamQuotaExceeded(UpstreamError):
    kind = FailureKind.QUOTA
    retryable = True


class UpstreamInvalidCredential(UpstreamError):
    kind = FailureKind.INVALID_CREDENTIAL


UPSTREAM_ERRORS = {
    FailureKind.QUOTA: UpstreamQuotaExceeded,
    FailureKind.INVALID_CREDENTIAL: UpstreamInvalidCredential,
    FailureKind.TRANSIENT: UpstreamTransient,
    FailureKind.FATAL: UpstreamFatal,
}
