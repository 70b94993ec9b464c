"""Map upstream failures onto the retry/rotation policy."""

from typing import Optional

import httpx

from ytproxy.errors import ApiError, FailureKind

QUOTA_STATUS_CODES = frozenset({403})
TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

QUOTA_REASONS = frozenset({"quotaExceeded", "dailyLimitExceeded"})
INVALID_KEY_REASONS = frozenset({"keyInvalid", "keyExpired", "badRequest.keyInvalid"})

QUOTA_TOKENS = ("quota", "limit", "exceeded")
INVALID_KEY_TOKENS = ("api key", "unregistered", "key invalid", "key expired")


def _contains_any(text: str, tokens) -> bool:
    lowered = text.lower()
    return any(token in lowered for token in tokens)


def classify(error: BaseException) -> FailureKind:
    """Classify an exception raised by a remote call.

    Quota is checked first: a 429 "Rate Limit Exceeded" rotates the key
    instead of backing off on it, and a message such as "API key daily limit
    exceeded" never falls through to invalid-credential.
    """
    if isinstance(error, httpx.TransportError):
        return FailureKind.TRANSIENT

    if not isinstance(error, ApiError):
        return FailureKind.FATAL

    reason: Optional[str] = error.reason
    message = error.message or ""

    if (
        error.status_code in QUOTA_STATUS_CODES
        or reason in QUOTA_REASONS
        or _contains_any(message, QUOTA_TOKENS)
    ):
        return FailureKind.QUOTA
    if error.status_code in TRANSIENT_STATUS_CODES:
        return FailureKind.TRANSIENT
    if reason in INVALID_KEY_REASONS or _contains_any(message, INVALID_KEY_TOKENS):
        return FailureKind.INVALID_CREDENTIAL
    return FailureKind.FATAL
