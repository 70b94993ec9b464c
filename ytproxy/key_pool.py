"""Credential pool with round-robin rotation and quota tracking."""

import asyncio
import dataclasses
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from ytproxy.config import Config
from ytproxy.errors import AllCredentialsExhausted, InvalidIndex
from ytproxy.models import (
    Credential,
    STATUS_ACTIVE,
    STATUS_DISABLED,
    STATUS_QUOTA_EXCEEDED,
)

logger = logging.getLogger(__name__)


def next_quota_epoch(now: datetime, utc_offset_hours: float = -8.0) -> datetime:
    """Return the next local midnight at a fixed UTC offset, strictly after ``now``.

    The offset is a constant so that daylight saving time and the host
    timezone never shift the reset instant.
    """
    reset_tz = timezone(timedelta(hours=utc_offset_hours))
    local_now = now.astimezone(reset_tz)
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return (midnight + timedelta(days=1)).astimezone(timezone.utc)


class CredentialPool:
    """Owns the configured keys and the index of the current one.

    Every state transition runs under a single lock. Report operations take
    the index of the credential the caller actually used so that two requests
    failing on the same key rotate the pool only once.
    """

    def __init__(
        self,
        api_keys: Sequence[str],
        failure_threshold: int = 3,
        quota_reset_utc_offset_hours: float = -8.0,
    ):
        if not api_keys:
            raise ValueError("Credential pool requires at least one API key")

        self._credentials: List[Credential] = [
            Credential(index=index, value=value)
            for index, value in enumerate(api_keys)
        ]
        self._current_index = 0
        self._lock: asyncio.Lock = asyncio.Lock()
        self.failure_threshold = failure_threshold
        self.quota_reset_utc_offset_hours = quota_reset_utc_offset_hours

        logger.info("Credential pool initialised with %d keys", len(api_keys))

    @classmethod
    def from_config(cls, config: Config) -> "CredentialPool":
        return cls(
            config.api_keys,
            failure_threshold=config.failure_threshold,
            quota_reset_utc_offset_hours=config.quota_reset_utc_offset_hours,
        )

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def current_index(self) -> int:
        return self._current_index

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def current(self) -> Credential:
        """Return a detached copy of the current credential."""
        async with self._lock:
            credential = self._credentials[self._current_index]
            now = self._now()
            if credential.quota_window_elapsed(now):
                self._reactivate(credential)
            credential.last_used_at = now
            return dataclasses.replace(credential)

    async def report_success(self, index: Optional[int] = None) -> None:
        async with self._lock:
            credential = self._resolve(index)
            credential.consecutive_failures = 0
            credential.last_error = None

    async def report_quota_exhausted(
        self, error_info: str, index: Optional[int] = None
    ) -> str:
        """Mark a key as out of quota until the next reset epoch and rotate away."""
        async with self._lock:
            credential = self._resolve(index)
            credential.status = STATUS_QUOTA_EXCEEDED
            credential.last_error = error_info
            credential.quota_reset_at = next_quota_epoch(
                self._now(), self.quota_reset_utc_offset_hours
            )
            logger.warning(
                "API key %d (%s) out of quota until %s",
                credential.index + 1,
                credential.key_prefix(),
                credential.quota_reset_at.isoformat(),
            )
            if credential.index != self._current_index:
                return self._credentials[self._current_index].value
            return self._rotate()

    async def report_failure(self, error_info: str, index: Optional[int] = None) -> str:
        """Count a credential failure; disable and rotate at the threshold."""
        async with self._lock:
            credential = self._resolve(index)
            credential.consecutive_failures += 1
            credential.last_error = error_info

            if credential.consecutive_failures < self.failure_threshold:
                return self._credentials[self._current_index].value

            if credential.status != STATUS_DISABLED:
                credential.status = STATUS_DISABLED
                logger.error(
                    "API key %d (%s) disabled after %d consecutive failures",
                    credential.index + 1,
                    credential.key_prefix(),
                    credential.consecutive_failures,
                )
            if credential.index != self._current_index:
                return self._credentials[self._current_index].value
            return self._rotate()

    async def rotate(self) -> str:
        async with self._lock:
            return self._rotate()

    async def reset_credential(self, index: int) -> None:
        async with self._lock:
            if not 0 <= index < len(self._credentials):
                raise InvalidIndex(index, len(self._credentials))
            self._reactivate(self._credentials[index])
            self._credentials[index].last_error = None
            logger.info("API key %d reset manually", index + 1)

    async def reset_all(self) -> None:
        async with self._lock:
            for credential in self._credentials:
                self._reactivate(credential)
                credential.last_error = None
            logger.info("All API keys reset")

    async def status(self) -> List[Dict[str, object]]:
        async with self._lock:
            return [
                credential.snapshot(credential.index == self._current_index)
                for credential in self._credentials
            ]

    async def active_count(self) -> int:
        async with self._lock:
            now = self._now()
            return sum(
                1
                for credential in self._credentials
                if credential.is_active or credential.quota_window_elapsed(now)
            )

    def _resolve(self, index: Optional[int]) -> Credential:
        if index is None:
            return self._credentials[self._current_index]
        if not 0 <= index < len(self._credentials):
            raise InvalidIndex(index, len(self._credentials))
        return self._credentials[index]

    def _reactivate(self, credential: Credential) -> None:
        if credential.status == STATUS_QUOTA_EXCEEDED:
            logger.info(
                "API key %d reactivated (quota reset)", credential.index + 1
            )
        credential.status = STATUS_ACTIVE
        credential.consecutive_failures = 0
        credential.quota_reset_at = None

    def _rotate(self) -> str:
        """Advance to the next eligible key. Caller must hold the lock."""
        size = len(self._credentials)
        now = self._now()

        for step in range(1, size + 1):
            index = (self._current_index + step) % size
            credential = self._credentials[index]

            if credential.quota_window_elapsed(now):
                self._reactivate(credential)

            if credential.is_active:
                self._current_index = index
                logger.info("Rotated to API key %d/%d", index + 1, size)
                return credential.value

        logger.error("All %d API keys are exhausted", size)
        raise AllCredentialsExhausted()
