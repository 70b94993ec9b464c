"""Drive a single upstream call through the credential pool."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ytproxy.classifier import classify
from ytproxy.config import Config
from ytproxy.errors import UPSTREAM_ERRORS, ApiError, FailureKind, UpstreamFatal
from ytproxy.key_pool import CredentialPool

logger = logging.getLogger(__name__)

T = TypeVar("T")

RemoteRequest = Callable[[str], Awaitable[T]]
Classifier = Callable[[BaseException], FailureKind]
Sleep = Callable[[float], Awaitable[None]]


class RequestOrchestrator:
    """Retry, rotate or give up according to the classified failure.

    Flow per attempt:
    1. Take the pool's current credential
    2. Invoke the request with the credential value
    3. On success report it and return
    4. On failure classify it:
       - QUOTA: mark the key exhausted (rotates), short fixed backoff, retry
       - INVALID_CREDENTIAL: count a failure (rotates at threshold), backoff, retry
       - TRANSIENT: exponential backoff on the same key, retry
       - FATAL: raise immediately
    5. After ``max_attempts`` raise the error for the last failure kind

    ``AllCredentialsExhausted`` raised by the pool always propagates as is.
    """

    def __init__(
        self,
        pool: CredentialPool,
        max_attempts: int = 3,
        quota_backoff_seconds: float = 1.0,
        transient_base_delay_seconds: float = 1.0,
        classifier: Classifier = classify,
        sleep: Sleep = asyncio.sleep,
    ):
        self.pool = pool
        self.max_attempts = max_attempts
        self.quota_backoff_seconds = quota_backoff_seconds
        self.transient_base_delay_seconds = transient_base_delay_seconds
        self._classify = classifier
        self._sleep = sleep

    @classmethod
    def from_config(cls, pool: CredentialPool, config: Config) -> "RequestOrchestrator":
        return cls(
            pool,
            max_attempts=config.max_attempts,
            quota_backoff_seconds=config.quota_backoff_seconds,
            transient_base_delay_seconds=config.transient_base_delay_seconds,
        )

    def backoff_delay(self, kind: FailureKind, attempt: int) -> float:
        if kind == FailureKind.TRANSIENT:
            return self.transient_base_delay_seconds * (2 ** attempt)
        return self.quota_backoff_seconds

    async def execute(
        self,
        request: RemoteRequest,
        max_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        """Run ``request`` with credential rotation and retries.

        Args:
            request: Async callable receiving the credential value.
            max_attempts: Overrides the configured attempt budget.
            timeout: Upper bound in seconds for the whole call, backoff included.

        Raises:
            AllCredentialsExhausted: If no key is eligible.
            UpstreamError: The subclass matching the last failure kind.
            TimeoutError: If ``timeout`` elapses first.
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        if timeout is None:
            return await self._run(request, attempts)
        return await asyncio.wait_for(self._run(request, attempts), timeout)

    async def _run(self, request: RemoteRequest, attempts: int):
        for attempt in range(attempts):
            credential = await self.pool.current()
            try:
                result = await request(credential.value)
            except Exception as exc:
                kind = self._classify(exc)
                if kind == FailureKind.FATAL:
                    if isinstance(exc, ApiError):
                        raise UpstreamFatal.from_exception(exc) from exc
                    raise

                logger.warning(
                    "Upstream %s failure (key=%s, attempt=%d/%d): %s",
                    kind.value,
                    credential.key_prefix(),
                    attempt + 1,
                    attempts,
                    exc,
                )

                if kind == FailureKind.QUOTA:
                    await self.pool.report_quota_exhausted(
                        _describe(exc), index=credential.index
                    )
                elif kind == FailureKind.INVALID_CREDENTIAL:
                    await self.pool.report_failure(
                        _describe(exc), index=credential.index
                    )

                if attempt + 1 >= attempts:
                    raise UPSTREAM_ERRORS[kind].from_exception(exc) from exc

                await self._sleep(self.backoff_delay(kind, attempt))
                continue

            await self.pool.report_success(credential.index)
            return result

        # Unreachable: the loop either returns or raises on its last attempt.
        raise RuntimeError("retry loop exited without a result")


def _describe(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    return str(message or exc or type(exc).__name__)
