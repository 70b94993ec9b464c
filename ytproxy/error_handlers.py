"""Translate proxy errors into JSON responses."""

import asyncio
import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from ytproxy.errors import (
    AllCredentialsExhausted,
    InvalidIndex,
    UpstreamError,
    UpstreamFatal,
    UpstreamInvalidCredential,
    UpstreamQuotaExceeded,
    UpstreamTransient,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "60"


def error_response(
    status_code: int,
    message: str,
    status: str,
    headers: Optional[Dict[str, str]] = None,
    details: Optional[Dict[str, object]] = None,
) -> JSONResponse:
    body: Dict[str, object] = {
        "code": status_code,
        "message": message,
        "status": status,
    }
    if details:
        body["details"] = details
    return JSONResponse(
        content={"error": body}, status_code=status_code, headers=headers
    )


def upstream_status_code(exc: UpstreamError) -> int:
    if isinstance(exc, UpstreamQuotaExceeded):
        return 429
    if isinstance(exc, UpstreamTransient):
        return 503
    if isinstance(exc, UpstreamInvalidCredential):
        return 502
    if isinstance(exc, UpstreamFatal) and exc.status_code and 400 <= exc.status_code < 500:
        return exc.status_code
    return 502


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AllCredentialsExhausted)
    async def handle_exhausted(
        request: Request, exc: AllCredentialsExhausted
    ) -> JSONResponse:
        logger.error("Request failed, all API keys exhausted: %s", request.url.path)
        return error_response(
            429,
            exc.message,
            "RESOURCE_EXHAUSTED",
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )

    @app.exception_handler(InvalidIndex)
    async def handle_invalid_index(request: Request, exc: InvalidIndex) -> JSONResponse:
        return error_response(404, exc.message, "NOT_FOUND")

    @app.exception_handler(UpstreamError)
    async def handle_upstream(request: Request, exc: UpstreamError) -> JSONResponse:
        status_code = upstream_status_code(exc)
        headers = {"Retry-After": RETRY_AFTER_SECONDS} if exc.retryable else None
        logger.warning(
            "Upstream %s error on %s: %s", exc.kind.value, request.url.path, exc.message
        )
        return error_response(
            status_code,
            exc.message,
            exc.kind.value.upper(),
            headers=headers,
            details=exc.to_dict(),
        )

    async def handle_timeout(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Upstream call timed out on %s", request.url.path)
        return error_response(504, "Upstream request timed out", "DEADLINE_EXCEEDED")

    app.add_exception_handler(asyncio.TimeoutError, handle_timeout)
    app.add_exception_handler(TimeoutError, handle_timeout)
