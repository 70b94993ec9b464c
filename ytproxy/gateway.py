"""Cached pass-through to the YouTube Data API list endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from ytproxy.cache import make_cache_key
from ytproxy.youtube_client import ALLOWED_ENDPOINTS, strip_key

youtube_router = APIRouter(prefix="/youtube", tags=["youtube"])


@youtube_router.get("/{endpoint}")
async def fetch_resource(request: Request, endpoint: str) -> Dict[str, Any]:
    """Serve ``GET /youtube/{endpoint}`` from cache or through the key pool.

    Query parameters are forwarded as is, minus any caller ``key``.
    """
    if endpoint not in ALLOWED_ENDPOINTS:
        raise HTTPException(status_code=404, detail=f"Unknown endpoint {endpoint}")

    state = request.app.state
    params = strip_key(dict(request.query_params))
    cache_key = make_cache_key(endpoint, params)

    async def fetch() -> Dict[str, Any]:
        return await state.orchestrator.execute(
            state.youtube_client.request_for(endpoint, params),
            timeout=state.config.request_timeout_seconds,
        )

    return await state.cache.get_or_fetch(cache_key, fetch)
