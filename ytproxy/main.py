"""FastAPI application for the YouTube API key pool proxy."""

import logging
from contextlib import asynccontextmanager
from typing import Dict

import httpx
from fastapi import FastAPI, Request

from ytproxy.admin import admin_router
from ytproxy.cache import ResponseCache
from ytproxy.config import load_config
from ytproxy.error_handlers import register_exception_handlers
from ytproxy.gateway import youtube_router
from ytproxy.key_pool import CredentialPool
from ytproxy.orchestrator import RequestOrchestrator
from ytproxy.youtube_client import YouTubeClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle: startup and shutdown."""
    config = load_config()

    logging.basicConfig(level=getattr(logging, config.log_level))

    http_client = httpx.AsyncClient(
        base_url=config.youtube_base_url,
        timeout=httpx.Timeout(10.0, read=config.request_timeout_seconds),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
    )

    key_pool = CredentialPool.from_config(config)

    app.state.config = config
    app.state.http_client = http_client
    app.state.key_pool = key_pool
    app.state.orchestrator = RequestOrchestrator.from_config(key_pool, config)
    app.state.cache = ResponseCache.from_config(config)
    app.state.youtube_client = YouTubeClient(http_client)

    logger.info("YouTube proxy started with %d keys", len(config.api_keys))

    yield

    await http_client.aclose()
    logger.info("YouTube proxy stopped")


app = FastAPI(title="YouTube API Key Pool Proxy", lifespan=lifespan)

register_exception_handlers(app)
app.include_router(admin_router)
app.include_router(youtube_router)


@app.get("/health")
async def health_check(request: Request) -> Dict[str, object]:
    """Health check endpoint with key pool status."""
    key_pool = request.app.state.key_pool
    return {
        "status": "healthy",
        "keys_available": await key_pool.active_count(),
        "total_keys": len(key_pool),
    }
