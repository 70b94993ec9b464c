import logging
from typing import Any, Dict, Mapping, Optional, cast

import httpx

from ytproxy.errors import ApiError

logger = logging.getLogger(__name__)

ALLOWED_ENDPOINTS = frozenset(
    {"search", "videos", "channels", "playlists", "playlistItems"}
)


def strip_key(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop any caller-supplied ``key`` so only pool credentials reach YouTube."""
    return {k: v for k, v in params.items() if k != "key"}


class YouTubeClient:
    """Thin GET wrapper over the YouTube Data API v3.

    Returns the decoded JSON body on 2xx, raises ``ApiError`` for any other
    status and lets ``httpx`` transport errors propagate.
    """

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    async def call(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]],
        credential: str,
    ) -> Dict[str, Any]:
        query = {**strip_key(params or {}), "key": credential}
        response = await self.http_client.get(f"/{endpoint}", params=query)

        if not response.is_success:
            error = ApiError.from_response(response)
            logger.info(
                "YouTube %s returned %s (reason=%s): %s",
                endpoint,
                error.status_code,
                error.reason,
                error.message,
            )
            raise error

        return cast(Dict[str, Any], response.json())

    def request_for(self, endpoint: str, params: Optional[Mapping[str, Any]] = None):
        """Bind endpoint and params, leaving the credential to the orchestrator."""

        async def send(credential: str) -> Dict[str, Any]:
            return await self.call(endpoint, params, credential)

        return send
