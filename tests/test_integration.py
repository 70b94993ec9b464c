"""Integration tests - full stack with a mocked YouTube Data API."""

import asyncio

import httpx
import pytest
import respx
from httpx import ASGITransport, AsyncClient, Response

from ytproxy.cache import ResponseCache
from ytproxy.config import Config
from ytproxy.key_pool import CredentialPool
from ytproxy.main import app as main_app
from ytproxy.orchestrator import RequestOrchestrator
from ytproxy.youtube_client import YouTubeClient

BASE_URL = "https://www.googleapis.com/youtube/v3"

QUOTA_BODY = {
    "error": {
        "code": 403,
        "message": "The request cannot be completed because you have exceeded your quota.",
        "errors": [{"reason": "quotaExceeded", "domain": "youtube.quota"}],
    }
}


def install_state(api_keys, **overrides) -> httpx.AsyncClient:
    config = Config(
        api_keys=api_keys,
        quota_backoff_seconds=0,
        transient_base_delay_seconds=0,
        **overrides,
    )
    http_client = httpx.AsyncClient(base_url=config.youtube_base_url)
    key_pool = CredentialPool.from_config(config)

    main_app.state.config = config
    main_app.state.http_client = http_client
    main_app.state.key_pool = key_pool
    main_app.state.orchestrator = RequestOrchestrator.from_config(key_pool, config)
    main_app.state.cache = ResponseCache.from_config(config)
    main_app.state.youtube_client = YouTubeClient(http_client)
    return http_client


def key_sequence(route) -> list:
    return [call.request.url.params["key"] for call in route.calls]


@pytest.mark.asyncio
async def test_quota_error_switches_keys():
    http_client = install_state(["test_key_1", "test_key_2", "test_key_3"])

    async with AsyncClient(
        transport=ASGITransport(app=main_app), base_url="http://test"
    ) as client:
        with respx.mock:
            route = respx.get(f"{BASE_URL}/videos").mock(
                side_effect=[
                    Response(403, json=QUOTA_BODY),
                    Response(200, json={"items": [{"id": "abc"}]}),
                ]
            )

            response = await client.get("/youtube/videos", params={"id": "abc"})

            assert response.status_code == 200
            assert response.json()["items"][0]["id"] == "abc"
            assert key_sequence(route) == ["test_key_1", "test_key_2"]

        status = (await client.get("/admin/keys/status")).json()
        assert status["keys"][0]["status"] == "quota_exceeded"
        assert status["keys"][0]["quota_reset_at"] is not None
        assert status["keys"][1]["is_current"] is True

    await http_client.aclose()


@pytest.mark.asyncio
async def test_transient_errors_retry_same_key():
    http_client = install_state(["test_key_1", "test_key_2"])

    async with AsyncClient(
        transport=ASGITransport(app=main_app), base_url="http://test"
    ) as client:
        with respx.mock:
            route = respx.get(f"{BASE_URL}/search").mock(
                side_effect=[
                    Response(503, json={"error": {"code": 503, "message": "Backend Error"}}),
                    httpx.ConnectError("connection reset"),
                    Response(200, json={"items": []}),
                ]
            )

            response = await client.get("/youtube/search", params={"q": "lofi"})

            assert response.status_code == 200
            assert key_sequence(route) == ["test_key_1"] * 3

    await http_client.aclose()


@pytest.mark.asyncio
async def test_transient_errors_exhaust_retry_budget():
    http_client = install_state(["test_key_1"])

    async with AsyncClient(
        transport=ASGITransport(app=main_app), base_url="http://test"
    ) as client:
        with respx.mock:
            route = respx.get(f"{BASE_URL}/channels").mock(
                return_value=Response(503, json={"error": {"code": 503, "message": "Backend Error"}})
            )

            response = await client.get("/youtube/channels", params={"id": "UC1"})

            assert response.status_code == 503
            assert response.headers["Retry-After"] == "60"
            assert response.json()["error"]["status"] == "TRANSIENT"
            assert route.call_count == 3

    await http_client.aclose()


@pytest.mark.asyncio
async def test_invalid_key_is_disabled_after_three_failures():
    http_client = install_state(["bad_key", "good_key"], max_attempts=4)

    def respond(request: httpx.Request) -> Response:
        if request.url.params["key"] == "bad_key":
            return Response(
                400,
                json={
                    "error": {
                        "code": 400,
                        "message": "API key not valid. Please pass a valid API key.",
                        "errors": [{"reason": "keyInvalid"}],
                    }
                },
            )
        return Response(200, json={"items": ["ok"]})

    async with AsyncClient(
        transport=ASGITransport(app=main_app), base_url="http://test"
    ) as client:
        with respx.mock:
            route = respx.get(f"{BASE_URL}/playlists").mock(side_effect=respond)

            response = await client.get("/youtube/playlists", params={"id": "PL1"})

            assert response.status_code == 200
            assert key_sequence(route) == ["bad_key"] * 3 + ["good_key"]

        status = (await client.get("/admin/keys/status")).json()
        assert status["keys"][0]["status"] == "disabled"

        reset = await client.post("/admin/keys/reset/1")
        assert reset.status_code == 200
        status = (await client.get("/admin/keys/status")).json()
        assert status["keys"][0]["status"] == "active"

    await http_client.aclose()


@pytest.mark.asyncio
async def test_concurrent_requests_share_the_pool():
    http_client = install_state(["test_key_1", "test_key_2", "test_key_3"])

    async with AsyncClient(
        transport=ASGITransport(app=main_app), base_url="http://test"
    ) as client:
        with respx.mock:
            respx.get(f"{BASE_URL}/videos").mock(
                return_value=Response(200, json={"items": []})
            )

            responses = await asyncio.gather(
                *[
                    client.get("/youtube/videos", params={"id": f"v{i}"})
                    for i in range(20)
                ]
            )

        assert all(response.status_code == 200 for response in responses)
        stats = (await client.get("/admin/cache/stats")).json()
        assert stats["size"] == 20

        status = (await client.get("/admin/keys/status")).json()
        assert status["current_key"]["number"] == 1
        assert all(key["consecutive_failures"] == 0 for key in status["keys"])

    await http_client.aclose()
