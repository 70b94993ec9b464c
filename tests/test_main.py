import pytest
import respx
from fastapi.testclient import TestClient
from httpx import Response

from ytproxy.main import app as main_app

SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"


@pytest.fixture(autouse=True)
def set_env(monkeypatch):
    monkeypatch.delenv("YOUTUBE_API_KEY", raising=False)
    monkeypatch.setenv("YOUTUBE_API_KEYS", "test_key_1,test_key_2")
    monkeypatch.setenv("QUOTA_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("TRANSIENT_BASE_DELAY_SECONDS", "0")


@pytest.fixture
def client():
    with TestClient(main_app) as test_client:
        yield test_client


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["keys_available"] == 2
    assert data["total_keys"] == 2


@respx.mock
def test_youtube_route_forwards_and_injects_key(client):
    youtube_mock = respx.get(SEARCH_URL).mock(
        return_value=Response(200, json={"items": [{"id": {"videoId": "abc"}}]})
    )

    response = client.get("/youtube/search", params={"q": "lofi", "key": "caller"})

    assert response.status_code == 200
    assert response.json()["items"][0]["id"]["videoId"] == "abc"
    request = youtube_mock.calls[0].request
    assert request.url.params["key"] == "test_key_1"
    assert request.url.params["q"] == "lofi"


@respx.mock
def test_youtube_route_serves_repeat_from_cache(client):
    youtube_mock = respx.get(SEARCH_URL).mock(
        return_value=Response(200, json={"items": []})
    )

    client.get("/youtube/search", params={"q": "lofi", "maxResults": "5"})
    client.get("/youtube/search", params={"maxResults": "5", "q": "lofi"})

    assert youtube_mock.call_count == 1


def test_youtube_route_unknown_endpoint(client):
    response = client.get("/youtube/comments")
    assert response.status_code == 404


@respx.mock
def test_youtube_route_fatal_error_keeps_upstream_status(client):
    respx.get("https://www.googleapis.com/youtube/v3/videos").mock(
        return_value=Response(
            404,
            json={"error": {"code": 404, "message": "Video not found", "errors": [{"reason": "videoNotFound"}]}},
        )
    )

    response = client.get("/youtube/videos", params={"id": "missing"})

    assert response.status_code == 404
    data = response.json()
    assert data["error"]["status"] == "FATAL"
    assert data["error"]["details"]["reason"] == "videoNotFound"
    assert "Retry-After" not in response.headers


@respx.mock
def test_youtube_route_all_keys_exhausted(client):
    respx.get(SEARCH_URL).mock(
        return_value=Response(
            403,
            json={"error": {"code": 403, "message": "quota exceeded", "errors": [{"reason": "quotaExceeded"}]}},
        )
    )

    response = client.get("/youtube/search", params={"q": "lofi"})

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"
    assert response.json()["error"]["status"] == "RESOURCE_EXHAUSTED"
    assert client.app.state.cache.stats()["size"] == 0


def test_lifespan_closes_http_client():
    with TestClient(main_app) as test_client:
        http_client = test_client.app.state.http_client
        assert not http_client.is_closed

    assert http_client.is_closed
