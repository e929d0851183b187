"""API integration tests for the Media Gateway FastAPI application.

These tests use FastAPI TestClient with an in-process fetcher and a mock
token endpoint, so no external tools or network access are needed.
"""

import shutil
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi import status
from fastapi.testclient import TestClient

from media_gateway.api.app import create_app
from media_gateway.core.config import GatewayConfig
from media_gateway.core.exceptions import ConfigurationError, FetchError

from conftest import StubFetcher

YOUTUBE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def _make_client(config: GatewayConfig, fetcher: StubFetcher, handler, **kwargs) -> TestClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TestClient(create_app(config, fetcher=fetcher, http_client=http_client), **kwargs)


def _assert_envelope(response, status_code: int, code: str) -> dict:
    assert response.status_code == status_code
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == code
    assert body["error"]["requestId"]
    assert body["error"]["timestamp"]
    return body["error"]


# =============================================================================
# Root and Health Endpoints
# =============================================================================


class TestRootAndHealth:
    """Tests for the root and probe endpoints."""

    def test_root(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["name"] == "Media Gateway API"
        assert data["status"] == "operational"
        assert data["endpoints"]["download"] == "POST /api/download"

    def test_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["environment"] == "development"
        assert data["uptime_seconds"] >= 0
        assert data["components"]["download_dir"].startswith("pass")

    def test_health_unhealthy_without_download_dir(self, client: TestClient, download_dir: Path):
        shutil.rmtree(download_dir)

        response = client.get("/health")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["status"] == "unhealthy"

    def test_live(self, client: TestClient):
        response = client.get("/live")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["alive"] is True

    def test_ready(self, client: TestClient, download_dir: Path):
        assert client.get("/ready").json()["ready"] is True

        shutil.rmtree(download_dir)
        response = client.get("/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["ready"] is False

    def test_unusable_download_dir_rejected_at_startup(
        self, gateway_config: GatewayConfig, stub_fetcher: StubFetcher, temp_dir: Path
    ):
        blocker = temp_dir / "not-a-directory"
        blocker.write_text("occupied")
        config = gateway_config.model_copy(update={"download_dir": blocker})

        with pytest.raises(ConfigurationError) as exc_info:
            create_app(config, fetcher=stub_fetcher)

        assert exc_info.value.env_var == "MG_DOWNLOAD_DIR"
        assert exc_info.value.details["path"] == str(blocker)

    def test_unknown_route_uses_envelope(self, client: TestClient):
        _assert_envelope(client.get("/api/nope"), 404, "NOT_FOUND")

    def test_wrong_method_uses_envelope(self, client: TestClient):
        _assert_envelope(client.get("/api/download"), 405, "METHOD_NOT_ALLOWED")


# =============================================================================
# Download Endpoints
# =============================================================================


class TestDownloadEndpoints:
    """Tests for /api/download and file retrieval."""

    def test_download_and_retrieve(self, client: TestClient, stub_fetcher: StubFetcher):
        """A completed download is retrievable at its retrieval path."""
        response = client.post("/api/download", json={"url": YOUTUBE_URL, "type": "video"})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["retrievalPath"] == f"/temp/{data['filename']}"
        assert data["filename"].startswith("youtube_")
        assert data["title"] == "Never Gonna Give You Up"
        assert data["channel"] == "Rick Astley"
        assert data["hashtags"] == ["music", "80s"]
        assert data["length"] == "3:33"
        assert data["ageRestriction"] is False

        file_response = client.get(data["retrievalPath"])

        assert file_response.status_code == status.HTTP_200_OK
        assert file_response.content == stub_fetcher.payload
        assert file_response.headers["content-type"] == "video/mp4"
        assert "attachment" in file_response.headers["content-disposition"]
        assert data["filename"] in file_response.headers["content-disposition"]
        assert "Content-Disposition" in file_response.headers["access-control-expose-headers"]

    def test_audio_download(self, client: TestClient):
        response = client.post(
            "/api/download", json={"url": "https://youtu.be/dQw4w9WgXcQ", "type": "audio"}
        )

        assert response.status_code == status.HTTP_200_OK
        filename = response.json()["filename"]
        assert filename.endswith(".m4a")
        assert client.get(f"/temp/{filename}").headers["content-type"] == "audio/mp4"

    def test_unsupported_platform(self, client: TestClient, stub_fetcher: StubFetcher):
        response = client.post("/api/download", json={"url": "https://vimeo.com/123", "type": "video"})

        error = _assert_envelope(response, 400, "UNSUPPORTED_PLATFORM")
        assert "Supported platforms" in error["message"]
        assert stub_fetcher.calls == []

    def test_missing_url(self, client: TestClient):
        error = _assert_envelope(client.post("/api/download", json={}), 400, "VALIDATION_ERROR")
        assert error["message"].startswith("url:")
        assert error["details"][0]["field"] == "url"

    def test_missing_media_type(self, client: TestClient, stub_fetcher: StubFetcher):
        response = client.post("/api/download", json={"url": YOUTUBE_URL})

        error = _assert_envelope(response, 400, "VALIDATION_ERROR")
        assert error["details"][0]["field"] == "type"
        assert stub_fetcher.calls == []

    def test_non_http_url(self, client: TestClient):
        response = client.post("/api/download", json={"url": "ftp://youtube.com/x", "type": "video"})
        _assert_envelope(response, 400, "VALIDATION_ERROR")

    def test_invalid_media_type(self, client: TestClient):
        response = client.post("/api/download", json={"url": YOUTUBE_URL, "type": "gif"})
        error = _assert_envelope(response, 400, "VALIDATION_ERROR")
        assert error["details"][0]["field"] == "type"

    def test_download_failure(self, client: TestClient, stub_fetcher: StubFetcher, download_dir: Path):
        """A failed fetch is a 500 and leaves no files behind."""
        stub_fetcher.error = FetchError("yt-dlp exited with status 1", exit_code=1)

        response = client.post("/api/download", json={"url": "https://www.instagram.com/p/abc/", "type": "video"})

        error = _assert_envelope(response, 500, "DOWNLOAD_ERROR")
        assert error["message"] == "Failed to download Instagram content"
        assert error["details"]["platform"] == "instagram"
        assert "stack" in error
        assert list(download_dir.iterdir()) == []

    def test_untracked_file_is_not_served(self, client: TestClient, download_dir: Path):
        (download_dir / "youtube_1.mp4").write_bytes(b"\x00" * 2048)

        _assert_envelope(client.get("/temp/youtube_1.mp4"), 404, "NOT_FOUND")

    def test_hidden_file_is_not_served(self, client: TestClient):
        _assert_envelope(client.get("/temp/.env"), 404, "NOT_FOUND")

    def test_deleted_file_is_not_served(self, client: TestClient, download_dir: Path):
        data = client.post("/api/download", json={"url": YOUTUBE_URL, "type": "video"}).json()
        (download_dir / data["filename"]).unlink()

        error = _assert_envelope(client.get(data["retrievalPath"]), 404, "NOT_FOUND")
        assert error["message"] == "File not found or expired"

    def test_shutdown_removes_artifacts(
        self, gateway_config: GatewayConfig, stub_fetcher: StubFetcher, token_handler, download_dir: Path
    ):
        with _make_client(gateway_config, stub_fetcher, token_handler) as test_client:
            filename = test_client.post("/api/download", json={"url": YOUTUBE_URL, "type": "video"}).json()["filename"]
            assert (download_dir / filename).exists()

        assert not (download_dir / filename).exists()


class TestInfoEndpoint:
    """Tests for GET /api/info."""

    def test_placeholder_for_secondary_platform(self, client: TestClient, stub_fetcher: StubFetcher):
        response = client.get("/api/info", params={"url": "https://www.tiktok.com/@u/video/1"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "success": True,
            "title": "TikTok Post",
            "duration": "N/A",
            "thumbnail": "",
            "author": "TikTok User",
            "formats": [],
        }
        assert stub_fetcher.probed == []

    def test_youtube_is_probed(self, client: TestClient, stub_fetcher: StubFetcher):
        stub_fetcher.probe_info = {
            "title": "Probed",
            "duration": 213,
            "uploader": "Rick Astley",
            "formats": [{"format_note": "720p", "ext": "mp4", "acodec": "mp4a", "vcodec": "avc1"}],
        }

        response = client.get("/api/info", params={"url": YOUTUBE_URL})

        data = response.json()
        assert data["success"] is True
        assert data["title"] == "Probed"
        assert data["duration"] == "3:33"
        assert data["formats"][0]["mimeType"] == "mp4"
        assert data["formats"][0]["hasVideo"] is True

    def test_probe_failure(self, client: TestClient, stub_fetcher: StubFetcher):
        stub_fetcher.error = FetchError("Could not parse media information")

        response = client.get("/api/info", params={"url": YOUTUBE_URL})

        _assert_envelope(response, 500, "FETCH_ERROR")

    def test_missing_url_parameter(self, client: TestClient):
        error = _assert_envelope(client.get("/api/info"), 400, "VALIDATION_ERROR")
        assert error["details"][0]["field"] == "url"

    def test_unsupported_url(self, client: TestClient):
        response = client.get("/api/info", params={"url": "https://example.com/v"})
        _assert_envelope(response, 400, "UNSUPPORTED_PLATFORM")


# =============================================================================
# Auth Endpoints
# =============================================================================


class TestAuthEndpoints:
    """Tests for /api/auth endpoints."""

    def test_authorize_url(self, client: TestClient):
        response = client.get("/api/auth/authorize-url/youtube")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["authUrl"].startswith("https://accounts.google.com/o/oauth2/v2/auth?")

    def test_authorize_url_unknown_platform(self, client: TestClient):
        response = client.get("/api/auth/authorize-url/myspace")
        error = _assert_envelope(response, 400, "UNSUPPORTED_PLATFORM")
        assert error["message"] == "Unsupported platform: myspace"

    def test_connect_check_disconnect(self, client: TestClient, token_requests):
        """A connected platform reports connected until it is disconnected."""
        assert client.get("/api/auth/check-connection/youtube").json()["isConnected"] is False

        response = client.post("/api/auth/connect/youtube", json={"code": "good-code"})

        assert response.status_code == status.HTTP_200_OK
        platform = response.json()["platform"]
        assert platform["id"] == "youtube"
        assert platform["name"] == "YouTube"
        assert platform["icon"] == "/youtube-icon.png"
        assert platform["isConnected"] is True
        assert platform["expiresAt"]
        assert "accessToken" not in platform
        assert "provider-access-token" not in response.text
        assert len(token_requests) == 1

        assert client.get("/api/auth/check-connection/youtube").json()["isConnected"] is True

        assert client.post("/api/auth/disconnect/youtube").json() == {"success": True}
        assert client.get("/api/auth/check-connection/youtube").json()["isConnected"] is False

    def test_connect_with_rejected_code(self, client: TestClient):
        response = client.post("/api/auth/connect/instagram", json={"code": "bad-code"})

        error = _assert_envelope(response, 400, "TOKEN_EXCHANGE_FAILED")
        assert error["message"] == "Failed to get Instagram access token"
        assert error["details"]["status_code"] == 400

    def test_connect_twitter_with_state(self, client: TestClient, token_requests):
        auth_url = client.get("/api/auth/authorize-url/twitter").json()["authUrl"]
        state = parse_qs(urlparse(auth_url).query)["state"][0]

        response = client.post("/api/auth/connect/twitter", json={"code": "c", "state": state})

        assert response.status_code == status.HTTP_200_OK
        assert b"code_verifier=" in token_requests[0].content

    def test_connect_twitter_without_state(self, client: TestClient, token_requests):
        response = client.post("/api/auth/connect/twitter", json={"code": "c"})

        _assert_envelope(response, 400, "TOKEN_EXCHANGE_FAILED")
        assert token_requests == []

    def test_connect_requires_code(self, client: TestClient):
        _assert_envelope(client.post("/api/auth/connect/youtube", json={}), 400, "VALIDATION_ERROR")

    def test_callback_success_redirects(self, client: TestClient):
        response = client.get(
            "/api/auth/callback/youtube", params={"code": "good-code"}, follow_redirects=False
        )

        assert response.status_code == status.HTTP_307_TEMPORARY_REDIRECT
        location = response.headers["location"]
        assert location.startswith("https://app.example.com/auth/callback/youtube?")
        assert parse_qs(urlparse(location).query) == {"success": ["true"], "platform": ["youtube"]}
        assert client.get("/api/auth/check-connection/youtube").json()["isConnected"] is True

    def test_callback_with_provider_error(self, client: TestClient, token_requests):
        response = client.get(
            "/api/auth/callback/tiktok", params={"error": "access_denied"}, follow_redirects=False
        )

        assert response.status_code == status.HTTP_307_TEMPORARY_REDIRECT
        query = parse_qs(urlparse(response.headers["location"]).query)
        assert query == {"error": ["access_denied"]}
        assert token_requests == []

    def test_callback_with_failed_exchange(self, client: TestClient):
        response = client.get(
            "/api/auth/callback/instagram", params={"code": "bad-code"}, follow_redirects=False
        )

        query = parse_qs(urlparse(response.headers["location"]).query)
        assert query == {"error": ["Failed to get Instagram access token"]}


# =============================================================================
# Middleware behaviour
# =============================================================================


class TestMiddlewareIntegration:
    """Tests for request IDs, headers, rate limiting and error detail."""

    def test_request_id_is_echoed(self, client: TestClient):
        response = client.get("/api/nope", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert response.json()["error"]["requestId"] == "req-123"

    def test_request_id_is_generated(self, client: TestClient):
        response = client.get("/")
        assert len(response.headers["X-Request-ID"]) == 32
        assert "X-Process-Time" in response.headers

    def test_security_headers(self, client: TestClient):
        response = client.get("/")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Strict-Transport-Security" not in response.headers

    def test_cors_allows_configured_origin(self, client: TestClient):
        response = client.get("/", headers={"Origin": "http://localhost:3000"})
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_rate_limit(self, gateway_config: GatewayConfig, stub_fetcher, token_handler):
        config = gateway_config.model_copy(update={"rate_limit_max": 2})

        with _make_client(config, stub_fetcher, token_handler) as test_client:
            for _ in range(2):
                response = test_client.get("/api/auth/check-connection/youtube")
                assert response.status_code == status.HTTP_200_OK
            for _ in range(3):
                assert test_client.get("/health").status_code == status.HTTP_200_OK

            response = test_client.get("/api/auth/check-connection/youtube")

        _assert_envelope(response, 429, "RATE_LIMIT_EXCEEDED")
        assert int(response.headers["Retry-After"]) >= 1
        assert response.headers["X-RateLimit-Limit"] == "2"

    def test_details_hidden_when_disabled(self, gateway_config: GatewayConfig, stub_fetcher, token_handler):
        config = gateway_config.model_copy(update={"detailed_errors": False})
        stub_fetcher.error = FetchError("yt-dlp exited with status 1", exit_code=1)

        with _make_client(config, stub_fetcher, token_handler) as test_client:
            response = test_client.post("/api/download", json={"url": YOUTUBE_URL, "type": "video"})

        error = _assert_envelope(response, 500, "DOWNLOAD_ERROR")
        assert "details" not in error
        assert "stack" not in error

    def test_unexpected_error_is_masked(self, gateway_config: GatewayConfig, stub_fetcher, token_handler):
        config = gateway_config.model_copy(update={"detailed_errors": False})
        stub_fetcher.error = RuntimeError("database password is hunter2")

        with _make_client(
            config, stub_fetcher, token_handler, raise_server_exceptions=False
        ) as test_client:
            response = test_client.get("/api/info", params={"url": YOUTUBE_URL})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        body = response.json()
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert body["error"]["message"] == "Internal server error"
        assert "hunter2" not in response.text

    @pytest.mark.parametrize(
        "url",
        [
            "http://127.0.0.1/video",
            "http://localhost:8080/x",
            "http://192.168.1.10/x",
            "http://[::1]/x",
            "http://printer.local/x",
        ],
    )
    def test_production_blocks_private_urls(
        self, gateway_config: GatewayConfig, stub_fetcher, token_handler, url: str
    ):
        config = gateway_config.model_copy(update={"environment": "production"})

        with _make_client(config, stub_fetcher, token_handler) as test_client:
            response = test_client.post("/api/download", json={"url": url, "type": "video"})
            hsts = test_client.get("/").headers.get("Strict-Transport-Security")

        _assert_envelope(response, 400, "FORBIDDEN_URL")
        assert stub_fetcher.calls == []
        assert hsts is not None
