"""Pytest configuration and fixtures."""

import json
import tempfile
from pathlib import Path
from typing import Any, Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from media_gateway.api.app import create_app
from media_gateway.core.config import DEFAULT_SCOPES, GatewayConfig
from media_gateway.downloads.fetcher import sidecar_path_for
from media_gateway.downloads.models import FetchResult
from media_gateway.oauth.models import PlatformAuthConfig

SAMPLE_INFO: dict[str, Any] = {
    "title": "Never Gonna Give You Up",
    "thumbnail": "https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg",
    "uploader": "Rick Astley",
    "tags": ["music", "80s"],
    "duration_string": "3:33",
    "age_limit": 0,
}


class StubFetcher:
    """
    In-process fetcher double.

    Writes `payload` to the output path (plus a sidecar when `info` is set)
    or, when `error` is set, leaves partial output behind and raises it.
    """

    def __init__(self) -> None:
        self.payload: bytes = b"\x00" * 4096
        self.info: dict[str, Any] | None = dict(SAMPLE_INFO)
        self.error: Exception | None = None
        self.probe_info: dict[str, Any] = {}
        self.calls: list[tuple[str, str, Path]] = []
        self.probed: list[str] = []

    async def fetch(
        self,
        source_url: str,
        format_selector: str,
        output_path: Path,
        *,
        write_info_json: bool = True,
    ) -> FetchResult:
        self.calls.append((source_url, format_selector, output_path))
        sidecar = sidecar_path_for(output_path)

        if self.error is not None:
            output_path.write_bytes(b"partial")
            sidecar.write_text("{}")
            raise self.error

        output_path.write_bytes(self.payload)
        if self.info is not None:
            sidecar.write_text(json.dumps(self.info))
            return FetchResult(output_path, len(self.payload), sidecar)
        return FetchResult(output_path, len(self.payload))

    async def probe(self, source_url: str) -> dict[str, Any]:
        self.probed.append(source_url)
        if self.error is not None:
            raise self.error
        return self.probe_info


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def download_dir(temp_dir: Path) -> Path:
    """Directory downloads are written to."""
    path = temp_dir / "downloads"
    path.mkdir()
    return path


@pytest.fixture
def stub_fetcher() -> StubFetcher:
    """A fetcher that succeeds with a 4 KiB file and sample metadata."""
    return StubFetcher()


@pytest.fixture
def platform_configs() -> dict[str, PlatformAuthConfig]:
    """OAuth client settings for every provider."""
    return {
        name: PlatformAuthConfig(
            client_id=f"{name}-client-id",
            client_secret=f"{name}-client-secret",
            redirect_uri=f"https://app.example.com/auth/callback/{name}",
            scope=list(scopes),
        )
        for name, scopes in DEFAULT_SCOPES.items()
    }


@pytest.fixture
def gateway_config(download_dir: Path, platform_configs) -> GatewayConfig:
    """Development configuration pointing at the temporary download directory."""
    return GatewayConfig(
        download_dir=download_dir,
        detailed_errors=True,
        rate_limit_max=1000,
        platforms=platform_configs,
    )


@pytest.fixture
def token_requests() -> list[httpx.Request]:
    """Token requests seen by the mock provider transport."""
    return []


@pytest.fixture
def token_handler(token_requests) -> Callable[[httpx.Request], httpx.Response]:
    """Mock provider token endpoint that issues a token for any code except 'bad-code'."""

    def handler(request: httpx.Request) -> httpx.Response:
        token_requests.append(request)
        if b"code=bad-code" in request.content:
            return httpx.Response(400, json={"error": "invalid_grant"})
        return httpx.Response(
            200,
            json={"access_token": "provider-access-token", "refresh_token": "r1", "expires_in": 3600},
        )

    return handler


@pytest.fixture
def client(
    gateway_config: GatewayConfig, stub_fetcher: StubFetcher, token_handler
) -> Generator[TestClient, None, None]:
    """TestClient for an app wired to the stub fetcher and mock token endpoint."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(token_handler))
    app = create_app(gateway_config, fetcher=stub_fetcher, http_client=http_client)
    with TestClient(app) as test_client:
        yield test_client
