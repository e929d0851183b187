"""Tests for environment-driven configuration."""

import os
from pathlib import Path

import pytest

from media_gateway.core.config import (
    DEFAULT_CORS_ORIGINS,
    GatewayConfig,
    load_platform_configs,
)

_ENV_PREFIXES = ("MG_", "INSTAGRAM_", "YOUTUBE_", "TIKTOK_", "TWITTER_")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from an environment without gateway settings."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)


class TestGatewayConfig:
    """Tests for GatewayConfig.from_env."""

    def test_defaults(self):
        config = GatewayConfig.from_env()

        assert config.environment == "development"
        assert config.is_production is False
        assert config.port == 2500
        assert config.log_level == "INFO"
        assert config.cors_origins == DEFAULT_CORS_ORIGINS
        assert config.trust_proxy is False
        assert config.detailed_errors is True
        assert config.download_dir is None
        assert config.public_prefix == "/temp"
        assert config.artifact_ttl_seconds == 900
        assert config.min_file_size == 1000
        assert config.rate_limit_max == 100
        assert config.rate_limit_window_seconds == 900

    def test_production_defaults(self, monkeypatch):
        """Production hides error detail, trusts the proxy and logs less."""
        monkeypatch.setenv("MG_ENVIRONMENT", "Production")

        config = GatewayConfig.from_env()

        assert config.is_production is True
        assert config.detailed_errors is False
        assert config.trust_proxy is True
        assert config.log_level == "WARNING"

    def test_overrides(self, monkeypatch, temp_dir: Path):
        monkeypatch.setenv("MG_PORT", "8080")
        monkeypatch.setenv("MG_CORS_ORIGINS", "https://a.example, https://b.example,")
        monkeypatch.setenv("MG_DOWNLOAD_DIR", str(temp_dir))
        monkeypatch.setenv("MG_PUBLIC_PREFIX", "files/")
        monkeypatch.setenv("MG_RATE_LIMIT_MAX", "5")
        monkeypatch.setenv("MG_DETAILED_ERRORS", "no")
        monkeypatch.setenv("MG_FETCHER_BINARY", "/opt/yt-dlp")

        config = GatewayConfig.from_env()

        assert config.port == 8080
        assert config.cors_origins == ["https://a.example", "https://b.example"]
        assert config.download_dir == temp_dir
        assert config.public_prefix == "/files"
        assert config.rate_limit_max == 5
        assert config.detailed_errors is False
        assert config.fetcher_binary == "/opt/yt-dlp"

    def test_invalid_integer_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv("MG_ARTIFACT_TTL", "soon")

        with caplog.at_level("WARNING", logger="media_gateway.core.config"):
            config = GatewayConfig.from_env()

        assert config.artifact_ttl_seconds == 900
        assert "MG_ARTIFACT_TTL" in caplog.text


class TestPlatformConfigs:
    """Tests for load_platform_configs."""

    def test_every_provider_is_present(self):
        configs = load_platform_configs()

        assert set(configs) == {"instagram", "youtube", "tiktok", "twitter"}
        assert configs["youtube"].client_id == ""
        assert configs["youtube"].redirect_uri == "http://localhost:5173/auth/callback/youtube"
        assert configs["twitter"].scope == ["tweet.read", "users.read", "offline.access"]

    def test_credentials_from_environment(self, monkeypatch):
        monkeypatch.setenv("TIKTOK_CLIENT_ID", "key-1")
        monkeypatch.setenv("TIKTOK_CLIENT_SECRET", "secret-1")
        monkeypatch.setenv("TIKTOK_REDIRECT_URI", "https://app.example.com/cb")
        monkeypatch.setenv("TIKTOK_SCOPE", "user.info.basic video.list")

        tiktok = load_platform_configs()["tiktok"]

        assert tiktok.client_id == "key-1"
        assert tiktok.client_secret == "secret-1"
        assert tiktok.redirect_uri == "https://app.example.com/cb"
        assert tiktok.scope == ["user.info.basic", "video.list"]
