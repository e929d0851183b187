"""
Runtime configuration.

All settings are read once from the environment at startup. Invalid values
fall back to defaults with a warning rather than aborting startup.

Environment Variables:
    MG_ENVIRONMENT: "development" (default) or "production"
    MG_HOST / MG_PORT: Bind address for `media-gateway serve` (0.0.0.0:2500)
    MG_LOG_LEVEL: Logging level (INFO, WARNING in production)
    MG_CORS_ORIGINS: Comma-separated list of allowed origins
    MG_TRUST_PROXY: Honour X-Forwarded-For / X-Real-IP (default: production only)
    MG_DOWNLOAD_DIR: Artifact directory (default: fresh temporary directory)
    MG_PUBLIC_PREFIX: URL prefix artifacts are served under ("/temp")
    MG_ARTIFACT_TTL: Artifact lifetime in seconds (900)
    MG_SWEEP_INTERVAL: Seconds between artifact sweeps (900)
    MG_MIN_FILE_SIZE: Minimum accepted download size in bytes (1000)
    MG_MAX_RESOLUTION: Video height cap for format selection (1080)
    MG_FETCHER_BINARY: Media-fetching executable ("yt-dlp")
    MG_FETCH_TIMEOUT: Seconds before a fetch is killed (300)
    MG_MAX_CONCURRENT_FETCHES: Concurrent fetch subprocesses (4)
    MG_RATE_LIMIT_MAX: Requests per window per client (100)
    MG_RATE_LIMIT_WINDOW: Window length in seconds (900)
    MG_RATE_LIMIT_PURGE_INTERVAL: Seconds between stale-entry purges (300)
    MG_DETAILED_ERRORS: Include details/stack in error envelopes
    <PLATFORM>_CLIENT_ID / _CLIENT_SECRET / _REDIRECT_URI: OAuth client settings
"""

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from media_gateway.oauth.models import PlatformAuthConfig

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8081",
    "http://localhost:19006",
]

DEFAULT_FRONTEND_CALLBACK = "http://localhost:5173/auth/callback"

# Scopes requested from each provider unless overridden
DEFAULT_SCOPES: dict[str, list[str]] = {
    "instagram": ["user_profile", "user_media"],
    "youtube": ["https://www.googleapis.com/auth/youtube.readonly"],
    "tiktok": ["user.info.basic"],
    "twitter": ["tweet.read", "users.read", "offline.access"],
}


def _env_truthy(value: str | None, *, default: bool = False) -> bool:
    """Parse common truthy/falsey strings from environment variables."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    """Parse an integer environment variable, warning on bad input."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid {name}: {value}, using default {default}")
        return default


class GatewayConfig(BaseModel):
    """Configuration for the Media Gateway service."""

    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 2500
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    trust_proxy: bool = False
    detailed_errors: bool = True

    download_dir: Path | None = None
    public_prefix: str = "/temp"
    artifact_ttl_seconds: int = Field(default=15 * 60, ge=1)
    sweep_interval_seconds: int = Field(default=15 * 60, ge=1)
    min_file_size: int = Field(default=1000, ge=0)
    max_resolution: int = Field(default=1080, ge=144)
    fetcher_binary: str = "yt-dlp"
    fetch_timeout_seconds: float = Field(default=300.0, gt=0)
    max_concurrent_fetches: int = Field(default=4, ge=1)

    rate_limit_max: int = Field(default=100, ge=1)
    rate_limit_window_seconds: int = Field(default=15 * 60, ge=1)
    rate_limit_purge_interval_seconds: int = Field(default=5 * 60, ge=1)

    platforms: dict[str, PlatformAuthConfig] = Field(default_factory=dict)

    @property
    def is_production(self) -> bool:
        """Return True when running with production hardening."""
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """Load configuration from environment."""
        environment = os.getenv("MG_ENVIRONMENT", "development").strip().lower()
        production = environment == "production"

        origins_raw = os.getenv("MG_CORS_ORIGINS")
        cors_origins = (
            [o.strip() for o in origins_raw.split(",") if o.strip()]
            if origins_raw
            else list(DEFAULT_CORS_ORIGINS)
        )

        download_dir = os.getenv("MG_DOWNLOAD_DIR")

        config = cls(
            environment=environment,
            host=os.getenv("MG_HOST", "0.0.0.0"),
            port=_env_int("MG_PORT", 2500),
            log_level=os.getenv("MG_LOG_LEVEL", "WARNING" if production else "INFO").upper(),
            cors_origins=cors_origins,
            trust_proxy=_env_truthy(os.getenv("MG_TRUST_PROXY"), default=production),
            detailed_errors=_env_truthy(os.getenv("MG_DETAILED_ERRORS"), default=not production),
            download_dir=Path(download_dir) if download_dir else None,
            public_prefix="/" + os.getenv("MG_PUBLIC_PREFIX", "/temp").strip("/"),
            artifact_ttl_seconds=_env_int("MG_ARTIFACT_TTL", 15 * 60),
            sweep_interval_seconds=_env_int("MG_SWEEP_INTERVAL", 15 * 60),
            min_file_size=_env_int("MG_MIN_FILE_SIZE", 1000),
            max_resolution=_env_int("MG_MAX_RESOLUTION", 1080),
            fetcher_binary=os.getenv("MG_FETCHER_BINARY", "yt-dlp"),
            fetch_timeout_seconds=_env_int("MG_FETCH_TIMEOUT", 300),
            max_concurrent_fetches=_env_int("MG_MAX_CONCURRENT_FETCHES", 4),
            rate_limit_max=_env_int("MG_RATE_LIMIT_MAX", 100),
            rate_limit_window_seconds=_env_int("MG_RATE_LIMIT_WINDOW", 15 * 60),
            rate_limit_purge_interval_seconds=_env_int("MG_RATE_LIMIT_PURGE_INTERVAL", 5 * 60),
            platforms=load_platform_configs(),
        )

        logger.info(
            "Configuration loaded",
            extra={
                "environment": config.environment,
                "download_dir": str(config.download_dir) if config.download_dir else "<temp>",
                "rate_limit": f"{config.rate_limit_max}/{config.rate_limit_window_seconds}s",
                "configured_platforms": [
                    name for name, cfg in config.platforms.items() if cfg.client_id
                ],
            },
        )
        return config


def load_platform_configs() -> dict[str, PlatformAuthConfig]:
    """
    Build OAuth client settings for every known provider from the environment.

    Providers without credentials are still present (with empty client IDs)
    so authorize URLs can be generated during development.
    """
    configs = {}
    for platform, scopes in DEFAULT_SCOPES.items():
        prefix = platform.upper()
        scope_raw = os.getenv(f"{prefix}_SCOPE")
        configs[platform] = PlatformAuthConfig(
            client_id=os.getenv(f"{prefix}_CLIENT_ID", ""),
            client_secret=os.getenv(f"{prefix}_CLIENT_SECRET", ""),
            redirect_uri=os.getenv(
                f"{prefix}_REDIRECT_URI", f"{DEFAULT_FRONTEND_CALLBACK}/{platform}"
            ),
            scope=scope_raw.split() if scope_raw else list(scopes),
        )
    return configs
