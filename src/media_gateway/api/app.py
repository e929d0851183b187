"""
FastAPI Application Setup.

Main application factory for the Media Gateway REST API.
"""

import logging
import tempfile
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI

from media_gateway.api.errors import install_error_handlers
from media_gateway.api.middleware.cors import add_cors_middleware
from media_gateway.api.middleware.logging import RequestLoggingMiddleware
from media_gateway.api.middleware.rate_limit import (
    DEFAULT_EXEMPT_PATHS,
    FixedWindowRateLimiter,
    RateLimitMiddleware,
)
from media_gateway.api.middleware.security import SecurityHeadersMiddleware
from media_gateway.api.routes import auth, downloads, files, health
from media_gateway.api.schemas.responses import ErrorResponse
from media_gateway.core.config import GatewayConfig
from media_gateway.core.exceptions import ConfigurationError
from media_gateway.downloads.fetcher import MediaFetcher, YtDlpFetcher
from media_gateway.downloads.orchestrator import DownloadOrchestrator
from media_gateway.downloads.platforms import FormatPolicy
from media_gateway.downloads.registry import ArtifactRegistry
from media_gateway.oauth.connections import ConnectionStore
from media_gateway.oauth.coordinator import OAuthCoordinator
from media_gateway.version import __version__

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    500: {"model": ErrorResponse, "description": "Internal error"},
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.

    Starts the artifact sweep and rate limit purge on startup. On shutdown
    the background tasks are cancelled, remaining artifacts are deleted
    and the OAuth HTTP client is closed.
    """
    state = app.state
    logger.info("Media Gateway API starting up...")
    logger.info(f"Version: {__version__}")
    logger.info(
        "Serving downloads",
        extra={
            "download_dir": str(state.orchestrator.download_dir),
            "public_prefix": state.config.public_prefix,
        },
    )

    state.registry.start()
    state.limiter.start()

    try:
        yield
    finally:
        logger.info("Media Gateway API shutting down...")
        await state.registry.stop()
        await state.limiter.stop()
        for artifact in state.registry.list_artifacts():
            state.registry.remove(artifact.id)
        await state.oauth.aclose()


def create_app(
    config: GatewayConfig | None = None,
    *,
    fetcher: MediaFetcher | None = None,
    http_client: httpx.AsyncClient | None = None,
    title: str = "Media Gateway API",
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Service configuration (default: GatewayConfig.from_env())
        fetcher: Media fetcher (default: YtDlpFetcher from config)
        http_client: HTTP client for OAuth token requests
        title: Application title for OpenAPI docs

    Returns:
        Configured FastAPI application instance

    Raises:
        ConfigurationError: If the download directory cannot be created
    """
    config = config or GatewayConfig.from_env()

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    download_dir = config.download_dir or Path(tempfile.mkdtemp(prefix="media-gateway-"))
    try:
        download_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(
            f"Download directory {download_dir} is not usable: {e}",
            env_var="MG_DOWNLOAD_DIR",
            details={"path": str(download_dir)},
        ) from e

    fetcher = fetcher or YtDlpFetcher(
        config.fetcher_binary,
        timeout_seconds=config.fetch_timeout_seconds,
        min_file_size=config.min_file_size,
    )
    registry = ArtifactRegistry(
        ttl_seconds=config.artifact_ttl_seconds,
        sweep_interval_seconds=config.sweep_interval_seconds,
    )
    orchestrator = DownloadOrchestrator(
        fetcher,
        registry,
        download_dir,
        policy=FormatPolicy(max_height=config.max_resolution),
        public_prefix=config.public_prefix,
        max_concurrent_fetches=config.max_concurrent_fetches,
    )
    limiter = FixedWindowRateLimiter(
        config.rate_limit_max,
        config.rate_limit_window_seconds,
        purge_interval_seconds=config.rate_limit_purge_interval_seconds,
    )

    app = FastAPI(
        title=title,
        description="Media download and platform authorization API",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.detailed_errors = config.detailed_errors
    app.state.started_at = time.monotonic()
    app.state.fetcher = fetcher
    app.state.registry = registry
    app.state.orchestrator = orchestrator
    app.state.limiter = limiter
    app.state.oauth = OAuthCoordinator(config.platforms, http_client=http_client)
    app.state.connections = ConnectionStore()

    # Middleware runs outermost-last: logging wraps CORS, security headers and rate limiting
    app.add_middleware(
        RateLimitMiddleware,
        limiter=limiter,
        exempt_paths=DEFAULT_EXEMPT_PATHS,
        trust_proxy=config.trust_proxy,
    )
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=config.is_production)
    add_cors_middleware(app, allow_origins=config.cors_origins)
    app.add_middleware(RequestLoggingMiddleware)

    install_error_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(
        downloads.router,
        prefix="/api",
        tags=["Downloads"],
        responses=ERROR_RESPONSES,
    )
    app.include_router(
        files.router,
        prefix=config.public_prefix,
        tags=["Files"],
    )
    app.include_router(
        auth.router,
        prefix="/api/auth",
        tags=["Authentication"],
        responses=ERROR_RESPONSES,
    )

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, object]:
        """Root endpoint with API information."""
        return {
            "name": title,
            "version": __version__,
            "status": "operational",
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "download": "POST /api/download",
                "info": "GET /api/info",
                "files": f"GET {config.public_prefix}/{{filename}}",
                "auth": "/api/auth",
            },
        }

    logger.info(
        "Application configured",
        extra={
            "environment": config.environment,
            "rate_limit": f"{config.rate_limit_max}/{config.rate_limit_window_seconds}s",
            "cors_origins": config.cors_origins,
        },
    )
    return app
