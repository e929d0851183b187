"""
Health check endpoints.

Provides health status and container probes for the API.
"""

import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Request, Response, status

from media_gateway.api.schemas.responses import HealthResponse
from media_gateway.version import __version__

router = APIRouter()
logger = logging.getLogger(__name__)

PASS = "pass"
WARN = "warn"
FAIL = "fail"


def check_download_dir(path: Path) -> tuple[str, str]:
    """The artifact directory must exist and be writable."""
    if not path.is_dir():
        return FAIL, "download directory not found"
    if not os.access(path, os.W_OK):
        return FAIL, "download directory not writable"
    return PASS, "download directory writable"


def check_fetcher(fetcher: Any) -> tuple[str, str]:
    """The extraction tool should be on the execution path."""
    is_available = getattr(fetcher, "is_available", None)
    if is_available is None:
        return PASS, f"{type(fetcher).__name__} in use"
    binary = getattr(fetcher, "binary", "fetcher")
    if is_available():
        return PASS, f"{binary} available"
    return WARN, f"{binary} not found on PATH"


def run_health_checks(request: Request) -> dict[str, tuple[str, str]]:
    """Run every component check against the app's components."""
    state = request.app.state
    return {
        "download_dir": check_download_dir(state.orchestrator.download_dir),
        "fetcher": check_fetcher(state.fetcher),
        "artifacts": (PASS, f"{len(state.registry)} tracked"),
        "rate_limiter": (PASS, f"{len(state.limiter)} clients"),
    }


def overall_status(results: dict[str, tuple[str, str]]) -> str:
    """Any failure is unhealthy; any warning is degraded."""
    statuses = {result for result, _ in results.values()}
    if FAIL in statuses:
        return "unhealthy"
    if WARN in statuses:
        return "degraded"
    return "healthy"


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Perform health check on the API and its dependencies.

    Returns status of:
    - Download directory (exists and writable)
    - Extraction tool availability
    - Tracked artifacts and rate limit clients

    Responds 503 when unhealthy.
    """
    results = run_health_checks(request)
    overall = overall_status(results)
    if overall == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning("Health check failed", extra={"checks": results})

    config = request.app.state.config
    return HealthResponse(
        status=overall,
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=round(time.monotonic() - request.app.state.started_at, 3),
        environment=config.environment,
        components={name: f"{result}: {message}" for name, (result, message) in results.items()},
    )


@router.get("/live")
async def liveness() -> dict[str, Any]:
    """
    Liveness probe for container orchestration.

    Always succeeds while the process can serve requests.
    """
    return {"alive": True, "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/ready")
async def readiness(request: Request, response: Response) -> dict[str, Any]:
    """
    Readiness probe for container orchestration.

    Returns 200 when downloads can be written, 503 otherwise.
    """
    result, message = check_download_dir(request.app.state.orchestrator.download_dir)
    ready = result != FAIL
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "ready": ready,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
