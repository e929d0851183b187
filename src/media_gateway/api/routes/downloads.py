"""
Download endpoints.

POST /api/download runs a download and returns where to fetch the file;
GET /api/info describes a URL without downloading it.
"""

import ipaddress
import logging
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Query

from media_gateway.api.dependencies import get_config, get_orchestrator
from media_gateway.api.schemas.exceptions import ForbiddenURLError, ValidationError
from media_gateway.api.schemas.requests import DownloadRequest
from media_gateway.api.schemas.responses import InfoResponse
from media_gateway.core.config import GatewayConfig
from media_gateway.downloads.models import DownloadResult
from media_gateway.downloads.orchestrator import DownloadOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)

_LOCAL_SUFFIXES = (".localhost", ".local", ".internal")


def is_private_host(host: str) -> bool:
    """
    Return True for loopback, private, link-local and local-only hostnames.

    Only literal addresses and well-known local names are recognised;
    hostnames are never resolved.
    """
    host = host.strip("[]").lower()
    if host == "localhost" or host.endswith(_LOCAL_SUFFIXES):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
    )


def validate_media_url(url: str, *, production: bool) -> str:
    """
    Check a caller-supplied URL before it reaches the fetcher.

    Raises:
        ValidationError: If the URL is not an absolute http(s) URL
        ForbiddenURLError: If production and the host is local or private
    """
    url = url.strip()
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        raise ValidationError("Invalid URL format", fields={"url": "malformed URL"})

    if parsed.scheme not in ("http", "https") or not host:
        raise ValidationError("Invalid URL format", fields={"url": "must be an absolute http(s) URL"})

    if production and is_private_host(host):
        logger.warning("Blocked local/private URL", extra={"host": host})
        raise ForbiddenURLError()

    return url


@router.post("/download", response_model=DownloadResult)
async def download(
    body: DownloadRequest,
    config: GatewayConfig = Depends(get_config),
    orchestrator: DownloadOrchestrator = Depends(get_orchestrator),
) -> DownloadResult:
    """
    Download media and publish it for a limited time.

    Request Body:
        url: Media page URL on a supported platform
        type: "video" (default) or "audio"

    Returns:
        DownloadResult with the retrieval path and metadata
    """
    url = validate_media_url(body.url, production=config.is_production)
    return await orchestrator.download(url, body.type)


@router.get("/info", response_model=InfoResponse)
async def info(
    url: str = Query(..., min_length=1, description="Media page URL"),
    config: GatewayConfig = Depends(get_config),
    orchestrator: DownloadOrchestrator = Depends(get_orchestrator),
) -> InfoResponse:
    """
    Describe a media URL without downloading it.

    Full format information is only available for YouTube; other
    platforms return placeholder values.
    """
    url = validate_media_url(url, production=config.is_production)
    media_info = await orchestrator.probe(url)
    return InfoResponse(success=True, **media_info.model_dump())
