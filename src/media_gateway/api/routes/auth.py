"""
Platform authorization endpoints.

Authorize URLs, code exchange, connection status and the provider
redirect callback. Provider specifics live in media_gateway.oauth.
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from media_gateway.api.dependencies import get_connections, get_oauth
from media_gateway.api.schemas.requests import ConnectRequest
from media_gateway.api.schemas.responses import (
    AuthUrlResponse,
    ConnectedPlatform,
    ConnectionStatusResponse,
    ConnectResponse,
    SuccessResponse,
)
from media_gateway.core.exceptions import TokenExchangeFailedError
from media_gateway.oauth.connections import ConnectionStore
from media_gateway.oauth.coordinator import OAuthCoordinator

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/authorize-url/{platform}", response_model=AuthUrlResponse)
async def authorize_url(
    platform: str,
    oauth: OAuthCoordinator = Depends(get_oauth),
) -> AuthUrlResponse:
    """Return the provider URL the user should be sent to."""
    return AuthUrlResponse(auth_url=oauth.build_authorize_url(platform))


@router.get("/check-connection/{platform}", response_model=ConnectionStatusResponse)
async def check_connection(
    platform: str,
    oauth: OAuthCoordinator = Depends(get_oauth),
    connections: ConnectionStore = Depends(get_connections),
) -> ConnectionStatusResponse:
    """Report whether a platform currently holds an unexpired token."""
    provider = oauth.provider(platform)
    return ConnectionStatusResponse(is_connected=connections.is_connected(provider.name))


@router.post("/connect/{platform}", response_model=ConnectResponse)
async def connect(
    platform: str,
    body: ConnectRequest,
    oauth: OAuthCoordinator = Depends(get_oauth),
    connections: ConnectionStore = Depends(get_connections),
) -> ConnectResponse:
    """Exchange an authorization code and store the resulting connection."""
    provider = oauth.provider(platform)
    token = await oauth.exchange_code(provider.name, body.code, state=body.state)
    connection = connections.connect(provider, token)
    return ConnectResponse(platform=ConnectedPlatform(**connection.model_dump()))


@router.post("/disconnect/{platform}", response_model=SuccessResponse)
async def disconnect(
    platform: str,
    oauth: OAuthCoordinator = Depends(get_oauth),
    connections: ConnectionStore = Depends(get_connections),
) -> SuccessResponse:
    """Forget a platform's tokens."""
    provider = oauth.provider(platform)
    connections.disconnect(provider.name)
    return SuccessResponse()


@router.get("/callback/{platform}")
async def callback(
    platform: str,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    oauth: OAuthCoordinator = Depends(get_oauth),
    connections: ConnectionStore = Depends(get_connections),
) -> RedirectResponse:
    """
    Complete an authorization started with an authorize URL.

    Always answers with a redirect to the platform's configured redirect
    URI, carrying either `success=true&platform=<name>` or `error=<message>`.
    """
    provider = oauth.provider(platform)
    target = oauth.configs[provider.name].redirect_uri if provider.name in oauth.configs else "/"

    if error or not code:
        message = error or "Missing authorization code"
        logger.warning(
            "Authorization callback without code",
            extra={"platform": provider.name, "reason": message},
        )
        return RedirectResponse(_with_query(target, {"error": message}))

    try:
        token = await oauth.exchange_code(provider.name, code, state=state)
    except TokenExchangeFailedError as e:
        return RedirectResponse(_with_query(target, {"error": e.message}))

    connections.connect(provider, token)
    return RedirectResponse(_with_query(target, {"success": "true", "platform": provider.name}))


def _with_query(url: str, params: dict[str, str]) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"
