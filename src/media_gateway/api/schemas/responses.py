"""
Pydantic response schemas for API endpoints.

Response bodies use camelCase field names on the wire.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from media_gateway.downloads.models import MediaInfo

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class InfoResponse(MediaInfo):
    """Response for GET /api/info: the probe result plus a success flag."""

    success: bool = True


class AuthUrlResponse(BaseModel):
    """Response for GET /api/auth/authorize-url/{platform}."""

    success: bool = True
    auth_url: str

    model_config = _CAMEL


class ConnectionStatusResponse(BaseModel):
    """Response for GET /api/auth/check-connection/{platform}."""

    success: bool = True
    is_connected: bool

    model_config = _CAMEL


class ConnectedPlatform(BaseModel):
    """Public view of a platform connection; tokens are never included."""

    id: str
    name: str
    icon: str
    is_connected: bool = True
    expires_at: datetime | None = None

    model_config = _CAMEL


class ConnectResponse(BaseModel):
    """Response for POST /api/auth/connect/{platform}."""

    success: bool = True
    platform: ConnectedPlatform


class SuccessResponse(BaseModel):
    """Bare acknowledgement."""

    success: bool = True


class HealthResponse(BaseModel):
    """Response for GET /health."""

    status: str = Field(..., description="healthy, degraded or unhealthy")
    version: str
    timestamp: str
    uptime_seconds: float
    environment: str
    components: dict[str, str] = Field(default_factory=dict)


class ErrorBody(BaseModel):
    """The `error` member of an error envelope."""

    message: str
    code: str
    request_id: str
    timestamp: str
    details: Any = None
    stack: str | None = None

    model_config = _CAMEL


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint."""

    success: bool = False
    error: ErrorBody
