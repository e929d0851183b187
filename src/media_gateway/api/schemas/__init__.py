"""
Pydantic schemas for API request/response validation.

This module exports all request and response schemas used by the API.
"""

from media_gateway.api.schemas.exceptions import (
    APIException,
    ForbiddenURLError,
    InternalError,
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
)
from media_gateway.api.schemas.requests import ConnectRequest, DownloadRequest
from media_gateway.api.schemas.responses import (
    AuthUrlResponse,
    ConnectedPlatform,
    ConnectionStatusResponse,
    ConnectResponse,
    ErrorBody,
    ErrorResponse,
    HealthResponse,
    InfoResponse,
    SuccessResponse,
)

__all__ = [
    # Exceptions
    "APIException",
    "ForbiddenURLError",
    "InternalError",
    "NotFoundError",
    "RateLimitExceededError",
    "ValidationError",
    # Requests
    "ConnectRequest",
    "DownloadRequest",
    # Responses
    "AuthUrlResponse",
    "ConnectedPlatform",
    "ConnectionStatusResponse",
    "ConnectResponse",
    "ErrorBody",
    "ErrorResponse",
    "HealthResponse",
    "InfoResponse",
    "SuccessResponse",
]
