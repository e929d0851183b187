"""
Middleware for the Media Gateway API.

This module contains all middleware components for request/response processing.
"""

from media_gateway.api.middleware.cors import add_cors_middleware
from media_gateway.api.middleware.logging import (
    RequestLoggingMiddleware,
    get_request_id,
    redact,
)
from media_gateway.api.middleware.rate_limit import (
    FixedWindowRateLimiter,
    RateLimitDecision,
    RateLimitMiddleware,
    get_client_ip,
)
from media_gateway.api.middleware.security import SecurityHeadersMiddleware

__all__ = [
    "add_cors_middleware",
    "RequestLoggingMiddleware",
    "get_request_id",
    "redact",
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RateLimitMiddleware",
    "get_client_ip",
    "SecurityHeadersMiddleware",
]
