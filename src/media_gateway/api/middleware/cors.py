"""
CORS (Cross-Origin Resource Sharing) middleware configuration.

Configures CORS headers for the FastAPI application to allow
cross-origin requests from the web and mobile clients.
"""

from typing import Literal

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

DEFAULT_ALLOW_METHODS: list[str] = [
    "GET",
    "POST",
    "OPTIONS",
]

DEFAULT_ALLOW_HEADERS: list[str] = [
    "accept",
    "accept-language",
    "content-language",
    "content-type",
    "authorization",
    "x-request-id",
]

# Browsers only let scripts read these when listed explicitly
DEFAULT_EXPOSE_HEADERS: list[str] = [
    "Content-Disposition",
    "Content-Length",
    "Content-Type",
    "X-Request-ID",
    "X-RateLimit-Limit",
    "X-RateLimit-Remaining",
    "X-RateLimit-Reset",
    "Retry-After",
]


def add_cors_middleware(
    app: FastAPI,
    *,
    allow_origins: list[str] | Literal["*"],
    allow_credentials: bool = True,
    allow_methods: list[str] | None = None,
    allow_headers: list[str] | None = None,
    expose_headers: list[str] | None = None,
    max_age: int = 600,
) -> None:
    """
    Add CORS middleware to the FastAPI application.

    Args:
        app: FastAPI application instance
        allow_origins: List of allowed origins or "*" for all
        allow_credentials: Allow credentials in requests
        allow_methods: List of allowed HTTP methods
        allow_headers: List of allowed headers
        expose_headers: Headers to expose to browsers
        max_age: Cache time for preflight requests (seconds)
    """
    if allow_origins == "*" or "*" in allow_origins:
        # Wildcard origins cannot be combined with credentials
        allow_origins = ["*"]
        allow_credentials = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=allow_methods or DEFAULT_ALLOW_METHODS,
        allow_headers=allow_headers or DEFAULT_ALLOW_HEADERS,
        expose_headers=expose_headers or DEFAULT_EXPOSE_HEADERS,
        max_age=max_age,
    )
