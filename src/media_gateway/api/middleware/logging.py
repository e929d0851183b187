"""
Request logging middleware.

Logs all incoming HTTP requests with timing information, assigns each
request an ID, and redacts credentials from anything it logs.
"""

import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Mapping

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

# Header names that are always redacted
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "set-cookie", "proxy-authorization"})

# Any key containing one of these fragments is redacted
SENSITIVE_KEY_FRAGMENTS = ("password", "token", "secret", "key")


def is_sensitive_key(name: str) -> bool:
    """Return True if a header or field name may carry a credential."""
    lowered = name.lower()
    return lowered in SENSITIVE_HEADERS or any(f in lowered for f in SENSITIVE_KEY_FRAGMENTS)


def redact(values: Mapping[str, Any]) -> dict[str, Any]:
    """
    Copy a mapping with sensitive values replaced.

    Args:
        values: Headers, query parameters or any flat mapping

    Returns:
        New dict safe to log
    """
    return {k: (REDACTED if is_sensitive_key(k) else v) for k, v in values.items()}


def get_request_id(request: Request) -> str:
    """Return the ID assigned to a request by RequestLoggingMiddleware."""
    request_id = getattr(request.state, "request_id", None)
    return request_id or request.headers.get("x-request-id") or "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests with timing information.

    Logs:
    - Request method and path
    - Client IP address
    - Request ID (taken from X-Request-ID or generated)
    - Redacted request headers at DEBUG level
    - Response status code
    - Request processing time
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        logger_instance: logging.Logger | None = None,
        skip_paths: set[str] | None = None,
        skip_health_check: bool = True,
    ) -> None:
        """
        Initialize the logging middleware.

        Args:
            app: ASGI application
            logger_instance: Custom logger instance
            skip_paths: Paths to skip logging for
            skip_health_check: Skip logging for health and probe endpoints
        """
        super().__init__(app)
        self._logger = logger_instance or logger
        self._skip_paths = set(skip_paths or ())
        if skip_health_check:
            self._skip_paths.update({"/health", "/live", "/ready"})

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """
        Process request and log details.

        Args:
            request: Incoming request
            call_next: Next middleware/route handler

        Returns:
            Response from downstream handlers
        """
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id

        if request.url.path in self._skip_paths:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        start_time = time.time()
        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        self._logger.info(
            "Request started",
            extra={
                "event": "request_started",
                "method": method,
                "path": path,
                "client_ip": client_ip,
                "request_id": request_id,
            },
        )
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                "Request headers",
                extra={"request_id": request_id, "headers": redact(request.headers)},
            )

        try:
            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000

            self._logger.info(
                "Request completed",
                extra={
                    "event": "request_completed",
                    "method": method,
                    "path": path,
                    "client_ip": client_ip,
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )

            response.headers["X-Process-Time"] = f"{duration_ms:.2f}"
            response.headers["X-Request-ID"] = request_id

            return response

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000

            self._logger.error(
                "Request failed",
                extra={
                    "event": "request_failed",
                    "method": method,
                    "path": path,
                    "client_ip": client_ip,
                    "request_id": request_id,
                    "error": str(e),
                    "duration_ms": round(duration_ms, 2),
                },
                exc_info=True,
            )
            raise
