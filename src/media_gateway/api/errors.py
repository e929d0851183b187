"""
Error envelope and exception handlers.

Every failing request, whatever raised, is answered with the same shape:

    {"success": false,
     "error": {"message", "code", "requestId", "timestamp", ["details", "stack"]}}

`details` and `stack` are only included when detailed errors are enabled
(the default outside production).
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from media_gateway.api.middleware.logging import get_request_id, redact
from media_gateway.api.schemas.exceptions import APIException
from media_gateway.core.exceptions import (
    DownloadFailedError,
    FetchError,
    MediaGatewayError,
    TokenExchangeFailedError,
    UnsupportedPlatformError,
)

logger = logging.getLogger(__name__)

# Domain exception -> (HTTP status, error code); first match wins
DOMAIN_ERROR_STATUS: list[tuple[type[MediaGatewayError], int, str]] = [
    (UnsupportedPlatformError, status.HTTP_400_BAD_REQUEST, "UNSUPPORTED_PLATFORM"),
    (TokenExchangeFailedError, status.HTTP_400_BAD_REQUEST, "TOKEN_EXCHANGE_FAILED"),
    (DownloadFailedError, status.HTTP_500_INTERNAL_SERVER_ERROR, "DOWNLOAD_ERROR"),
    (FetchError, status.HTTP_500_INTERNAL_SERVER_ERROR, "FETCH_ERROR"),
]

_HTTP_STATUS_CODES = {
    400: "VALIDATION_ERROR",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "RATE_LIMIT_EXCEEDED",
}


def domain_error_status(exc: MediaGatewayError) -> tuple[int, str]:
    """Map a domain exception to its HTTP status and error code."""
    for exc_type, status_code, code in DOMAIN_ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code, code
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR"


def _detailed(request: Request) -> bool:
    return bool(getattr(request.app.state, "detailed_errors", False))


def build_error_body(
    request: Request,
    *,
    message: str,
    code: str,
    details: Any = None,
    exc: BaseException | None = None,
) -> dict[str, Any]:
    """Build the error envelope for a request."""
    error: dict[str, Any] = {
        "message": message,
        "code": code,
        "requestId": get_request_id(request),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if _detailed(request):
        if details:
            error["details"] = jsonable_encoder(details)
        if exc is not None:
            error["stack"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
    return {"success": False, "error": error}


def _log_error(request: Request, status_code: int, code: str, exc: BaseException) -> None:
    extra = {
        "request_id": get_request_id(request),
        "method": request.method,
        "path": request.url.path,
        "headers": redact(request.headers),
        "status_code": status_code,
        "code": code,
    }
    if status_code >= 500:
        logger.error(f"Request error: {exc}", extra=extra, exc_info=exc)
    else:
        logger.warning(f"Request rejected: {exc}", extra=extra)


def error_response(request: Request, exc: APIException) -> JSONResponse:
    """Render an APIException as an error envelope response."""
    _log_error(request, exc.status_code, exc.code, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_body(
            request,
            message=exc.message,
            code=exc.code,
            details=exc.detail or getattr(exc, "fields", None),
        ),
        headers=exc.headers or None,
    )


def install_error_handlers(app: FastAPI) -> None:
    """Register the exception handlers that produce error envelopes."""

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
        """Handle API exceptions with proper error responses."""
        return error_response(request, exc)

    @app.exception_handler(MediaGatewayError)
    async def domain_exception_handler(request: Request, exc: MediaGatewayError) -> JSONResponse:
        """Map domain errors onto status codes."""
        status_code, code = domain_error_status(exc)
        _log_error(request, status_code, code, exc)
        return JSONResponse(
            status_code=status_code,
            content=build_error_body(
                request,
                message=exc.message,
                code=code,
                details=exc.details,
                exc=exc if status_code >= 500 else None,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors with field information."""
        fields = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query")),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        message = "Request validation failed"
        if fields:
            first = fields[0]
            message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
        _log_error(request, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", exc)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=build_error_body(
                request, message=message, code="VALIDATION_ERROR", details=fields
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Wrap framework HTTP errors (unknown routes, wrong methods) in the envelope."""
        code = _HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
        _log_error(request, exc.status_code, code, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=build_error_body(request, message=str(exc.detail), code=code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        _log_error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", exc)
        message = str(exc) if _detailed(request) else "Internal server error"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=build_error_body(request, message=message, code="INTERNAL_ERROR", exc=exc),
        )
