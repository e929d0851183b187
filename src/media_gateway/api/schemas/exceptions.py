"""
Exception classes for API error handling.
"""


class APIException(Exception):
    """
    Base exception for API errors.

    All API exceptions should inherit from this class to ensure
    consistent error envelope formatting.
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "An error occurred"
    detail: str | None = None

    def __init__(
        self,
        message: str | None = None,
        detail: str | None = None,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.message
        self.detail = detail
        self.headers = headers or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(APIException):
    """Exception raised when request validation fails."""

    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Request validation failed"

    def __init__(self, message: str | None = None, fields: dict[str, str] | None = None) -> None:
        self.fields = fields or {}
        super().__init__(message=message)


class NotFoundError(APIException):
    """Exception raised when a requested resource is not found."""

    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class RateLimitExceededError(APIException):
    """Exception raised when a client exceeds its request budget."""

    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    message = "Too many requests, please try again later."


class InternalError(APIException):
    """Exception raised for internal server errors."""

    status_code = 500
    code = "INTERNAL_ERROR"
    message = "Internal server error"


class ForbiddenURLError(ValidationError):
    """Exception raised when a URL points at a local or private host."""

    code = "FORBIDDEN_URL"
    message = "Access to local/private URLs is not allowed"
