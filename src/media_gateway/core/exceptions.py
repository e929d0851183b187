"""
Media Gateway Exception Hierarchy.

Defines the domain exceptions raised by the download and OAuth components.
The HTTP layer maps them onto status codes; see media_gateway.api.errors.
"""

from typing import Any


class MediaGatewayError(Exception):
    """
    Base exception for all Media Gateway errors.

    All custom exceptions inherit from this class, allowing
    generic catch blocks and consistent error handling.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        """
        Initialize a MediaGatewayError.

        Args:
            message: Human-readable error message
            details: Optional structured data for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation with details."""
        base = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{base} ({details_str})"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class UnsupportedPlatformError(MediaGatewayError):
    """
    Raised when a URL or platform name matches no supported platform.

    Used both by URL classification in the download path and by
    the OAuth coordinator for unknown provider names.
    """

    def __init__(
        self,
        message: str = "Unsupported platform",
        *,
        platform: str | None = None,
        url: str | None = None,
        supported: list[str] | None = None,
    ):
        details: dict[str, Any] = {}
        if platform:
            details["platform"] = platform
        if url:
            details["url"] = url
        if supported:
            details["supported"] = supported

        super().__init__(message, details=details)
        self.platform = platform
        self.url = url
        self.supported = supported or []


class FetchError(MediaGatewayError):
    """
    Errors from the external media-fetching tool.

    Raised when:
    - The tool executable cannot be started
    - The tool exits with a non-zero status
    - The tool output cannot be parsed
    """

    def __init__(
        self,
        message: str,
        *,
        source_url: str | None = None,
        exit_code: int | None = None,
        stderr: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a FetchError.

        Args:
            message: Human-readable error message
            source_url: URL that was being fetched
            exit_code: Exit status of the tool, if it ran
            stderr: Tail of the tool's error output
            details: Optional structured data for debugging
        """
        details = details or {}
        if source_url:
            details["source_url"] = source_url
        if exit_code is not None:
            details["exit_code"] = exit_code
        if stderr:
            details["stderr"] = stderr[-500:]

        super().__init__(message, details=details)
        self.source_url = source_url
        self.exit_code = exit_code
        self.stderr = stderr


class DownloadIncompleteError(FetchError):
    """Raised when the tool finished but the output file is missing or too small."""

    def __init__(
        self,
        message: str = "Downloaded file is incomplete",
        *,
        output_path: str | None = None,
        size_bytes: int | None = None,
        min_bytes: int | None = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {}) or {}
        if output_path:
            details["output_path"] = output_path
        if size_bytes is not None:
            details["size_bytes"] = size_bytes
        if min_bytes is not None:
            details["min_bytes"] = min_bytes
        kwargs["details"] = details

        super().__init__(message, **kwargs)
        self.output_path = output_path
        self.size_bytes = size_bytes
        self.min_bytes = min_bytes


class FetchTimeoutError(FetchError):
    """Raised when the tool exceeds its deadline and is killed."""

    def __init__(
        self,
        message: str = "Fetch timed out",
        *,
        timeout_seconds: float | None = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {}) or {}
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
        kwargs["details"] = details

        super().__init__(message, **kwargs)
        self.timeout_seconds = timeout_seconds


class DownloadFailedError(MediaGatewayError):
    """
    Raised by the orchestrator when a download cannot be completed.

    Partial output has already been removed when this is raised.
    The underlying failure is available as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        platform: str | None = None,
        source_url: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if platform:
            details["platform"] = platform
        if source_url:
            details["source_url"] = source_url

        super().__init__(message, details=details)
        self.platform = platform
        self.source_url = source_url


class TokenExchangeFailedError(MediaGatewayError):
    """
    Errors exchanging an authorization code with an OAuth provider.

    Raised when:
    - The token endpoint cannot be reached
    - The provider responds with a non-success status
    - The response body cannot be parsed or lacks an access token
    """

    def __init__(
        self,
        message: str,
        *,
        platform: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a TokenExchangeFailedError.

        Args:
            message: Human-readable error message
            platform: Provider the exchange was attempted with
            status_code: Upstream HTTP status code if a response arrived
            details: Optional structured data for debugging
        """
        details = details or {}
        if platform:
            details["platform"] = platform
        if status_code:
            details["status_code"] = status_code

        super().__init__(message, details=details)
        self.platform = platform
        self.status_code = status_code


class ConfigurationError(MediaGatewayError):
    """
    Errors in configuration loading or validation.

    Raised when:
    - Required environment variables are not set
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        *,
        env_var: str | None = None,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if env_var:
            details["env_var"] = env_var
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, details=details)
        self.env_var = env_var
        self.config_key = config_key


def format_exception(error: Exception) -> str:
    """
    Format an exception for user-friendly display.

    Args:
        error: The exception to format

    Returns:
        Formatted error message string
    """
    if isinstance(error, MediaGatewayError):
        return str(error)
    return f"{error.__class__.__name__}: {error}"
