"""
Media Gateway Core Module.

Provides configuration and the domain exception hierarchy.
"""

__all__ = [
    "GatewayConfig",
    # Exceptions
    "MediaGatewayError",
    "UnsupportedPlatformError",
    "FetchError",
    "DownloadIncompleteError",
    "FetchTimeoutError",
    "DownloadFailedError",
    "TokenExchangeFailedError",
    "ConfigurationError",
]

from media_gateway.core.config import GatewayConfig
from media_gateway.core.exceptions import (
    ConfigurationError,
    DownloadFailedError,
    DownloadIncompleteError,
    FetchError,
    FetchTimeoutError,
    MediaGatewayError,
    TokenExchangeFailedError,
    UnsupportedPlatformError,
)
