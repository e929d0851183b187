"""
In-memory store of connected platform accounts.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from media_gateway.oauth.models import PlatformConnection, TokenResult
from media_gateway.oauth.providers import ProviderStrategy

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionStore:
    """
    Tracks which platforms currently hold a usable token.

    Single-process only; connections are lost on restart.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._connections: dict[str, PlatformConnection] = {}

    def connect(self, provider: ProviderStrategy, token: TokenResult) -> PlatformConnection:
        """Record a successful token exchange, replacing any earlier connection."""
        expires_at = None
        if token.expires_in:
            expires_at = self._clock() + timedelta(seconds=token.expires_in)

        connection = PlatformConnection(
            id=provider.name,
            name=provider.display_name,
            icon=provider.icon,
            is_connected=True,
            expires_at=expires_at,
            access_token=token.access_token,
            refresh_token=token.refresh_token,
        )
        self._connections[provider.name] = connection
        logger.info(
            "Platform connected",
            extra={"platform": provider.name, "expires_at": str(expires_at) if expires_at else None},
        )
        return connection

    def get(self, platform: str) -> PlatformConnection | None:
        """Return the live connection for a platform, dropping it if expired."""
        connection = self._connections.get(platform)
        if connection is not None and connection.is_expired(self._clock()):
            del self._connections[platform]
            logger.info("Platform connection expired", extra={"platform": platform})
            return None
        return connection

    def is_connected(self, platform: str) -> bool:
        return self.get(platform) is not None

    def disconnect(self, platform: str) -> bool:
        """Forget a platform's tokens. Returns True if it was connected."""
        removed = self._connections.pop(platform, None) is not None
        if removed:
            logger.info("Platform disconnected", extra={"platform": platform})
        return removed

    def list_connections(self) -> list[PlatformConnection]:
        """Return all live connections."""
        return [c for c in (self.get(p) for p in list(self._connections)) if c is not None]
