"""
Media Gateway OAuth Module.

Per-provider strategy table, the code-exchange coordinator and the
in-memory connection store.
"""

from media_gateway.oauth.models import (
    PlatformAuthConfig,
    PlatformConnection,
    TokenResult,
)

__all__ = [
    "PlatformAuthConfig",
    "PlatformConnection",
    "TokenResult",
    "OAuthCoordinator",
    "ConnectionStore",
    "ProviderStrategy",
    "PROVIDERS",
    "generate_pkce_pair",
]

from media_gateway.oauth.connections import ConnectionStore
from media_gateway.oauth.coordinator import OAuthCoordinator, generate_pkce_pair
from media_gateway.oauth.providers import PROVIDERS, ProviderStrategy
