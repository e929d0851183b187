"""
OAuth provider strategy table.

Every provider difference the coordinator has to honour is described here
as data: endpoints, the name of the client-id parameter, how scopes are
joined, extra authorize parameters, whether state/PKCE are used, how the
token request is encoded and authenticated, and where the token fields sit
in the response. Adding a provider is a new table entry, not a new branch.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class TokenTransport(str, Enum):
    """Encoding of the token request body."""

    FORM = "form"
    JSON = "json"


class ClientAuth(str, Enum):
    """Where client credentials are sent on the token request."""

    BODY = "body"
    BASIC = "basic"


@dataclass(frozen=True)
class ProviderStrategy:
    """Static description of one OAuth provider."""

    name: str
    display_name: str
    authorize_url: str
    token_url: str
    client_id_param: str = "client_id"
    scope_delimiter: str = " "
    extra_authorize_params: Mapping[str, str] = field(default_factory=dict)
    use_state: bool = False
    use_pkce: bool = False
    token_transport: TokenTransport = TokenTransport.FORM
    client_auth: ClientAuth = ClientAuth.BODY
    response_envelope: str | None = None

    @property
    def icon(self) -> str:
        """Icon path clients use for this provider."""
        return f"/{self.name}-icon.png"


PROVIDERS: Mapping[str, ProviderStrategy] = MappingProxyType(
    {
        "instagram": ProviderStrategy(
            name="instagram",
            display_name="Instagram",
            authorize_url="https://api.instagram.com/oauth/authorize",
            token_url="https://api.instagram.com/oauth/access_token",
            scope_delimiter=",",
        ),
        "youtube": ProviderStrategy(
            name="youtube",
            display_name="YouTube",
            authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
            token_url="https://oauth2.googleapis.com/token",
            extra_authorize_params={"access_type": "offline", "prompt": "consent"},
        ),
        "tiktok": ProviderStrategy(
            name="tiktok",
            display_name="TikTok",
            authorize_url="https://www.tiktok.com/auth/authorize/",
            token_url="https://open-api.tiktok.com/oauth/access_token/",
            client_id_param="client_key",
            scope_delimiter=",",
            use_state=True,
            response_envelope="data",
        ),
        "twitter": ProviderStrategy(
            name="twitter",
            display_name="Twitter",
            authorize_url="https://twitter.com/i/oauth2/authorize",
            token_url="https://api.twitter.com/2/oauth2/token",
            use_state=True,
            use_pkce=True,
            client_auth=ClientAuth.BASIC,
        ),
    }
)


def get_provider(
    platform: str, providers: Mapping[str, ProviderStrategy] = PROVIDERS
) -> ProviderStrategy | None:
    """Look up a provider by case-insensitive name."""
    return providers.get(platform.strip().lower())
