"""
Pydantic models for OAuth provider configuration and token results.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class PlatformAuthConfig(BaseModel):
    """Static OAuth client settings for one provider, loaded at startup."""

    client_id: str = Field(default="", description="OAuth client identifier")
    client_secret: str = Field(default="", description="OAuth client secret")
    redirect_uri: str = Field(description="Registered redirect URI")
    scope: list[str] = Field(default_factory=list, description="Requested scopes")

    model_config = {"frozen": True}


class TokenResult(BaseModel):
    """Platform-agnostic view of a token endpoint response."""

    access_token: str = Field(description="Access token issued by the provider")
    refresh_token: str | None = Field(default=None, description="Refresh token, if issued")
    expires_in: int | None = Field(default=None, description="Token lifetime in seconds")


class PlatformConnection(BaseModel):
    """A connected platform account as tracked by the connection store."""

    id: str = Field(description="Platform identifier")
    name: str = Field(description="Display name")
    icon: str = Field(description="Icon path for clients")
    is_connected: bool = Field(default=True)
    expires_at: datetime | None = Field(default=None, description="Access token expiry")
    access_token: str = Field(exclude=True, repr=False)
    refresh_token: str | None = Field(default=None, exclude=True, repr=False)

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True once the access token lifetime has passed."""
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at
