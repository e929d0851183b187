"""
Pydantic request schemas for API endpoints.

All incoming API requests are validated against these schemas.
"""

from pydantic import BaseModel, Field, field_validator

from media_gateway.downloads.models import MediaType


class DownloadRequest(BaseModel):
    """Request body for POST /api/download."""

    url: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        description="Media page URL",
        examples=["https://www.youtube.com/watch?v=dQw4w9WgXcQ"],
    )
    type: MediaType = Field(..., description="Kind of media to download: video or audio")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Strip surrounding whitespace and require http(s)."""
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v


class ConnectRequest(BaseModel):
    """Request body for POST /api/auth/connect/{platform}."""

    code: str = Field(..., min_length=1, description="Authorization code from the provider")
    state: str | None = Field(None, description="State returned with the code")
