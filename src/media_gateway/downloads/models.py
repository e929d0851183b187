"""
Pydantic models for downloads and tracked artifacts.

Defines the media types, the artifact record held by the registry, the
metadata parsed from the fetcher's sidecar file, and the normalized
results returned to API callers.
"""

import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class MediaType(str, Enum):
    """Kind of media a caller asks for."""

    VIDEO = "video"
    AUDIO = "audio"

    @property
    def extension(self) -> str:
        """File extension of the produced container."""
        return "m4a" if self is MediaType.AUDIO else "mp4"


class Artifact(BaseModel):
    """An ephemeral downloaded file tracked for timed deletion."""

    id: str = Field(description="Opaque artifact token")
    file_path: Path = Field(description="Location of the file on disk")
    filename: str = Field(description="Public filename used in the retrieval path")
    platform: str = Field(description="Platform the media came from")
    created_at: float = Field(description="Epoch seconds at registration")
    expires_at: float = Field(description="Epoch seconds after which the sweep deletes it")

    model_config = {"frozen": True}


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a successful fetcher run."""

    output_path: Path
    size_bytes: int
    sidecar_path: Path | None = None


class MediaMetadata(BaseModel):
    """Descriptive metadata read from the fetcher's sidecar file."""

    title: str
    thumbnail: str = ""
    channel: str = ""
    hashtags: list[str] = Field(default_factory=list)
    length: str = "0:00"
    age_restriction: bool = False

    @classmethod
    def defaults(cls, platform: str) -> "MediaMetadata":
        """Placeholder metadata used when no sidecar could be read."""
        return cls(title=f"{platform} content")

    @classmethod
    def from_info(cls, info: dict[str, Any], platform: str) -> "MediaMetadata":
        """
        Build metadata from a yt-dlp info document.

        Missing, null or wrongly typed fields fall back to the same
        defaults as `defaults()`, so a partial document never fails.
        """
        tags = info.get("tags")
        age_limit = info.get("age_limit")
        return cls(
            title=_text(info.get("title")) or f"{platform} content",
            thumbnail=_text(info.get("thumbnail")),
            channel=_text(info.get("uploader")) or _text(info.get("channel")),
            hashtags=[str(tag) for tag in tags if isinstance(tag, (str, int))]
            if isinstance(tags, list)
            else [],
            length=_text(info.get("duration_string")) or format_duration(info.get("duration")),
            age_restriction=_is_number(age_limit) and age_limit > 0,
        )


class DownloadResult(BaseModel):
    """Normalized download response returned to callers."""

    success: bool = True
    retrieval_path: str = Field(description="Path the file can be fetched from")
    filename: str
    title: str
    thumbnail: str = ""
    channel: str = ""
    hashtags: list[str] = Field(default_factory=list)
    length: str = "0:00"
    age_restriction: bool = False

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class FormatInfo(BaseModel):
    """One available format as reported by a metadata probe."""

    quality: str | None = None
    mime_type: str | None = None
    has_audio: bool = False
    has_video: bool = False
    container: str | None = None
    content_length: int | None = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    @field_validator("quality", mode="before")
    @classmethod
    def coerce_quality(cls, v):
        """Heights arrive as integers; expose them as labels."""
        if isinstance(v, int):
            return f"{v}p"
        return v

    @classmethod
    def from_info(cls, fmt: dict[str, Any]) -> "FormatInfo":
        """Build a format entry from one item of a yt-dlp `formats` list."""
        height = fmt.get("height")
        ext = _text(fmt.get("ext")) or None
        size = fmt.get("filesize")
        return cls(
            quality=_text(fmt.get("format_note")) or (int(height) if _is_number(height) else None),
            mime_type=ext,
            has_audio=_has_codec(fmt.get("acodec")),
            has_video=_has_codec(fmt.get("vcodec")),
            container=ext,
            content_length=int(size) if _is_number(size) else None,
        )


class MediaInfo(BaseModel):
    """Result of a metadata probe."""

    title: str
    duration: str
    thumbnail: str = ""
    author: str = ""
    formats: list[FormatInfo] = Field(default_factory=list)

    @classmethod
    def from_info(cls, info: dict[str, Any]) -> "MediaInfo":
        """Build probe info from a full yt-dlp dump, ignoring ill-typed fields."""
        raw_formats = info.get("formats")
        if not isinstance(raw_formats, list):
            raw_formats = []
        formats = [FormatInfo.from_info(f) for f in raw_formats if isinstance(f, dict)]
        return cls(
            title=_text(info.get("title")),
            duration=_text(info.get("duration_string")) or format_duration(info.get("duration")),
            thumbnail=_text(info.get("thumbnail")),
            author=_text(info.get("uploader")) or _text(info.get("channel")),
            formats=formats,
        )

    @classmethod
    def placeholder(cls, display_name: str) -> "MediaInfo":
        """Provisional info for platforms resolved only at download time."""
        return cls(
            title=f"{display_name} Post",
            duration="N/A",
            author=f"{display_name} User",
        )


def format_duration(seconds: Any) -> str:
    """
    Format a duration in seconds as H:MM:SS or M:SS.

    Non-numeric input yields "0:00".
    """
    if not _is_number(seconds) or seconds < 0:
        return "0:00"
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def _text(value: Any) -> str:
    """Return value if it is a string, otherwise an empty string."""
    return value if isinstance(value, str) else ""


def _is_number(value: Any) -> bool:
    """True for finite ints and floats (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _has_codec(value: Any) -> bool:
    return isinstance(value, str) and value not in ("", "none")
