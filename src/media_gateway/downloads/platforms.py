"""
Platform classification and format-selection policy.

URLs are matched by hostname against a fixed table of supported platforms.
Each platform is either primary (long-form video host with separate
video/audio streams) or secondary (short-form hosts that mostly serve
progressive files), which decides the yt-dlp format selector.
"""

from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlparse

from media_gateway.core.exceptions import UnsupportedPlatformError
from media_gateway.downloads.models import MediaType


class Platform(str, Enum):
    """Platforms the download path supports."""

    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    TIKTOK = "tiktok"

    @property
    def display_name(self) -> str:
        """Human-readable platform name."""
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Platform.YOUTUBE: "YouTube",
    Platform.INSTAGRAM: "Instagram",
    Platform.TWITTER: "Twitter",
    Platform.TIKTOK: "TikTok",
}

# Hostname suffixes per platform; a host matches "example.com" or "*.example.com"
PLATFORM_DOMAINS: dict[Platform, tuple[str, ...]] = {
    Platform.YOUTUBE: ("youtube.com", "youtu.be", "youtube-nocookie.com"),
    Platform.INSTAGRAM: ("instagram.com",),
    Platform.TWITTER: ("twitter.com", "x.com"),
    Platform.TIKTOK: ("tiktok.com",),
}

PRIMARY_PLATFORMS = frozenset({Platform.YOUTUBE})


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def classify_url(url: str) -> Platform:
    """
    Resolve the platform a URL belongs to.

    Args:
        url: Absolute media URL

    Returns:
        The single matching Platform

    Raises:
        UnsupportedPlatformError: If no platform matches
    """
    try:
        host = (urlparse(url.strip()).hostname or "").lower()
    except ValueError:
        host = ""

    if host:
        for platform, domains in PLATFORM_DOMAINS.items():
            if any(_host_matches(host, domain) for domain in domains):
                return platform

    raise UnsupportedPlatformError(
        "Unsupported platform. Supported platforms: "
        + ", ".join(p.display_name for p in Platform),
        url=url,
        supported=[p.value for p in Platform],
    )


def is_supported_url(url: str) -> bool:
    """Return True if the URL belongs to a supported platform."""
    try:
        classify_url(url)
    except UnsupportedPlatformError:
        return False
    return True


@dataclass(frozen=True)
class FormatPolicy:
    """
    Format-selection policy for the media-fetching tool.

    Audio prefers the m4a container; video prefers mp4 up to the
    resolution cap, with combined video+audio streams for primary
    platforms. Every selector ends in a plain "best" fallback.
    """

    max_height: int = 1080
    video_ext: str = "mp4"
    audio_ext: str = "m4a"
    primary_platforms: frozenset[Platform] = field(default=PRIMARY_PLATFORMS)

    def select(self, platform: Platform, media_type: MediaType) -> str:
        """Return the format selector for a platform and media type."""
        if media_type is MediaType.AUDIO:
            return f"bestaudio[ext={self.audio_ext}]/bestaudio/best"

        cap = f"[height<={self.max_height}]"
        if platform in self.primary_platforms:
            return (
                f"bestvideo{cap}[ext={self.video_ext}]+bestaudio[ext={self.audio_ext}]"
                f"/best[ext={self.video_ext}]/best"
            )
        return f"best{cap}[ext={self.video_ext}]/best[ext={self.video_ext}]/best"
