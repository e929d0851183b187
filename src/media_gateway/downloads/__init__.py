"""
Media Gateway Downloads Module.

Platform classification, the subprocess-backed fetcher, the artifact
registry and the orchestrator that ties them together.
"""

from media_gateway.downloads.fetcher import MediaFetcher, YtDlpFetcher, sidecar_path_for
from media_gateway.downloads.models import (
    Artifact,
    DownloadResult,
    FetchResult,
    FormatInfo,
    MediaInfo,
    MediaMetadata,
    MediaType,
)
from media_gateway.downloads.orchestrator import DownloadOrchestrator
from media_gateway.downloads.platforms import (
    FormatPolicy,
    Platform,
    classify_url,
    is_supported_url,
)
from media_gateway.downloads.registry import ArtifactRegistry

__all__ = [
    "Artifact",
    "ArtifactRegistry",
    "DownloadOrchestrator",
    "DownloadResult",
    "FetchResult",
    "FormatInfo",
    "FormatPolicy",
    "MediaFetcher",
    "MediaInfo",
    "MediaMetadata",
    "MediaType",
    "Platform",
    "YtDlpFetcher",
    "classify_url",
    "is_supported_url",
    "sidecar_path_for",
]
