"""
Download Orchestrator - coordinates classification, fetching and tracking.

A download request flows through four steps:
1. Classify the URL to a platform and pick the format selector
2. Reserve a unique output filename in the download directory
3. Run the fetcher (bounded by a semaphore) and read its metadata sidecar
4. Register the produced file with the artifact registry

A fetch failure removes the partial output and sidecar before
DownloadFailedError is raised; a failure while publishing removes the
finished file as well, so every file left on disk is registered.
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable

from media_gateway.core.exceptions import DownloadFailedError
from media_gateway.downloads.fetcher import MediaFetcher, sidecar_path_for
from media_gateway.downloads.models import (
    DownloadResult,
    MediaInfo,
    MediaMetadata,
    MediaType,
)
from media_gateway.downloads.platforms import FormatPolicy, Platform, classify_url
from media_gateway.downloads.registry import ArtifactRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_FETCHES = 4


class DownloadOrchestrator:
    """
    Runs downloads end to end and publishes the results.

    The orchestrator holds no per-request state beyond the set of filenames
    reserved by in-flight downloads, which keeps concurrent requests from
    choosing the same output name.
    """

    def __init__(
        self,
        fetcher: MediaFetcher,
        registry: ArtifactRegistry,
        download_dir: Path,
        *,
        policy: FormatPolicy | None = None,
        public_prefix: str = "/temp",
        max_concurrent_fetches: int = DEFAULT_MAX_CONCURRENT_FETCHES,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the orchestrator.

        Args:
            fetcher: Backend that produces media files
            registry: Registry the produced artifacts are tracked in
            download_dir: Directory output files are written to
            policy: Format-selection policy (default: FormatPolicy())
            public_prefix: URL prefix artifacts are served under
            max_concurrent_fetches: Upper bound on simultaneous fetches
            clock: Source of epoch seconds used for filenames
        """
        self.fetcher = fetcher
        self.registry = registry
        self.download_dir = Path(download_dir)
        self.policy = policy or FormatPolicy()
        self.public_prefix = "/" + public_prefix.strip("/")
        self.max_concurrent_fetches = max_concurrent_fetches
        self._clock = clock
        self._semaphore = asyncio.Semaphore(max_concurrent_fetches)
        self._reserved: set[str] = set()

    def classify(self, url: str) -> Platform:
        """Resolve the platform for a URL (raises UnsupportedPlatformError)."""
        return classify_url(url)

    async def download(self, url: str, media_type: MediaType) -> DownloadResult:
        """
        Download a media URL and publish it as an ephemeral artifact.

        Args:
            url: Media page URL
            media_type: Video or audio

        Returns:
            DownloadResult with the retrieval path and metadata

        Raises:
            UnsupportedPlatformError: If the URL matches no platform
            DownloadFailedError: If the fetch fails for any reason
        """
        platform = self.classify(url)
        media_type = MediaType(media_type)
        selector = self.policy.select(platform, media_type)

        self.download_dir.mkdir(parents=True, exist_ok=True)
        filename = self._reserve_filename(platform, media_type)
        output_path = self.download_dir / filename
        sidecar_path = sidecar_path_for(output_path)

        logger.info(
            "Download started",
            extra={
                "platform": platform.value,
                "media_type": media_type.value,
                "source_url": url,
                "artifact": filename,
            },
        )

        try:
            async with self._semaphore:
                result = await self.fetcher.fetch(url, selector, output_path)
        except asyncio.CancelledError:
            self._discard(output_path, sidecar_path, _partial_path(output_path))
            self._reserved.discard(filename)
            raise
        except Exception as e:
            self._discard(output_path, sidecar_path, _partial_path(output_path))
            self._reserved.discard(filename)
            logger.error(
                f"{platform.display_name} download failed: {e}",
                extra={"platform": platform.value, "source_url": url},
            )
            raise DownloadFailedError(
                f"Failed to download {platform.display_name} content",
                platform=platform.value,
                source_url=url,
                details={"cause": getattr(e, "message", str(e))},
            ) from e

        try:
            metadata = await self._read_metadata(result.sidecar_path or sidecar_path, platform)
            self.registry.register(
                file_path=result.output_path,
                filename=filename,
                platform=platform.value,
            )
        except BaseException:
            # Unregistered files would never be swept
            self._discard(result.output_path, output_path, sidecar_path)
            raise
        finally:
            self._reserved.discard(filename)

        logger.info(
            "Download completed",
            extra={
                "platform": platform.value,
                "artifact": filename,
                "size_bytes": result.size_bytes,
            },
        )

        return DownloadResult(
            success=True,
            retrieval_path=f"{self.public_prefix}/{filename}",
            filename=filename,
            **metadata.model_dump(),
        )

    async def probe(self, url: str) -> MediaInfo:
        """
        Describe a media URL without downloading it.

        Only primary platforms are probed with the fetcher; the others get
        placeholder information because their metadata is only reliable
        once the media itself has been fetched.

        Raises:
            UnsupportedPlatformError: If the URL matches no platform
            FetchError: If the probe fails
        """
        platform = self.classify(url)
        if platform not in self.policy.primary_platforms:
            return MediaInfo.placeholder(platform.display_name)

        async with self._semaphore:
            info = await self.fetcher.probe(url)
        return MediaInfo.from_info(info)

    def _reserve_filename(self, platform: Platform, media_type: MediaType) -> str:
        """Pick `<platform>_<ms>.<ext>`, bumping the timestamp until unused."""
        stamp = int(self._clock() * 1000)
        while True:
            filename = f"{platform.value}_{stamp}.{media_type.extension}"
            if (
                filename not in self._reserved
                and self.registry.find_by_filename(filename) is None
                and not (self.download_dir / filename).exists()
            ):
                self._reserved.add(filename)
                return filename
            stamp += 1

    async def _read_metadata(self, sidecar_path: Path, platform: Platform) -> MediaMetadata:
        """Parse the sidecar into metadata, then delete it. Never raises."""
        try:
            info = await asyncio.to_thread(_load_json, sidecar_path)
        except FileNotFoundError:
            logger.warning(
                "Metadata sidecar missing, using defaults",
                extra={"platform": platform.value},
            )
            return MediaMetadata.defaults(platform.value)
        except (OSError, ValueError) as e:
            logger.warning(
                f"Could not read metadata sidecar: {e}",
                extra={"platform": platform.value, "path": str(sidecar_path)},
            )
            info = None
        finally:
            _unlink_quietly(sidecar_path)

        if not isinstance(info, dict):
            return MediaMetadata.defaults(platform.value)
        return MediaMetadata.from_info(info, platform.value)

    @staticmethod
    def _discard(*paths: Path) -> None:
        for path in paths:
            _unlink_quietly(path)


def _load_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _unlink_quietly(path: Path) -> None:
    """Remove a file if present; cleanup failures are logged only."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Error cleaning up {path.name}: {e}", extra={"path": str(path)})


def _partial_path(output_path: Path) -> Path:
    """In-progress file yt-dlp writes before renaming to the final name."""
    return output_path.with_name(output_path.name + ".part")
