"""
Media fetcher - subprocess wrapper around the external extraction tool.

The orchestrator depends only on the `MediaFetcher` protocol; `YtDlpFetcher`
is the production implementation and tests substitute stubs.
"""

import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Protocol

from media_gateway.core.exceptions import (
    DownloadIncompleteError,
    FetchError,
    FetchTimeoutError,
)
from media_gateway.downloads.models import FetchResult

logger = logging.getLogger(__name__)

DEFAULT_MIN_FILE_SIZE = 1000
DEFAULT_TIMEOUT_SECONDS = 300.0


def sidecar_path_for(output_path: Path) -> Path:
    """Location of the info-json sidecar yt-dlp writes next to an output file."""
    return output_path.with_suffix(".info.json")


class MediaFetcher(Protocol):
    """Capability the orchestrator needs from a media-fetching backend."""

    async def fetch(
        self,
        source_url: str,
        format_selector: str,
        output_path: Path,
        *,
        write_info_json: bool = True,
    ) -> FetchResult:
        """Download media to output_path or raise a FetchError."""
        ...

    async def probe(self, source_url: str) -> dict[str, Any]:
        """Return the full metadata document for a URL."""
        ...


class YtDlpFetcher:
    """
    Fetcher that shells out to yt-dlp.

    The tool is started with ``asyncio.create_subprocess_exec`` so arguments
    are never interpreted by a shell. Every run has a deadline; on expiry the
    process is killed and FetchTimeoutError raised.
    """

    def __init__(
        self,
        binary: str = "yt-dlp",
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        min_file_size: int = DEFAULT_MIN_FILE_SIZE,
    ):
        """
        Initialize the fetcher.

        Args:
            binary: Executable name or path
            timeout_seconds: Deadline for a single tool run
            min_file_size: Outputs smaller than this many bytes are rejected
        """
        self.binary = binary
        self.timeout_seconds = timeout_seconds
        self.min_file_size = min_file_size

    def is_available(self) -> bool:
        """Return True if the executable can be found."""
        return shutil.which(self.binary) is not None

    async def fetch(
        self,
        source_url: str,
        format_selector: str,
        output_path: Path,
        *,
        write_info_json: bool = True,
    ) -> FetchResult:
        """
        Download a URL to output_path.

        Args:
            source_url: Media page URL
            format_selector: yt-dlp ``-f`` expression
            output_path: Destination file
            write_info_json: Also write the metadata sidecar

        Returns:
            FetchResult describing the produced file

        Raises:
            FetchError: If the tool cannot start or exits non-zero
            FetchTimeoutError: If the deadline passes
            DownloadIncompleteError: If the output is missing or too small
        """
        args = [
            source_url,
            "-f",
            format_selector,
            "-o",
            str(output_path),
            "--no-warnings",
            "--quiet",
            "--no-playlist",
        ]
        if write_info_json:
            args.append("--write-info-json")

        logger.info(
            "Starting fetch",
            extra={"source_url": source_url, "format": format_selector, "output": str(output_path)},
        )
        await self._run(args, source_url)

        size = self._verify_output(output_path, source_url)
        sidecar = sidecar_path_for(output_path)
        return FetchResult(
            output_path=output_path,
            size_bytes=size,
            sidecar_path=sidecar if sidecar.exists() else None,
        )

    async def probe(self, source_url: str) -> dict[str, Any]:
        """
        Dump the metadata document for a URL without downloading media.

        Raises:
            FetchError: If the tool fails or prints something other than JSON
        """
        stdout = await self._run(
            [source_url, "--dump-json", "--no-warnings", "--skip-download", "--no-playlist"],
            source_url,
        )
        try:
            info = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise FetchError(
                "Could not parse media information",
                source_url=source_url,
                details={"parse_error": str(e)},
            ) from e
        if not isinstance(info, dict):
            raise FetchError("Unexpected media information format", source_url=source_url)
        return info

    async def version(self) -> str:
        """Return the tool's version string."""
        return (await self._run(["--version"], None)).strip()

    async def _run(self, args: list[str], source_url: str | None) -> str:
        """Run the tool to completion and return its stdout."""
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FetchError(
                f"Could not start {self.binary}: {e}",
                source_url=source_url,
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            await self._kill(proc)
            logger.warning(
                "Fetch timed out",
                extra={"source_url": source_url, "timeout_seconds": self.timeout_seconds},
            )
            raise FetchTimeoutError(
                f"{self.binary} did not finish within {self.timeout_seconds:g}s",
                source_url=source_url,
                timeout_seconds=self.timeout_seconds,
            )
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        if proc.returncode != 0:
            err = stderr.decode(errors="replace").strip()
            logger.warning(
                f"{self.binary} exited {proc.returncode}",
                extra={"source_url": source_url, "stderr": err[-500:]},
            )
            raise FetchError(
                f"{self.binary} exited with status {proc.returncode}",
                source_url=source_url,
                exit_code=proc.returncode,
                stderr=err,
            )

        return stdout.decode("utf-8", errors="replace")

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()

    def _verify_output(self, output_path: Path, source_url: str) -> int:
        """Check the output exists and meets the minimum size."""
        if not output_path.exists():
            raise DownloadIncompleteError(
                "Downloaded file was not created",
                output_path=str(output_path),
                source_url=source_url,
            )
        size = output_path.stat().st_size
        if size < self.min_file_size:
            raise DownloadIncompleteError(
                "Downloaded file is too small",
                output_path=str(output_path),
                size_bytes=size,
                min_bytes=self.min_file_size,
                source_url=source_url,
            )
        return size
