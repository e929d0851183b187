"""
Artifact registry - tracks ephemeral downloads for timed deletion.

Each downloaded file is registered with its creation time; a periodic sweep
deletes files whose TTL has passed. The registry is an explicitly
constructed component with a start/stop lifecycle so that tests and
multiple app instances never share state.
"""

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Callable

from media_gateway.downloads.models import Artifact

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 15 * 60


class ArtifactRegistry:
    """
    In-memory registry of ephemeral artifacts.

    Mutations happen only inside single event-loop steps, so the map needs
    no locking. Artifacts are never modified once registered; they are only
    removed, either by the sweep or explicitly.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the registry.

        Args:
            ttl_seconds: Age at which an artifact becomes eligible for deletion
            sweep_interval_seconds: Delay between background sweeps
            clock: Source of epoch seconds (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._artifacts: dict[str, Artifact] = {}
        self._by_filename: dict[str, str] = {}
        self._sweep_task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._artifacts)

    def __contains__(self, artifact_id: object) -> bool:
        return artifact_id in self._artifacts

    @property
    def running(self) -> bool:
        """Return True while the background sweep task is alive."""
        return self._sweep_task is not None and not self._sweep_task.done()

    def register(self, *, file_path: Path, filename: str, platform: str) -> str:
        """
        Start tracking a downloaded file.

        Args:
            file_path: Location of the file on disk
            filename: Public filename
            platform: Platform the media came from

        Returns:
            The new artifact ID
        """
        now = self._clock()
        artifact = Artifact(
            id=uuid.uuid4().hex,
            file_path=file_path,
            filename=filename,
            platform=platform,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        self._artifacts[artifact.id] = artifact
        self._by_filename[filename] = artifact.id
        logger.debug(
            "Artifact registered",
            extra={"artifact_id": artifact.id, "artifact": filename, "platform": platform},
        )
        return artifact.id

    def get(self, artifact_id: str) -> Artifact | None:
        """Return an artifact by ID."""
        return self._artifacts.get(artifact_id)

    def find_by_filename(self, filename: str) -> Artifact | None:
        """
        Return the live artifact published under a filename.

        Artifacts past their expiry are not returned even if the sweep has
        not removed them yet.
        """
        artifact_id = self._by_filename.get(filename)
        artifact = self._artifacts.get(artifact_id) if artifact_id else None
        if artifact is None or self._clock() >= artifact.expires_at:
            return None
        return artifact

    def list_artifacts(self) -> list[Artifact]:
        """Return all tracked artifacts, oldest first."""
        return sorted(self._artifacts.values(), key=lambda a: a.created_at)

    def remove(self, artifact_id: str) -> bool:
        """
        Delete an artifact's file and its tracking entry.

        The entry is removed even if the file cannot be deleted.

        Returns:
            True if the artifact was tracked
        """
        artifact = self._artifacts.pop(artifact_id, None)
        if artifact is None:
            return False
        if self._by_filename.get(artifact.filename) == artifact_id:
            del self._by_filename[artifact.filename]
        _delete_file(artifact.file_path)
        return True

    def sweep(self, now: float | None = None) -> list[str]:
        """
        Delete every artifact whose age has reached the TTL.

        Args:
            now: Reference time in epoch seconds (default: clock)

        Returns:
            IDs of the removed artifacts
        """
        now = self._clock() if now is None else now
        cutoff = now - self.ttl_seconds
        expired = [a.id for a in self._artifacts.values() if a.created_at <= cutoff]

        for artifact_id in expired:
            self.remove(artifact_id)

        if expired:
            logger.info(
                "Expired artifacts swept",
                extra={"removed": len(expired), "remaining": len(self._artifacts)},
            )
        return expired

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.running:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(
            self._sweep_loop(), name="artifact-sweep"
        )
        logger.info(
            "Artifact sweep started",
            extra={
                "ttl_seconds": self.ttl_seconds,
                "interval_seconds": self.sweep_interval_seconds,
            },
        )

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Artifact sweep stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception:
                logger.exception("Artifact sweep failed")


def _delete_file(path: Path) -> bool:
    """Best-effort unlink; failures are logged, never raised."""
    try:
        path.unlink(missing_ok=True)
        return True
    except OSError as e:
        logger.error(
            f"Error cleaning up file {path.name}: {e}",
            extra={"path": str(path)},
        )
        return False
