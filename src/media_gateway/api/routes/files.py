"""
Artifact retrieval endpoint.

Serves downloaded files by their public filename. Only files the artifact
registry currently tracks are served; anything else in the download
directory is invisible to clients.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from media_gateway.api.dependencies import get_registry
from media_gateway.api.schemas.exceptions import NotFoundError
from media_gateway.downloads.registry import ArtifactRegistry

router = APIRouter()
logger = logging.getLogger(__name__)

_MEDIA_TYPES = {
    "mp4": "video/mp4",
    "m4a": "audio/mp4",
}


@router.get("/{filename}")
async def get_artifact(
    filename: str,
    registry: ArtifactRegistry = Depends(get_registry),
) -> FileResponse:
    """
    Return a downloaded file as an attachment.

    Raises:
        NotFoundError: If the filename is not tracked, has expired, or is gone from disk
    """
    if "/" in filename or "\\" in filename or filename.startswith("."):
        raise NotFoundError("File not found or expired")

    artifact = registry.find_by_filename(filename)
    if artifact is None or not artifact.file_path.is_file():
        logger.info("Artifact not available", extra={"artifact": filename})
        raise NotFoundError("File not found or expired")

    extension = filename.rsplit(".", 1)[-1].lower()
    return FileResponse(
        artifact.file_path,
        media_type=_MEDIA_TYPES.get(extension, "application/octet-stream"),
        filename=filename,
        headers={"Access-Control-Expose-Headers": "Content-Disposition"},
    )
