"""
PeerRate Backend - Local File Serving
=====================================

What:  GET /api/files/{path} serves objects written by LocalObjectStorage.
Who:   <img> tags pointing at profile_picture_url in local development.
       With the S3 backend the URLs point at the bucket and this route
       answers 404 for everything.

Stored objects carry no extension, so the media type is sniffed from the
first bytes (PNG signature, otherwise JPEG; only those two are accepted on
upload).
"""

import aiofiles
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from peerrate.dependencies import get_object_storage
from peerrate.exceptions import NotFoundError, StorageError, ValidationError
from peerrate.schemas.common import ErrorResponse
from peerrate.services.storage_base import ObjectStorage
from peerrate.services.storage_service import LocalObjectStorage

router = APIRouter(prefix="/api", tags=["Files"])

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def sniff_image_type(head: bytes) -> str:
    return "image/png" if head.startswith(PNG_SIGNATURE) else "image/jpeg"


@router.get(
    "/files/{file_path:path}",
    responses={
        200: {"description": "Image file"},
        400: {"description": "Path escapes the storage root", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
    summary="Serve a locally stored image",
)
async def serve_file(
    file_path: str,
    storage: ObjectStorage = Depends(get_object_storage),
) -> FileResponse:
    if not isinstance(storage, LocalObjectStorage):
        raise NotFoundError(resource="file", resource_id=file_path)

    try:
        full_path = storage.resolve_path(file_path)
    except StorageError:
        raise ValidationError(message="Invalid file path", field="file_path")

    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    async with aiofiles.open(full_path, "rb") as f:
        media_type = sniff_image_type(await f.read(len(PNG_SIGNATURE)))

    return FileResponse(
        path=str(full_path),
        media_type=media_type,
        # Pictures are overwritten in place on re-upload
        headers={"Cache-Control": "public, max-age=300"},
    )
