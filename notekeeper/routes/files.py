"""
NoteKeeper Backend — Stored File Route
========================================

What:  GET /files/{path} serves images written by the local blob store.
Who:   <img> tags that use an image `url` returned by the local backend.

Only available when BLOB_BACKEND=local; with Cloudinary the locators point
at Cloudinary's CDN and this route answers 404.

Paths are resolved against STORAGE_ROOT and anything escaping it is
rejected (e.g. ../../etc/passwd).
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from notekeeper.dependencies import get_blob_store
from notekeeper.exceptions import NotFoundError
from notekeeper.services.blob_store import BlobStore
from notekeeper.services.local_blob_store import LocalBlobStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Files"])


@router.get(
    "/files/{file_path:path}",
    summary="Serve stored image files",
    responses={
        200: {"description": "Image file"},
        404: {"description": "File not found"},
    },
)
async def serve_file(
    file_path: str,
    blob_store: BlobStore = Depends(get_blob_store),
) -> FileResponse:
    if not isinstance(blob_store, LocalBlobStore):
        raise NotFoundError(resource="file", resource_id=file_path)

    full_path = await blob_store.resolve_file(file_path)
    if full_path is None:
        raise NotFoundError(resource="file", resource_id=file_path)

    # Stored files are never rewritten under the same name
    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
