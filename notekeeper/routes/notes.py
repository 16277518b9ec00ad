"""
NoteKeeper Backend — Notes Route Handlers
===========================================

What:  The /notes HTTP surface: note CRUD and image attach/detach.
How:   Resolves the owner (bearer token), delegates to NoteService, returns
       the affected note as JSON.
Who:   Called by the notes frontend.

Endpoints:
    GET    /notes                               list (newest first)
    GET    /notes/{note_id}                     get one
    POST   /notes                               create (201)
    PUT    /notes/{note_id}                     update title/content/color
    DELETE /notes/{note_id}                     delete + cascade blob cleanup
    POST   /notes/{note_id}/images              add image (multipart field "image")
    DELETE /notes/{note_id}/images/{public_id}  remove image

Blob identifiers may contain "/" (e.g. "notes_app/abc123"), so the last
route captures the rest of the path as the identifier.

Error responses are produced by the global exception handlers in main.py.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from notekeeper.dependencies import get_current_owner, get_note_service
from notekeeper.schemas.note import (
    ErrorResponse,
    MessageResponse,
    NoteCreate,
    NoteResponse,
    NoteUpdate,
)
from notekeeper.services.note_service import NoteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["Notes"])

_NOT_FOUND = {404: {"description": "Note not found", "model": ErrorResponse}}
_BAD_REQUEST = {400: {"description": "Invalid input or dependency failure", "model": ErrorResponse}}
_UNAUTHORIZED = {401: {"description": "Missing or invalid token", "model": ErrorResponse}}


@router.get(
    "",
    response_model=List[NoteResponse],
    responses={**_UNAUTHORIZED, **_BAD_REQUEST},
    summary="List the caller's notes, newest first",
)
async def list_notes(
    owner_id: str = Depends(get_current_owner),
    service: NoteService = Depends(get_note_service),
) -> List[NoteResponse]:
    return await service.list_notes(owner_id)


@router.get(
    "/{note_id}",
    response_model=NoteResponse,
    responses={**_UNAUTHORIZED, **_NOT_FOUND, **_BAD_REQUEST},
    summary="Get a single note",
)
async def get_note(
    note_id: str,
    owner_id: str = Depends(get_current_owner),
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    return await service.get_note(owner_id, note_id)


@router.post(
    "",
    status_code=201,
    response_model=NoteResponse,
    responses={**_UNAUTHORIZED, **_BAD_REQUEST},
    summary="Create a note",
)
async def create_note(
    data: NoteCreate,
    owner_id: str = Depends(get_current_owner),
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    return await service.create_note(owner_id, data)


@router.put(
    "/{note_id}",
    response_model=NoteResponse,
    responses={**_UNAUTHORIZED, **_NOT_FOUND, **_BAD_REQUEST},
    summary="Update a note's title, content or color",
)
async def update_note(
    note_id: str,
    data: NoteUpdate,
    owner_id: str = Depends(get_current_owner),
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    return await service.update_note(owner_id, note_id, data)


@router.delete(
    "/{note_id}",
    response_model=MessageResponse,
    responses={**_UNAUTHORIZED, **_NOT_FOUND, **_BAD_REQUEST},
    summary="Delete a note and its images",
)
async def delete_note(
    note_id: str,
    owner_id: str = Depends(get_current_owner),
    service: NoteService = Depends(get_note_service),
) -> MessageResponse:
    return await service.delete_note(owner_id, note_id)


@router.post(
    "/{note_id}/images",
    response_model=NoteResponse,
    responses={**_UNAUTHORIZED, **_NOT_FOUND, **_BAD_REQUEST},
    summary="Attach an image to a note",
)
async def add_image(
    note_id: str,
    image: Optional[UploadFile] = File(default=None, description="Image file (PNG, JPEG, GIF, WebP)"),
    owner_id: str = Depends(get_current_owner),
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    payload: Optional[bytes] = None
    filename: Optional[str] = None
    content_type: Optional[str] = None
    if image is not None:
        try:
            payload = await image.read()
            filename = image.filename
            content_type = image.content_type
        finally:
            await image.close()
        logger.info(
            "Received image for note %s: filename=%s, size=%d bytes",
            note_id,
            filename or "unknown",
            len(payload),
        )

    return await service.add_image(
        owner_id,
        note_id,
        payload,
        filename=filename,
        content_type=content_type,
    )


@router.delete(
    "/{note_id}/images/{public_id:path}",
    response_model=NoteResponse,
    responses={**_UNAUTHORIZED, **_NOT_FOUND, **_BAD_REQUEST},
    summary="Remove an image from a note",
)
async def remove_image(
    note_id: str,
    public_id: str,
    owner_id: str = Depends(get_current_owner),
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    return await service.remove_image(owner_id, note_id, public_id)
