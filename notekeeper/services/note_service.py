"""
NoteKeeper Backend — Note Service (Attachment Lifecycle Manager)
=================================================================

What:  Owner-scoped note CRUD plus the image attachment lifecycle:
       add image, remove image, and cascade cleanup on note deletion.
How:   Composes an owner-scoped NoteRepository (database) with an injected
       BlobStore (external image hosting).
Who:   Built per request by notekeeper.dependencies.get_note_service and
       called by the /notes route handlers.

Orchestration:

    add_image      lookup(id, owner) ─▶ validate payload ─▶ upload ─▶ append ─▶ commit
    remove_image   lookup(id, owner) ─▶ attached? ─▶ blob delete ─▶ drop matching refs ─▶ commit
    delete_note    delete(id, owner) ─▶ commit ─▶ blob delete × K (failures logged)

Consistency across the two systems:
    - An upload failure leaves the note untouched (nothing is appended).
    - A persistence failure after a successful upload leaves an orphaned blob.
      No compensating delete is attempted; the error is surfaced unchanged.
    - Cascade blob deletes run only after the note deletion has committed. A
      crash in between leaves orphaned blobs; there is no reconciliation pass.
    - Uploads are shielded from request cancellation: a client disconnect does
      not abort an in-flight provider upload.

Errors:
    NotFoundError for absent or foreign notes (indistinguishable), BadRequestError
    for unusable image payloads, DependencyUnavailableError from the repository
    or blob store. Nothing is retried.
"""

import asyncio
import logging
from typing import Iterable, List, Optional, Union
from uuid import UUID

from notekeeper.config import settings
from notekeeper.exceptions import (
    BadRequestError,
    DependencyUnavailableError,
    NotFoundError,
    ValidationError,
)
from notekeeper.models.note import Note
from notekeeper.repositories.note_repository import NoteRepository
from notekeeper.schemas.note import (
    MessageResponse,
    NoteCreate,
    NoteResponse,
    NoteUpdate,
)
from notekeeper.services.blob_store import BlobStore

logger = logging.getLogger(__name__)


def _parse_note_id(note_id: Union[str, UUID]) -> UUID:
    """Note ids that are not UUIDs cannot exist; report them as not found."""
    if isinstance(note_id, UUID):
        return note_id
    try:
        return UUID(str(note_id))
    except ValueError:
        raise NotFoundError(resource="note", resource_id=str(note_id))


class NoteService:
    """
    Business logic for notes and their image attachments.

    Stateless apart from its collaborators; one instance per request.
    """

    def __init__(
        self,
        repository: NoteRepository,
        blob_store: BlobStore,
        upload_folder: Optional[str] = None,
        max_file_size: Optional[int] = None,
        allowed_image_types: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            repository: Owner-scoped note store bound to the request's session.
            blob_store: External image store (explicitly injected).
            upload_folder: Destination folder for uploads (default: settings).
            max_file_size: Max payload size in bytes (default: settings).
            allowed_image_types: Accepted MIME types (default: settings).
        """
        self.repository = repository
        self.blob_store = blob_store
        self.upload_folder = upload_folder or settings.upload_folder
        self.max_file_size = max_file_size or settings.max_file_size
        self.allowed_image_types = (
            {t.lower() for t in allowed_image_types}
            if allowed_image_types is not None
            else settings.allowed_image_types_set
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _require_note(self, owner_id: str, note_id: UUID) -> Note:
        note = await self.repository.find_one_by_id_and_owner(note_id, owner_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return note

    def _validate_payload(
        self,
        payload: Optional[bytes],
        content_type: Optional[str],
    ) -> None:
        """
        Reject missing, empty, oversized or non-image payloads.

        Raises:
            BadRequestError with field="image".
        """
        if payload is None:
            raise BadRequestError(message="No image file provided", field="image")
        if len(payload) == 0:
            raise BadRequestError(message="The uploaded image is empty", field="image")
        if len(payload) > self.max_file_size:
            max_mb = self.max_file_size / (1024 * 1024)
            raise BadRequestError(
                message=f"Image size exceeds maximum of {max_mb:.0f}MB.",
                field="image",
                context={"max_size_bytes": self.max_file_size, "actual_size": len(payload)},
            )
        normalized = (content_type or "").split(";")[0].strip().lower()
        if normalized not in self.allowed_image_types:
            raise BadRequestError(
                message=(
                    f"Content type '{content_type or 'unknown'}' is not supported. "
                    f"Allowed types: {', '.join(sorted(self.allowed_image_types))}"
                ),
                field="image",
                context={"content_type": content_type},
            )

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list_notes(self, owner_id: str) -> List[NoteResponse]:
        """All notes of the caller, newest first."""
        notes = await self.repository.list_by_owner(owner_id)
        return [NoteResponse.model_validate(note) for note in notes]

    async def get_note(self, owner_id: str, note_id: Union[str, UUID]) -> NoteResponse:
        """
        A single note of the caller.

        Raises:
            NotFoundError: absent, malformed id, or owned by another user.
        """
        note = await self._require_note(owner_id, _parse_note_id(note_id))
        return NoteResponse.model_validate(note)

    # ── Plain CRUD ────────────────────────────────────────────────────────

    async def create_note(self, owner_id: str, data: NoteCreate) -> NoteResponse:
        """Create a note with no attachments."""
        note = await self.repository.create(owner_id, data.model_dump())
        await self.repository.commit()
        logger.info("Note created: %s (owner=%s)", note.id, owner_id)
        return NoteResponse.model_validate(note)

    async def update_note(
        self,
        owner_id: str,
        note_id: Union[str, UUID],
        data: NoteUpdate,
    ) -> NoteResponse:
        """
        Replace the supplied title/content/color values.

        An empty update is a no-op that still checks ownership.
        """
        parsed_id = _parse_note_id(note_id)
        note = await self.repository.update_fields_by_id_and_owner(
            parsed_id, owner_id, data.changed_fields()
        )
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(parsed_id))
        await self.repository.commit()
        return NoteResponse.model_validate(note)

    async def delete_note(self, owner_id: str, note_id: Union[str, UUID]) -> MessageResponse:
        """
        Delete the note, then delete each of its blobs.

        Blob deletion starts only after the record deletion has committed.
        Every blob delete is attempted; failures are logged and do not change
        the response, because the note itself is already gone.
        """
        parsed_id = _parse_note_id(note_id)
        note = await self.repository.delete_by_id_and_owner(parsed_id, owner_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(parsed_id))

        public_ids = [image.public_id for image in note.images]
        await self.repository.commit()
        logger.info("Note deleted: %s (%d attached images)", parsed_id, len(public_ids))

        failed = 0
        for public_id in public_ids:
            try:
                await self.blob_store.delete(public_id)
            except DependencyUnavailableError as e:
                failed += 1
                logger.warning(
                    "Cascade delete of blob %s for note %s failed: %s | Context: %s",
                    public_id,
                    parsed_id,
                    e.message,
                    e.context,
                )
            except Exception as e:
                # The note is already gone; no blob failure may change that
                failed += 1
                logger.error(
                    "Cascade delete of blob %s for note %s raised %s: %s",
                    public_id,
                    parsed_id,
                    type(e).__name__,
                    str(e),
                    exc_info=True,
                )
        if failed:
            logger.warning(
                "Note %s deleted with %d/%d orphaned blobs",
                parsed_id,
                failed,
                len(public_ids),
            )

        return MessageResponse(message="Note deleted")

    # ── Attachment Lifecycle ──────────────────────────────────────────────

    async def add_image(
        self,
        owner_id: str,
        note_id: Union[str, UUID],
        payload: Optional[bytes],
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> NoteResponse:
        """
        Upload an image and append its reference to the note.

        Steps:
            1. Owner-scoped lookup (NotFoundError)
            2. Payload validation (BadRequestError)
            3. Upload to the blob store, shielded from cancellation
            4. Atomic append of the new reference
            5. Commit and return the full note

        Raises:
            NotFoundError, BadRequestError, DependencyUnavailableError,
            ValidationError (duplicate identifier on the note).
        """
        parsed_id = _parse_note_id(note_id)
        await self._require_note(owner_id, parsed_id)
        self._validate_payload(payload, content_type)

        ref = await asyncio.shield(
            self.blob_store.upload(
                payload,
                self.upload_folder,
                filename=filename,
                content_type=content_type,
            )
        )
        logger.info("Image uploaded for note %s: %s", parsed_id, ref.public_id)

        try:
            note = await self.repository.append_image_by_id_and_owner(parsed_id, owner_id, ref)
            if note is None:
                raise NotFoundError(resource="note", resource_id=str(parsed_id))
            await self.repository.commit()
        except (DependencyUnavailableError, ValidationError, NotFoundError) as e:
            logger.error(
                "Image %s uploaded but not recorded on note %s (orphaned blob): %s",
                ref.public_id,
                parsed_id,
                e.message,
            )
            raise

        return NoteResponse.model_validate(note)

    async def remove_image(
        self,
        owner_id: str,
        note_id: Union[str, UUID],
        public_id: str,
    ) -> NoteResponse:
        """
        Delete a blob and drop every reference to it from the note.

        Only identifiers attached to the caller's note reach the blob store;
        any other identifier (unknown, or attached to someone else's note)
        leaves both the note and the blob store untouched and still succeeds.
        """
        parsed_id = _parse_note_id(note_id)
        note = await self._require_note(owner_id, parsed_id)
        if not public_id:
            raise BadRequestError(message="An image identifier is required", field="public_id")

        if public_id not in {image.public_id for image in note.images}:
            logger.info("Image %s is not attached to note %s; nothing to remove", public_id, parsed_id)
            return NoteResponse.model_validate(note)

        await self.blob_store.delete(public_id)

        note = await self.repository.remove_images_by_id_and_owner(parsed_id, owner_id, public_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(parsed_id))
        await self.repository.commit()
        logger.info("Image %s removed from note %s", public_id, parsed_id)
        return NoteResponse.model_validate(note)
