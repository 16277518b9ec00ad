"""
NoteKeeper Backend — Note Repository (Owner-Scoped Record Store)
==================================================================

What:  Every database read/write the lifecycle manager performs on notes.
How:   Each method takes (note_id, owner_id) together and builds ONE WHERE
       clause from both; there is no "load by id, then compare owners" path.
       A note owned by someone else is therefore simply not found (None).
Who:   Constructed per request around the request's AsyncSession and handed
       to NoteService.

Atomic attachment updates:
    append_image_by_id_and_owner() is a single INSERT ... SELECT whose SELECT
    carries the ownership predicate, and remove_images_by_id_and_owner() is a
    single DELETE with the same predicate as a subquery. Neither reads and
    rewrites the whole note, so concurrent image requests cannot overwrite
    each other's attachments.

Error translation:
    IntegrityError            → ValidationError (e.g. duplicate public_id on a note)
    other SQLAlchemyError,
    TimeoutError, OSError     → DependencyUnavailableError(dependency="database")
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional
from uuid import UUID

from sqlalchemy import String, Text, delete, insert, literal, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notekeeper.exceptions import DependencyUnavailableError, ValidationError
from notekeeper.models.note import Note, NoteImage
from notekeeper.services.blob_store import ImageReference

logger = logging.getLogger(__name__)

# Columns a client may write through create/update
EDITABLE_FIELDS = frozenset({"title", "content", "color"})

notes_table = Note.__table__
note_images_table = NoteImage.__table__


@asynccontextmanager
async def _store_errors(operation: str, **context: Any) -> AsyncIterator[None]:
    """Translate database failures raised inside the block."""
    try:
        yield
    except IntegrityError as e:
        logger.warning("Constraint violation during %s: %s", operation, str(e.orig))
        raise ValidationError(
            message="The change conflicts with existing data.",
            context={"operation": operation, **context},
        )
    except (SQLAlchemyError, TimeoutError, OSError) as e:
        logger.error("Database error during %s: %s", operation, str(e), exc_info=True)
        raise DependencyUnavailableError(
            message="The note store is temporarily unavailable. Please try again later.",
            dependency="database",
            context={"operation": operation, "error_type": type(e).__name__, **context},
        )


class NoteRepository:
    """Owner-scoped persistence operations for notes and their images."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _owned(note_id: UUID, owner_id: str):
        """The merged (id, owner) predicate used by every scoped operation."""
        return (Note.id == note_id) & (Note.owner_id == owner_id)

    async def list_by_owner(self, owner_id: str) -> List[Note]:
        """All notes of `owner_id`, newest first."""
        stmt = (
            select(Note)
            .where(Note.owner_id == owner_id)
            .order_by(Note.created_at.desc(), Note.id)
        )
        async with _store_errors("list_by_owner"):
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

    async def find_one_by_id_and_owner(self, note_id: UUID, owner_id: str) -> Optional[Note]:
        """
        The note with `note_id` if `owner_id` owns it, else None.

        populate_existing refreshes an instance already in the session
        (including its images) after bulk UPDATE/INSERT/DELETE statements.
        """
        stmt = (
            select(Note)
            .where(self._owned(note_id, owner_id))
            .execution_options(populate_existing=True)
        )
        async with _store_errors("find_one", note_id=str(note_id)):
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

    async def create(self, owner_id: str, fields: Dict[str, Any]) -> Note:
        """Insert a note with an empty image sequence."""
        values = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        note = Note(owner_id=owner_id, images=[], **values)
        async with _store_errors("create"):
            self.session.add(note)
            await self.session.flush()
        return note

    async def update_fields_by_id_and_owner(
        self,
        note_id: UUID,
        owner_id: str,
        fields: Dict[str, Any],
    ) -> Optional[Note]:
        """Write the given title/content/color values; images are untouched."""
        values = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        if values:
            stmt = (
                update(notes_table)
                .where(notes_table.c.id == note_id, notes_table.c.owner_id == owner_id)
                .values(**values)
            )
            async with _store_errors("update_fields", note_id=str(note_id)):
                await self.session.execute(stmt)
        return await self.find_one_by_id_and_owner(note_id, owner_id)

    async def append_image_by_id_and_owner(
        self,
        note_id: UUID,
        owner_id: str,
        ref: ImageReference,
    ) -> Optional[Note]:
        """
        Append `ref` to the note's images in one INSERT ... SELECT.

        The SELECT yields a row only when the note exists for this owner,
        so nothing is inserted for a missing or foreign note.
        """
        source = select(
            notes_table.c.id,
            literal(ref.public_id, String),
            literal(ref.url, Text),
        ).where(notes_table.c.id == note_id, notes_table.c.owner_id == owner_id)
        stmt = insert(note_images_table).from_select(["note_id", "public_id", "url"], source)

        async with _store_errors("append_image", note_id=str(note_id), public_id=ref.public_id):
            await self.session.execute(stmt)
        return await self.find_one_by_id_and_owner(note_id, owner_id)

    async def remove_images_by_id_and_owner(
        self,
        note_id: UUID,
        owner_id: str,
        public_id: str,
    ) -> Optional[Note]:
        """Delete every image of the note whose identifier equals `public_id`."""
        owned_note = select(notes_table.c.id).where(
            notes_table.c.id == note_id,
            notes_table.c.owner_id == owner_id,
        )
        stmt = delete(note_images_table).where(
            note_images_table.c.public_id == public_id,
            note_images_table.c.note_id.in_(owned_note),
        )
        async with _store_errors("remove_images", note_id=str(note_id), public_id=public_id):
            await self.session.execute(stmt)
        return await self.find_one_by_id_and_owner(note_id, owner_id)

    async def delete_by_id_and_owner(self, note_id: UUID, owner_id: str) -> Optional[Note]:
        """
        Delete the note and its image rows.

        Returns the deleted note (images still populated) so the caller can
        enumerate the blobs to clean up, or None if nothing was deleted.
        """
        note = await self.find_one_by_id_and_owner(note_id, owner_id)
        if note is None:
            return None

        owned_note = select(notes_table.c.id).where(
            notes_table.c.id == note_id,
            notes_table.c.owner_id == owner_id,
        )
        async with _store_errors("delete", note_id=str(note_id)):
            await self.session.execute(
                delete(note_images_table).where(note_images_table.c.note_id.in_(owned_note))
            )
            result = await self.session.execute(
                delete(notes_table).where(
                    notes_table.c.id == note_id,
                    notes_table.c.owner_id == owner_id,
                )
            )

        # Keep the in-memory snapshot; the rows are gone
        self.session.expunge(note)
        if result.rowcount == 0:
            return None
        return note

    async def commit(self) -> None:
        """Commit the current transaction."""
        async with _store_errors("commit"):
            await self.session.commit()
