"""
NoteKeeper Backend — Note SQLAlchemy Models
=============================================

What:  ORM models for the `notes` and `note_images` tables.
How:   Inherit from the shared DeclarativeBase; Alembic reads them for migrations.
Who:   Used by NoteRepository for owner-scoped CRUD and by Alembic.

Table Design:
    notes
    - id:         UUID primary key (generated in Python, portable across dialects)
    - owner_id:   Opaque user id from the auth token; required, never updated
    - title:      Required text
    - content:    Optional text
    - color:      Optional short text (UI color tag)
    - created_at: UTC timestamp set once at insert

    note_images (one row per Attachment Reference)
    - id:         Autoincrement; ascending id = insertion order = display order
    - note_id:    FK → notes.id, ON DELETE CASCADE
    - public_id:  Identifier assigned by the blob store (stable)
    - url:        Retrieval locator returned by the blob store
    - UNIQUE (note_id, public_id): no duplicate references on one note

    Attachments live in their own table so that adding one is a single
    INSERT, never a read-modify-write of the whole note. Two concurrent
    add-image requests on the same note therefore both keep their rows.

Index on (owner_id, created_at DESC):
    Serves the list query "this owner's notes, newest first".
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notekeeper.database import Base


class Note(Base):
    """
    A text note belonging to exactly one owner.

    Lifecycle:
        1. Created with an empty image sequence
        2. Title/content/color may be replaced any number of times
        3. Images are appended (after a successful upload) or removed
        4. Deleted together with its image rows; the blob store copies are
           deleted afterwards by the lifecycle manager
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Authenticated user id (JWT subject) owning this note",
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    # selectin: images are always loaded with the note in the same await,
    # so response serialization never triggers a lazy load.
    images: Mapped[List["NoteImage"]] = relationship(
        back_populates="note",
        order_by="NoteImage.id",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_notes_owner_created_at", owner_id, created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, owner_id='{self.owner_id}', title='{self.title}')>"


class NoteImage(Base):
    """An Attachment Reference: one uploaded image attached to one note."""

    __tablename__ = "note_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    public_id: Mapped[str] = mapped_column(String(255), nullable=False)

    url: Mapped[str] = mapped_column(Text, nullable=False)

    note: Mapped[Note] = relationship(back_populates="images")

    __table_args__ = (
        UniqueConstraint("note_id", "public_id", name="uq_note_images_note_public_id"),
    )

    def __repr__(self) -> str:
        return f"<NoteImage(note_id={self.note_id}, public_id='{self.public_id}')>"
