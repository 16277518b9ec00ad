"""Create notes and note_images tables

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Creates `notes` (owner-scoped text notes) and `note_images` (one row
       per image attached to a note).
How:   UUID primary key generated by PostgreSQL, TIMESTAMP WITH TIME ZONE,
       ON DELETE CASCADE from note_images to notes.

Rollback: downgrade() drops both tables (all notes and attachment
references are lost; blobs in the image store are not touched).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notes",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column(
            "owner_id",
            sa.String(255),
            nullable=False,
            comment="Authenticated user id (JWT subject) owning this note",
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("color", sa.String(32), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # "this owner's notes, newest first"
    op.create_index(
        "idx_notes_owner_created_at",
        "notes",
        ["owner_id", sa.text("created_at DESC")],
    )

    op.create_table(
        "note_images",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("note_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "public_id",
            sa.String(255),
            nullable=False,
            comment="Identifier assigned by the image store",
        ),
        sa.Column("url", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("note_id", "public_id", name="uq_note_images_note_public_id"),
    )
    op.create_index("ix_note_images_note_id", "note_images", ["note_id"])


def downgrade() -> None:
    op.drop_index("ix_note_images_note_id", table_name="note_images")
    op.drop_table("note_images")
    op.drop_index("idx_notes_owner_created_at", table_name="notes")
    op.drop_table("notes")
