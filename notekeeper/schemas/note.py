"""
NoteKeeper Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the API contract.
How:   FastAPI uses these models to validate request bodies, serialize
       responses, and generate the OpenAPI document.
Who:   Request models are consumed by NoteService; response models are built
       by NoteService from ORM objects (`from_attributes`).

Schemas are separate from the SQLAlchemy models: `owner_id` is never
settable through a request body, and the image sequence is never settable
through create/update (only through the image endpoints).
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


def _strip_required(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    stripped = v.strip()
    if not stripped:
        raise ValueError("title must not be empty")
    return stripped


class NoteCreate(BaseModel):
    """Body of POST /notes. Unknown fields (e.g. `images`) are ignored."""
    title: str = Field(max_length=255, description="Note title (required)")
    content: Optional[str] = Field(default=None, description="Free-form note body")
    color: Optional[str] = Field(default=None, max_length=32, description="UI color tag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _strip_required(v)


class NoteUpdate(BaseModel):
    """
    Body of PUT /notes/{id}.

    Only fields present in the body are written; an empty body is an allowed
    no-op. `title` may be omitted but not set to null or blank.
    """
    title: Optional[str] = Field(default=None, max_length=255)
    content: Optional[str] = Field(default=None)
    color: Optional[str] = Field(default=None, max_length=32)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            raise ValueError("title cannot be null")
        return _strip_required(v)

    def changed_fields(self) -> dict:
        """Fields explicitly sent by the client."""
        return self.model_dump(exclude_unset=True)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ImageResponse(BaseModel):
    """One Attachment Reference as exposed by the API."""
    public_id: str = Field(description="Blob store identifier; use it to remove the image")
    url: str = Field(description="Retrieval locator for the image")

    model_config = {"from_attributes": True}


class NoteResponse(BaseModel):
    """
    Full representation of a note, returned by every note endpoint except
    DELETE /notes/{id}.
    """
    id: uuid.UUID = Field(description="Unique note identifier (UUID)")
    owner_id: str = Field(description="Owner of the note")
    title: str
    content: Optional[str] = None
    color: Optional[str] = None
    images: List[ImageResponse] = Field(
        default_factory=list,
        description="Attached images in insertion order",
    )
    created_at: datetime = Field(description="When the note was created (UTC ISO 8601)")

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    """Confirmation body, e.g. for DELETE /notes/{id}."""
    message: str


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "Note with ID '...' was not found",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    blob_store: str = Field(description="Blob store status: available, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
