"""
FastAPI dependency injection functions.

get_current_owner  → owner id from the bearer token (401 otherwise)
get_blob_store     → the blob store built by the app factory
get_note_service   → NoteService wired to this request's session
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from notekeeper.database import get_db_session
from notekeeper.exceptions import AuthenticationError
from notekeeper.repositories.note_repository import NoteRepository
from notekeeper.security import decode_access_token
from notekeeper.services.blob_store import BlobStore
from notekeeper.services.note_service import NoteService

# auto_error=False: a missing header is reported through AuthenticationError
# so it gets the same JSON error body as every other failure.
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_owner(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Resolve the caller's owner id from the Authorization header.

    Raises:
        AuthenticationError: missing header, invalid/expired token, or no `sub`.
    """
    if credentials is None:
        raise AuthenticationError(message="Authentication required")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError()

    owner_id = payload.get("sub")
    if not owner_id:
        raise AuthenticationError(message="Token does not identify a user")
    return str(owner_id)


def get_blob_store(request: Request) -> BlobStore:
    """The application's blob store (see create_app)."""
    return request.app.state.blob_store


async def get_note_service(
    db: AsyncSession = Depends(get_db_session),
    blob_store: BlobStore = Depends(get_blob_store),
) -> NoteService:
    return NoteService(repository=NoteRepository(db), blob_store=blob_store)
