"""
NoteKeeper Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set before any notekeeper import so the
       settings singleton never points at a real database or image store.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── db_engine:        in-memory SQLite (aiosqlite) with the schema created
    ├── db_session:       AsyncSession bound to db_engine
    ├── repository:       NoteRepository over db_session
    ├── blob_store:       FakeBlobStore (records uploads/deletes, can fail)
    ├── note_service:     NoteService wired to repository + blob_store
    ├── temp_storage:     temporary directory for LocalBlobStore tests
    ├── sample_image_bytes
    ├── alice_headers / bob_headers: bearer tokens for two owners
    └── test_client:      HTTPX AsyncClient against the app, same DB and store
"""

import os
import tempfile
from typing import AsyncGenerator, Dict, List, Optional, Set

# Must run before any notekeeper import (settings are read at import time)
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="notekeeper_test_")
os.environ["BLOB_BACKEND"] = "local"
os.environ["JWT_SECRET_KEY"] = "test-secret-not-real"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from notekeeper.database import Base, get_db_session
from notekeeper.dependencies import get_blob_store
from notekeeper.exceptions import DependencyUnavailableError
from notekeeper.models.note import Note, NoteImage  # noqa: F401
from notekeeper.repositories.note_repository import NoteRepository
from notekeeper.security import create_access_token
from notekeeper.services.blob_store import BlobStore, ImageReference
from notekeeper.services.note_service import NoteService


# ══════════════════════════════════════════════════════════════════════════
# Test Doubles
# ══════════════════════════════════════════════════════════════════════════

class FakeBlobStore(BlobStore):
    """
    In-memory BlobStore.

    Identifiers are "<folder>/img<N>". Set `fail_uploads` to make every
    upload fail, or add identifiers to `failing_deletes` to make deleting
    them fail. Every delete attempt is recorded, failed or not.
    """

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.uploads: List[str] = []
        self.deletes: List[str] = []
        self.fail_uploads = False
        self.failing_deletes: Set[str] = set()
        self._counter = 0

    async def upload(
        self,
        payload: bytes,
        folder: str,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> ImageReference:
        if self.fail_uploads:
            raise DependencyUnavailableError(
                message="Image storage service timed out. Please try again.",
                dependency="blob_store",
            )
        self._counter += 1
        public_id = f"{folder}/img{self._counter}"
        self.blobs[public_id] = payload
        self.uploads.append(public_id)
        return ImageReference(public_id=public_id, url=f"https://blobs.test/{public_id}.png")

    async def delete(self, public_id: str) -> None:
        self.deletes.append(public_id)
        if public_id in self.failing_deletes:
            raise DependencyUnavailableError(
                message="Image storage service could not delete the image.",
                dependency="blob_store",
                context={"public_id": public_id},
            )
        self.blobs.pop(public_id, None)

    async def health_check(self) -> bool:
        return True


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite database with all tables created.

    StaticPool keeps one connection, so every session of the test sees the
    same in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def repository(db_session):
    return NoteRepository(db_session)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def note_service(repository, blob_store):
    return NoteService(
        repository=repository,
        blob_store=blob_store,
        upload_folder="notes_app",
    )


# ══════════════════════════════════════════════════════════════════════════
# Payload / Storage Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    """A fresh storage root for LocalBlobStore tests."""
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """
    Smallest valid-looking PNG: signature + IHDR chunk header.

    Content is never decoded; only size and content type are checked.
    """
    return b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"


# ══════════════════════════════════════════════════════════════════════════
# API Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def alice_headers():
    return {"Authorization": f"Bearer {create_access_token('alice')}"}


@pytest.fixture
def bob_headers():
    return {"Authorization": f"Bearer {create_access_token('bob')}"}


@pytest_asyncio.fixture
async def test_client(session_factory, blob_store):
    """
    HTTPX AsyncClient talking to a fresh app instance.

    The app shares the test database (through a get_db_session override)
    and the FakeBlobStore fixture, so tests can inspect both afterwards.
    """
    from notekeeper.main import create_app

    app = create_app(blob_store=blob_store)

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
