"""
NoteKeeper Backend — Application Package Initializer
=====================================================

What:  Marks the `notekeeper` directory as a Python package.
Who:   Used by uvicorn (`notekeeper.main:app`), Alembic, and pytest.

Architecture Note:
    The backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Attachment Lifecycle)   │  ← Orchestration across DB + blob store
    ├─────────────────────────────────────┤
    │  Repositories │ Blob Store clients  │  ← Owner-scoped queries │ external storage
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes resolve the caller (auth dependency), build a NoteService from an
    injected repository and blob store, and translate nothing themselves:
    application exceptions are mapped to HTTP responses by global handlers.
"""

__version__ = "1.0.0"
