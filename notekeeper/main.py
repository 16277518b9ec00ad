"""
NoteKeeper Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() builds the blob store, registers middleware, exception
       handlers and routers, and returns the app.
Who:   uvicorn (`uvicorn notekeeper.main:app`) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware:  Request ID → Logging → GZip → CORS    │
    │                                                     │
    │  Routes:      /notes   /files/{path}   /health      │
    │                                                     │
    │  State:       app.state.blob_store                  │
    │               (injected via get_blob_store)         │
    │                                                     │
    │  Exception Handlers:                                │
    │    NotFound→404   BadRequest/Validation→400         │
    │    DependencyUnavailable→400                        │
    │    Authentication→401  unexpected→500               │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging setup, configuration check
    Shutdown: close the blob store client, dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from notekeeper import __version__
from notekeeper.config import settings
from notekeeper.database import dispose_engine
from notekeeper.exceptions import (
    AuthenticationError,
    BadRequestError,
    DependencyUnavailableError,
    NoteKeeperError,
    NotFoundError,
    ValidationError,
)
from notekeeper.middleware.logging import RequestLoggingMiddleware
from notekeeper.middleware.request_id import RequestIDMiddleware, request_id_var
from notekeeper.routes import files, health, notes
from notekeeper.services.blob_store import BlobStore, build_blob_store

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries log every operation at DEBUG/INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("NoteKeeper Backend starting up (blob backend: %s)", settings.blob_backend)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving so /health can report the problem
        logger.error("Configuration error: %s", str(e))

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("NoteKeeper Backend shutting down...")
    blob_store: BlobStore = app.state.blob_store
    await blob_store.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    return request_id_var.get("") or getattr(request.state, "request_id", "")


def _error_body(
    request: Request,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": error, "message": message, "request_id": _request_id(request)}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and response bodies.

        NotFoundError               → 404
        BadRequestError             → 400
        ValidationError             → 400
        RequestValidationError      → 400 (FastAPI body/param validation)
        DependencyUnavailableError  → 400 (provider details are logged only)
        AuthenticationError         → 401
        NoteKeeperError (other)     → 400
        Exception (fallback)        → 500
    """

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body(request, "not_found", exc.message),
        )

    @app.exception_handler(BadRequestError)
    async def handle_bad_request(request: Request, exc: BadRequestError):
        logger.warning("[%s] Bad request: %s", _request_id(request), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body(request, "bad_request", exc.message, exc.context),
        )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", _request_id(request), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body(request, "validation_error", exc.message, exc.context),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        message = errors[0]["message"] if errors else "Request validation failed"
        logger.warning("[%s] Request validation failed: %s", _request_id(request), errors)
        return JSONResponse(
            status_code=400,
            content=_error_body(request, "validation_error", message, {"errors": errors}),
        )

    @app.exception_handler(DependencyUnavailableError)
    async def handle_dependency_unavailable(request: Request, exc: DependencyUnavailableError):
        logger.error(
            "[%s] Dependency unavailable: %s | Context: %s",
            _request_id(request),
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=400,
            content=_error_body(
                request,
                "dependency_unavailable",
                exc.message,
                {"dependency": exc.dependency},
            ),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return JSONResponse(
            status_code=401,
            content=_error_body(request, "unauthorized", exc.message),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(NoteKeeperError)
    async def handle_app_error(request: Request, exc: NoteKeeperError):
        logger.warning("[%s] Application error: %s", _request_id(request), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body(request, "bad_request", exc.message),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack traces are logged server-side only, never returned."""
        rid = _request_id(request)
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                request,
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(blob_store: Optional[BlobStore] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        blob_store: Store to inject into handlers. Built from settings when
                    omitted; tests pass an in-memory double.
    """
    app = FastAPI(
        title="NoteKeeper API",
        description=(
            "Per-user notes with image attachments. Every note operation is "
            "scoped to the authenticated owner."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.blob_store = blob_store if blob_store is not None else build_blob_store(settings)

    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → GZip → CORS → routes
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(notes.router)
    app.include_router(files.router)
    app.include_router(health.router)

    return app


app = create_app()
