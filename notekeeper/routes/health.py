"""
NoteKeeper Backend — Health Check Route
=========================================

What:  Health check endpoint for monitoring and load balancer checks.
How:   Runs `SELECT 1` against the database and asks the blob store whether it
       is reachable.
Who:   Docker health checks, load balancers, monitoring.

Status levels:
    - healthy:   database and blob store reachable
    - degraded:  blob store unreachable (reads still work, image changes fail)
    - unhealthy: database unreachable
"""

import logging
import time

from fastapi import APIRouter, Depends
from sqlalchemy import text

from notekeeper import __version__
from notekeeper.database import engine
from notekeeper.dependencies import get_blob_store
from notekeeper.schemas.note import HealthResponse
from notekeeper.services.blob_store import BlobStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(blob_store: BlobStore = Depends(get_blob_store)) -> HealthResponse:
    db_status = "connected"
    blob_status = "available"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    try:
        if not await blob_store.health_check():
            blob_status = "unavailable"
    except Exception as e:
        blob_status = "unavailable"
        logger.warning("Health check: blob store unreachable: %s", str(e))
    if blob_status != "available" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        blob_store=blob_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
