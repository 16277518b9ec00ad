"""
NoteKeeper Backend — Request Logging Middleware
=================================================

What:  One access log line per HTTP request on the "notekeeper.access" logger.
How:   Times the downstream call and logs
           <METHOD> <path> <status> <ms> [<request id>] from <ip> (<bytes>)
       with the same values attached as `extra` fields for structured
       handlers.

Level by status:
    5xx → ERROR, 4xx → WARNING, otherwise INFO

Note bodies and uploaded images are never logged. Health check and documentation
paths are skipped.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notekeeper.middleware.request_id import request_id_var

logger = logging.getLogger("notekeeper.access")

UNLOGGED_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log with duration and request id correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in UNLOGGED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        fields = {
            "request_id": request_id_var.get(""),
            "method": request.method,
            "path": path,
            "status": response.status_code,
            "duration_ms": round(elapsed_ms, 2),
            "client_ip": request.client.host if request.client else "unknown",
            "response_bytes": response.headers.get("content-length", "-"),
        }
        logger.log(
            _level_for(response.status_code),
            "%(method)s %(path)s %(status)d %(duration_ms).1fms [%(request_id)s] "
            "from %(client_ip)s (%(response_bytes)s)",
            fields,
            extra=fields,
        )
        return response
