"""
NoteKeeper Backend — Request ID Middleware
============================================

What:  Assigns a correlation id to each request and echoes it in the response.
How:   Uses the client's X-Request-ID header when present, otherwise a short
       random id; stores it in a ContextVar for loggers and error handlers
       and in request.state for route handlers.

The ContextVar is coroutine-local, so concurrent requests on the same event
loop each see their own id.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Sets `request_id_var` and the X-Request-ID response header."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # 8 hex chars are enough to correlate log lines
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = rid
        return response
