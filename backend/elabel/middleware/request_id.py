"""
eLabel API — Request ID Middleware
===================================

What:  Assigns each request a short correlation ID and returns it in the
       X-Request-ID response header.
Why:   Every log line of a request and every JSON error body carry the same
       ID, so a user-reported error can be matched to its log entries.
How:   Reuses a client-sent X-Request-ID, otherwise generates one; stores it
       in a ContextVar (for loggers and error handlers) and request.state.
"""

import uuid
from contextvars import ContextVar
from typing import Mapping

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one thread each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client-supplied IDs longer than this are replaced
MAX_REQUEST_ID_LENGTH = 64


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def request_id_from(headers: Mapping[str, str]) -> str:
    """The client's X-Request-ID when usable, otherwise a fresh one."""
    rid = headers.get("X-Request-ID", "")
    if not rid or len(rid) > MAX_REQUEST_ID_LENGTH:
        rid = new_request_id()
    return rid


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request_id_from(request.headers)

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
