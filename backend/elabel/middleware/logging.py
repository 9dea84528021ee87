"""
eLabel API — Request Logging Middleware
========================================

What:  One access-log line per HTTP request on the `elabel.access` logger.
Why:   Method, path, status and duration per request, correlated with the
       request ID, are what an operator needs to trace a failing lookup.
How:   Times the downstream call and logs at a level chosen by status.
       When ACCESS_LOG_DIR is set, `setup_logging()` in elabel.main also
       attaches a rotating file handler to this logger.

Log Line:
    GET /api/labels/batch/B-001 404 3.2ms [a1b2c3d4] from 10.0.0.7

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, IP, user-agent, request ID
    ❌ Don't log: request bodies, query strings (OAuth codes, tokens),
       Authorization and Cookie headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from elabel.middleware.request_id import request_id_var

ACCESS_LOGGER_NAME = "elabel.access"

logger = logging.getLogger(ACCESS_LOGGER_NAME)

# Health probes run every few seconds
QUIET_PATHS = frozenset({"/health"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs status and duration of each request.

    Levels:
        5xx → ERROR, 4xx → WARNING, everything else → INFO
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_agent": request.headers.get("user-agent", ""),
            },
        )
        return response
