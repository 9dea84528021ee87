"""
eLabel API — Request Body Size Limit

Rejects request bodies larger than MAX_BODY_SIZE with 413. A declared
Content-Length above the limit is refused before anything is read. A body
without one (chunked) is read here, counting bytes as they arrive, and
refused as soon as the running total passes the limit; an accepted body is
replayed to the application unchanged. Label payloads are a few hundred
bytes, so the 10 KB default leaves ample room.

Written as plain ASGI rather than BaseHTTPMiddleware because it has to wrap
`receive`.
"""

import logging
from typing import List, Optional

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from elabel.config import settings
from elabel.exceptions import PayloadTooLargeError
from elabel.middleware.request_id import request_id_from

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:

    def __init__(self, app: ASGIApp, max_body_size: Optional[int] = None):
        self.app = app
        self.max_body_size = max_body_size if max_body_size is not None else settings.max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        declared = headers.get("content-length")
        if declared is not None and declared.isdigit():
            if int(declared) > self.max_body_size:
                await self._reject(scope, receive, send, headers, declared)
                return
            # The server enforces Content-Length framing
            await self.app(scope, receive, send)
            return

        chunks: List[bytes] = []
        received = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] != "http.request":
                # Client went away; nobody is left to answer
                return
            body = message.get("body", b"")
            received += len(body)
            if received > self.max_body_size:
                await self._reject(scope, receive, send, headers, f"at least {received}")
                return
            chunks.append(body)
            more_body = message.get("more_body", False)

        buffered = b"".join(chunks)
        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": buffered, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _reject(
        self, scope: Scope, receive: Receive, send: Send, headers: Headers, size: str
    ) -> None:
        error = PayloadTooLargeError(limit=self.max_body_size)
        logger.warning(
            "Rejected %s %s: body of %s bytes exceeds %d",
            scope["method"], scope["path"], size, self.max_body_size,
        )
        # Runs outside RequestIDMiddleware, so the ID is resolved here
        rid = request_id_from(headers)
        response = JSONResponse(
            status_code=413,
            content={
                "error": "payload_too_large",
                "message": error.message,
                "request_id": rid,
            },
            headers={"X-Request-ID": rid},
        )
        await response(scope, receive, send)
