"""
eLabel API — Rate Limiting and Slow-Down Middleware
====================================================

What:  Two per-IP throttles in front of every route:
       RateLimitMiddleware rejects a client above N requests per window,
       SlowDownMiddleware delays a client's requests after M per window.
Why:   Labels are looked up by guessable codes; throttling makes bulk
       enumeration slow and keeps a single client from starving the rest.
How:   Both share FixedWindowCounter, an in-memory hit counter keyed by
       client IP.
When:  Just inside CORS, so a 429 still carries the CORS headers and
       preflights are answered before they reach a counter.

Algorithm: Fixed Window Counter
    1. A client's window opens at its first request and lasts `window` s
    2. Each request increments the client's hit count
    3. When the window has elapsed, the next request opens a new window
       with a count of 1
    Retry-After for a rejected request is the time left until the client's
    window closes, rounded up.

Slow-down schedule (defaults: after 10 hits, 200 ms step, 5 s cap):
    hits 1..10 → no delay
    hit 11     → 2200 ms
    hit 12     → 2400 ms
    ...
    hit 25+    → 5000 ms

Production Upgrade Path:
    Counters live in process memory. With several workers or instances
    each one counts separately, so the effective limit is multiplied.
    A shared store (Redis INCR + EXPIRE) is needed for a global limit.
"""

import asyncio
import logging
import math
import time
from typing import Awaitable, Callable, Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from elabel.config import settings
from elabel.exceptions import RateLimitExceededError
from elabel.middleware.request_id import request_id_from

logger = logging.getLogger(__name__)

# Paths never throttled: container health checks and the API docs
EXEMPT_PATHS = frozenset({"/health", "/docs", "/openapi.json", "/redoc"})

# Sweep expired windows once this many clients are tracked
_PRUNE_THRESHOLD = 10_000


def is_exempt(request: Request) -> bool:
    # CORS answers real preflights first; any OPTIONS that gets here is not counted
    return request.method == "OPTIONS" or request.url.path in EXEMPT_PATHS


def client_ip(request: Request) -> str:
    # Behind a proxy this is the proxy's address; configure uvicorn's
    # --forwarded-allow-ips so request.client carries the real client
    return request.client.host if request.client else "unknown"


class FixedWindowCounter:
    """
    Hit counter with an independent fixed window per key.

    `clock` is injectable so tests can move time without sleeping.
    """

    def __init__(self, window_seconds: float, clock: Callable[[], float] = time.time):
        self.window_seconds = window_seconds
        self._clock = clock
        # key → (window start, hits in window)
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> Tuple[int, float]:
        """
        Record one request for `key`.

        Returns:
            (hits in the current window including this one,
             seconds until the window closes)
        """
        now = self._clock()
        start, hits = self._windows.get(key, (now, 0))
        if now - start >= self.window_seconds:
            start, hits = now, 0
        hits += 1
        self._windows[key] = (start, hits)

        if len(self._windows) > _PRUNE_THRESHOLD:
            self.prune()

        return hits, start + self.window_seconds - now

    def prune(self) -> int:
        """Drop keys whose window has closed; returns how many were dropped."""
        now = self._clock()
        expired = [
            key for key, (start, _) in self._windows.items()
            if now - start >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("Pruned %d expired rate-limit windows", len(expired))
        return len(expired)

    def reset(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects a client's requests above `max_requests` per window.

    Configuration (defaults from settings):
        max_requests:   RATE_LIMIT_REQUESTS (100)
        window_seconds: RATE_LIMIT_WINDOW (900 = 15 minutes)

    Response on rate limit:
        HTTP 429 with a Retry-After header and the JSON error envelope
    """

    def __init__(
        self,
        app: ASGIApp,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(app)
        self.max_requests = max_requests if max_requests is not None else settings.rate_limit_requests
        self.counter = FixedWindowCounter(
            window_seconds if window_seconds is not None else settings.rate_limit_window,
            clock=clock,
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if is_exempt(request):
            return await call_next(request)

        ip = client_ip(request)
        hits, remaining = self.counter.hit(ip)

        if hits > self.max_requests:
            error = RateLimitExceededError(retry_after=max(1, math.ceil(remaining)))
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                ip, hits, self.counter.window_seconds,
            )
            # Runs outside RequestIDMiddleware, so the ID is resolved here
            rid = request_id_from(request.headers)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": error.message,
                    "request_id": rid,
                },
                headers={"Retry-After": str(error.retry_after), "X-Request-ID": rid},
            )

        return await call_next(request)


class SlowDownMiddleware(BaseHTTPMiddleware):
    """
    Delays a client's requests after `delay_after` hits per window.

    Each further request waits `hits * delay_ms` (the full hit count, not
    the excess), capped at `max_delay_ms`. The request is still served;
    only its start is delayed. `sleep` is injectable so tests can record
    delays instead of waiting.
    """

    def __init__(
        self,
        app: ASGIApp,
        delay_after: Optional[int] = None,
        window_seconds: Optional[float] = None,
        delay_ms: Optional[int] = None,
        max_delay_ms: Optional[int] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(app)
        self.delay_after = delay_after if delay_after is not None else settings.slow_down_after
        self.delay_ms = delay_ms if delay_ms is not None else settings.slow_down_delay_ms
        self.max_delay_ms = max_delay_ms if max_delay_ms is not None else settings.slow_down_max_delay_ms
        self.counter = FixedWindowCounter(
            window_seconds if window_seconds is not None else settings.slow_down_window,
            clock=clock,
        )
        self._sleep = sleep

    def delay_for(self, hits: int) -> int:
        """Delay in milliseconds for the `hits`-th request of a window."""
        if hits <= self.delay_after:
            return 0
        return min(hits * self.delay_ms, self.max_delay_ms)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if is_exempt(request):
            return await call_next(request)

        hits, _ = self.counter.hit(client_ip(request))
        delay_ms = self.delay_for(hits)
        if delay_ms:
            logger.debug("Slowing down %s by %dms (hit %d)", client_ip(request), delay_ms, hits)
            await self._sleep(delay_ms / 1000)

        return await call_next(request)
