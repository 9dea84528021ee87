"""
eLabel API — FastAPI Application Factory
=========================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, error mapping
       and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   uvicorn (`elabel.main:app`, or `python -m elabel`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                        FastAPI App                           │
    │                                                              │
    │  Middleware Chain (outermost first):                         │
    │   CORS → RateLimit → SlowDown → BodyLimit → RequestID        │
    │   → Logging → Session → SecurityHeaders → GZip               │
    │                                                              │
    │  Routes:                                                     │
    │   /api/labels/*   /api/templates/*   /api/auth/*   /health   │
    │                                                              │
    │  Exception Handlers:                                         │
    │   Validation→400  Auth→401  NotFound→404  Conflict→409       │
    │   Database→500    OAuth→redirect        anything else→500    │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging (stdout, optional rotating access log)
    2. Validate configuration; missing secrets abort startup
    3. Probe the store with retries; an unreachable store aborts startup
    4. Install the event-loop exception handler (log, then SIGTERM self)

    Shutdown (uvicorn has already drained in-flight requests):
    1. Dispose the database engine within SHUTDOWN_TIMEOUT
    2. If that hangs, log and force exit with status 1
"""

import asyncio
import logging
import os
import secrets
import signal
import sys
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from elabel import __version__
from elabel.config import settings
from elabel.database import dispose_engine, verify_connection
from elabel.exceptions import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    ELabelError,
    NotFoundError,
    OAuthError,
    PayloadTooLargeError,
    RateLimitExceededError,
    ValidationError,
)
from elabel.middleware.body_limit import BodySizeLimitMiddleware
from elabel.middleware.logging import ACCESS_LOGGER_NAME, RequestLoggingMiddleware
from elabel.middleware.rate_limit import RateLimitMiddleware, SlowDownMiddleware
from elabel.middleware.request_id import RequestIDMiddleware, request_id_var
from elabel.middleware.security_headers import SecurityHeadersMiddleware
from elabel.routes import auth, health, labels, templates
from elabel.services.google_oauth import (
    GoogleAuthProvider,
    error_redirect_url,
    resolve_frontend_url,
)
from elabel.services.oauth_base import OAuthProvider
from elabel.validation import format_errors

logger = logging.getLogger(__name__)

# Rotating access log: 10 MB per file, 7 rotated files kept
ACCESS_LOG_MAX_BYTES = 10 * 1024 * 1024
ACCESS_LOG_BACKUPS = 7


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    What:    Root logger to stdout with one consistent format; the access
             logger additionally to a size-rotated file when
             ACCESS_LOG_DIR is set.
    When:    Called once during startup, before anything else logs.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Our access logger replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if settings.access_log_dir:
        log_dir = Path(settings.access_log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
        log_file = log_dir / "access.log"
        # Lifespan may run more than once per process under tests
        if not any(
            isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == log_file.resolve()
            for h in access_logger.handlers
        ):
            handler = RotatingFileHandler(
                log_file,
                maxBytes=ACCESS_LOG_MAX_BYTES,
                backupCount=ACCESS_LOG_BACKUPS,
                encoding="utf-8",
            )
            handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
            access_logger.addHandler(handler)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

def handle_loop_exception(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
    """
    Event-loop exception handler: an exception nobody awaited.

    The process state is unknown afterwards, so log it and ask uvicorn for
    a graceful shutdown via SIGTERM.
    """
    exc = context.get("exception")
    logger.critical(
        "Unhandled exception in event loop: %s",
        context.get("message", "no message"),
        exc_info=exc if isinstance(exc, BaseException) else None,
    )
    os.kill(os.getpid(), signal.SIGTERM)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("eLabel API %s starting up (%s)...", __version__, settings.environment)

    try:
        settings.validate_required()
    except ValueError as e:
        logger.critical("Configuration error: %s", str(e))
        raise

    try:
        await verify_connection()
    except Exception:
        logger.critical("Database unreachable after %d attempts", settings.retry_max_attempts, exc_info=True)
        raise

    asyncio.get_running_loop().set_exception_handler(handle_loop_exception)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("eLabel API shutting down...")
    try:
        await dispose_engine(timeout=settings.shutdown_timeout)
    except asyncio.TimeoutError:
        logger.critical("Shutdown timed out. Forcing exit.")
        os._exit(1)
    logger.info("Database connection closed. Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> Optional[str]:
    # The catch-all handler runs outside RequestIDMiddleware, where only
    # request.state still holds the ID
    return getattr(request.state, "request_id", None) or request_id_var.get() or None


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> JSONResponse:
    content: Dict[str, Any] = {"error": error, "message": message}
    content.update(extra)
    content["request_id"] = _request_id(request)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and the JSON error envelope.

    Handler hierarchy:
        ValidationError / RequestValidationError → 400 with field errors
        AuthenticationError    → 401
        NotFoundError          → 404
        ConflictError          → 409
        PayloadTooLargeError   → 413
        RateLimitExceededError → 429 + Retry-After
        DatabaseError          → 500 (generic message)
        OAuthError             → 302 to the front-end login error page
        ELabelError (base)     → 500
        HTTPException          → its own status (unknown route, bad method)
        Exception (fallback)   → 500, stack trace logged

    Security: responses never include stack traces, SQL or context dicts;
    those are logged server-side.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = format_errors(exc.errors())
        return await handle_validation_error(request, ValidationError(errors=errors))

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning(
            "[%s] Validation failed on %s %s: %s",
            _request_id(request), request.method, request.url.path,
            ", ".join(e["field"] for e in exc.errors),
        )
        return _error_response(
            request, 400, "validation_error", exc.message, errors=exc.errors
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication(request: Request, exc: AuthenticationError):
        return _error_response(request, 401, "not_authorized", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(request, 404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        extra = {"field": exc.field} if exc.field else {}
        return _error_response(request, 409, "conflict", exc.message, **extra)

    @app.exception_handler(PayloadTooLargeError)
    async def handle_payload_too_large(request: Request, exc: PayloadTooLargeError):
        return _error_response(request, 413, "payload_too_large", exc.message)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error_response(
            request, 429, "rate_limit_exceeded", exc.message,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", _request_id(request), exc.message, exc.context)
        return _error_response(
            request, 500, "server_error",
            "An internal error occurred. Please try again later.",
        )

    @app.exception_handler(OAuthError)
    async def handle_oauth_error(request: Request, exc: OAuthError):
        frontend = resolve_frontend_url(
            request.session.get("frontend_url") if "session" in request.scope else None,
            settings.frontend_urls_list,
        )
        return RedirectResponse(error_redirect_url(frontend, exc.message), status_code=302)

    @app.exception_handler(ELabelError)
    async def handle_elabel_error(request: Request, exc: ELabelError):
        logger.error("[%s] Unhandled application error: %s | Context: %s", _request_id(request), exc.message, exc.context)
        return _error_response(request, 500, "server_error", exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        error = "not_found" if exc.status_code == 404 else "http_error"
        message = f"Not Found - {request.url.path}" if exc.status_code == 404 else str(exc.detail)
        return _error_response(request, exc.status_code, error, message, headers=exc.headers)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            _request_id(request),
            str(exc),
            exc_info=True,
        )
        return _error_response(
            request, 500, "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

# Marker for "build the Google provider from settings"
_FROM_SETTINGS: Any = object()


def create_app(oauth_provider: Optional[OAuthProvider] = _FROM_SETTINGS) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        oauth_provider: Federated sign-in provider for /api/auth/google.
            Omitted: built from the Google settings (None when they are
            empty). Tests pass a fake provider, or None to disable it.
    """
    if oauth_provider is _FROM_SETTINGS:
        oauth_provider = GoogleAuthProvider.from_settings(settings)

    app = FastAPI(
        title="eLabel API",
        description=(
            "Label data service for clinical-trial kits: create labels, look "
            "them up by identifier, batch, kit or sponsor/trial, read label "
            "templates, and authenticate users."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition (last added runs
    # first), so this list reads innermost → outermost.

    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(SecurityHeadersMiddleware, strict=settings.environment != "development")
    # Holds OAuth state and the calling front end between /google and the callback
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret or secrets.token_urlsafe(32),
        session_cookie="elabel_session",
        max_age=60 * 60,
        same_site="lax",
        https_only=settings.is_production,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(BodySizeLimitMiddleware)
    app.add_middleware(SlowDownMiddleware)
    app.add_middleware(RateLimitMiddleware)
    # Outermost: throttle and body-limit rejections still carry CORS headers,
    # and preflights are answered before they reach a counter
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["X-Request-ID", "Retry-After"],
        max_age=86400,
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(labels.router)
    app.include_router(templates.router)
    app.include_router(auth.build_router(oauth_provider))
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `elabel.main:app` to be importable
app = create_app()
