"""
eLabel API — Authentication Route Handlers
===========================================

What:  Local signup/login, the current-user endpoint, and the two legs of
       Google sign-in.
How:   `build_router(provider)` returns the router bound to the OAuth
       provider constructed in `create_app()`. With no provider (Google
       credentials not configured) the Google routes still exist and
       redirect to the front-end error page.

Endpoints:
    POST /api/auth/signup           → 201 {id, firstName, lastName, email, token}
    POST /api/auth/login            → 200 {id, firstName, lastName, email, token}
    GET  /api/auth/me               → 200 user (Bearer token required)
    GET  /api/auth/google           → 302 to Google
    GET  /api/auth/google/callback  → 302 to {frontend}/oauth-callback?token=...
    GET  /api/auth/health           → 200 {"status": "ok"}
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from elabel.config import settings
from elabel.database import get_db_session
from elabel.dependencies import get_current_user
from elabel.exceptions import OAuthError
from elabel.models.user import User
from elabel.schemas.auth import AuthResponse, LoginRequest, SignupRequest, UserResponse
from elabel.schemas.common import ErrorResponse, StatusResponse, ValidationErrorResponse
from elabel.security import create_access_token
from elabel.services.auth_service import auth_service
from elabel.services.google_oauth import (
    FRONTEND_SESSION_KEY,
    error_redirect_url,
    frontend_origin_from_referer,
    resolve_frontend_url,
    success_redirect_url,
)
from elabel.services.oauth_base import OAuthProvider

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Google sign-in is not configured"


def allowed_frontend_origins() -> list:
    """Front ends a token may be redirected to."""
    return settings.frontend_urls_list + settings.cors_origins_list


def build_router(provider: Optional[OAuthProvider]) -> APIRouter:
    router = APIRouter(prefix="/api/auth", tags=["Auth"])

    @router.post(
        "/signup",
        status_code=201,
        response_model=AuthResponse,
        responses={
            400: {"description": "Invalid signup data", "model": ValidationErrorResponse},
            409: {"description": "Email already registered", "model": ErrorResponse},
        },
        summary="Register with email and password",
    )
    async def signup(
        payload: SignupRequest,
        db: AsyncSession = Depends(get_db_session),
    ) -> AuthResponse:
        return await auth_service.signup(db, payload)

    @router.post(
        "/login",
        response_model=AuthResponse,
        responses={
            400: {"description": "Invalid login data", "model": ValidationErrorResponse},
            401: {"description": "Invalid email or password", "model": ErrorResponse},
        },
        summary="Log in with email and password",
    )
    async def login(
        payload: LoginRequest,
        db: AsyncSession = Depends(get_db_session),
    ) -> AuthResponse:
        return await auth_service.login(db, payload)

    @router.get(
        "/me",
        response_model=UserResponse,
        responses={401: {"description": "Missing or invalid token", "model": ErrorResponse}},
        summary="Current user",
    )
    async def me(user: User = Depends(get_current_user)) -> UserResponse:
        return UserResponse.from_model(user)

    @router.get("/google", summary="Start Google sign-in")
    async def google_login(request: Request) -> Response:
        # Remember which front end started the flow; the callback request
        # comes from Google and carries no useful Referer
        origin = frontend_origin_from_referer(
            request.headers.get("referer"), allowed_frontend_origins()
        )
        if origin:
            request.session[FRONTEND_SESSION_KEY] = origin
        else:
            request.session.pop(FRONTEND_SESSION_KEY, None)

        if provider is None:
            return _error_redirect(request, OAuthError(message=NOT_CONFIGURED_MESSAGE))
        try:
            return await provider.authorize_redirect(request)
        except OAuthError as e:
            return _error_redirect(request, e)

    @router.get("/google/callback", summary="Google sign-in callback")
    async def google_callback(
        request: Request,
        db: AsyncSession = Depends(get_db_session),
    ) -> Response:
        if provider is None:
            return _error_redirect(request, OAuthError(message=NOT_CONFIGURED_MESSAGE))
        try:
            profile = await provider.fetch_profile(request)
            user = await auth_service.resolve_oauth_user(db, profile)
        except OAuthError as e:
            return _error_redirect(request, e)

        frontend = _frontend_url(request)
        request.session.pop(FRONTEND_SESSION_KEY, None)
        logger.info("Google sign-in complete for user %s", user.id)
        return RedirectResponse(
            success_redirect_url(frontend, create_access_token(user.id)),
            status_code=302,
        )

    @router.get("/health", response_model=StatusResponse, summary="Auth router health")
    async def auth_health() -> StatusResponse:
        return StatusResponse()

    return router


def _frontend_url(request: Request) -> str:
    return resolve_frontend_url(
        request.session.get(FRONTEND_SESSION_KEY), settings.frontend_urls_list
    )


def _error_redirect(request: Request, error: OAuthError) -> RedirectResponse:
    logger.warning("Google sign-in failed: %s", error.message)
    return RedirectResponse(
        error_redirect_url(_frontend_url(request), error.message),
        status_code=302,
    )
