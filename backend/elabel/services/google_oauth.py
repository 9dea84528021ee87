"""
eLabel API — Google Sign-In Provider
=====================================

What:  OAuthProvider implementation for Google (OpenID Connect) on Authlib's
       Starlette client, plus the URL helpers for the front-end redirects.
Why:   Authlib handles discovery, state, nonce and ID-token validation;
       this module only adapts it to the OAuthProvider contract and
       translates its errors.

Flow:
    GET /api/auth/google
        → remember the calling front-end origin (Referer) in the session
        → 302 to Google consent page (scope: openid email profile,
          prompt=select_account)
    GET /api/auth/google/callback
        → exchange code, read userinfo claims → OAuthProfile
        → router resolves the local user, then
          302 {frontend}/oauth-callback?token=<jwt>
        on failure
          302 {frontend}/login?error=auth_failed&message=<text>
"""

import logging
from typing import Iterable, Optional
from urllib.parse import quote, urlencode, urlsplit

import httpx
from authlib.integrations.starlette_client import OAuth
from authlib.integrations.starlette_client import OAuthError as AuthlibOAuthError
from starlette.requests import Request
from starlette.responses import Response

from elabel.config import Settings
from elabel.exceptions import OAuthError
from elabel.services.oauth_base import OAuthProfile, OAuthProvider

logger = logging.getLogger(__name__)

GOOGLE_DISCOVERY_URL = "https://accounts.google.com/.well-known/openid-configuration"
GOOGLE_SCOPES = "openid email profile"

# Session key holding the front-end origin between the two legs of the flow
FRONTEND_SESSION_KEY = "frontend_url"


class GoogleAuthProvider(OAuthProvider):
    """Google OpenID Connect sign-in."""

    name = "google"

    def __init__(self, client_id: str, client_secret: str, callback_url: str):
        self.callback_url = callback_url
        self._oauth = OAuth()
        self._client = self._oauth.register(
            name=self.name,
            client_id=client_id,
            client_secret=client_secret,
            server_metadata_url=GOOGLE_DISCOVERY_URL,
            client_kwargs={"scope": GOOGLE_SCOPES},
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["GoogleAuthProvider"]:
        """Returns None when the Google credentials are not configured."""
        if not settings.google_configured:
            logger.warning("Google sign-in disabled: GOOGLE_CLIENT_ID/SECRET not set")
            return None
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            callback_url=settings.resolved_google_callback_url,
        )

    async def authorize_redirect(self, request: Request) -> Response:
        try:
            return await self._client.authorize_redirect(
                request, self.callback_url, prompt="select_account"
            )
        except httpx.HTTPError as e:
            # Discovery document fetch failed
            logger.error("Could not reach Google: %s", str(e))
            raise OAuthError(
                message="Could not reach Google. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

    async def fetch_profile(self, request: Request) -> OAuthProfile:
        try:
            token = await self._client.authorize_access_token(request)
            claims = token.get("userinfo")
            if not claims:
                claims = await self._client.userinfo(token=token)
        except AuthlibOAuthError as e:
            logger.warning("Google rejected the sign-in: %s (%s)", e.error, e.description)
            raise OAuthError(
                message=e.description or e.error or "Google sign-in failed",
                context={"provider_error": e.error},
            ) from e
        except httpx.HTTPError as e:
            logger.error("Google token exchange failed: %s", str(e))
            raise OAuthError(
                message="Could not reach Google. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        return OAuthProfile.from_claims(claims)


# ══════════════════════════════════════════════════════════════════════════
# Front-end redirect helpers
# ══════════════════════════════════════════════════════════════════════════


def origin_of(url: Optional[str]) -> Optional[str]:
    """`https://app.example.com/labels?x=1` → `https://app.example.com`."""
    if not url:
        return None
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def frontend_origin_from_referer(referer: Optional[str], allowed: Iterable[str]) -> Optional[str]:
    """
    Origin of the Referer header if it is one of the allowed front ends.

    Anything else returns None so the callback falls back to the default
    front end and never redirects a token to an arbitrary site.
    """
    origin = origin_of(referer)
    if origin is None:
        return None
    return origin if origin in set(allowed) else None


def resolve_frontend_url(stored: Optional[str], default_urls: Iterable[str]) -> str:
    if stored:
        return stored
    return next(iter(default_urls))


def success_redirect_url(frontend_url: str, token: str) -> str:
    return f"{frontend_url}/oauth-callback?token={quote(token, safe='')}"


def error_redirect_url(frontend_url: str, message: str) -> str:
    query = urlencode({"error": "auth_failed", "message": message}, quote_via=quote)
    return f"{frontend_url}/login?{query}"
