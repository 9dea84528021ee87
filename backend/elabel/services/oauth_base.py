"""
eLabel API — Abstract Federated Sign-In Provider
=================================================

What:  The contract the auth router relies on for the two legs of an OAuth
       authorization-code flow, and the normalized profile it produces.
Why:   The router never talks to Authlib directly. The concrete provider is
       built once from settings in `create_app()` and handed to the router,
       so tests swap in a fake provider without patching module state.
How:   Concrete implementations (GoogleAuthProvider) inherit from
       OAuthProvider and implement both coroutines.
Who:   elabel.routes.auth; AuthService.resolve_oauth_user consumes the
       OAuthProfile.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from starlette.requests import Request
from starlette.responses import Response

UNKNOWN_NAME = "Unknown"


@dataclass(frozen=True)
class OAuthProfile:
    """
    Identity claims returned by the provider, before any local user exists.

    first_name/last_name are already resolved: given/family name claims
    first, then a split of the display name, then "Unknown".
    """

    email: Optional[str]
    first_name: str
    last_name: str
    email_verified: Optional[bool] = None
    subject: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "OAuthProfile":
        display = (claims.get("name") or "").split()
        first = claims.get("given_name") or (display[0] if display else "") or UNKNOWN_NAME
        last = (
            claims.get("family_name")
            or (" ".join(display[1:]) if len(display) > 1 else "")
            or UNKNOWN_NAME
        )
        email = claims.get("email") or None
        return cls(
            email=email.strip() if email else None,
            first_name=first.strip(),
            last_name=last.strip(),
            email_verified=claims.get("email_verified"),
            subject=claims.get("sub"),
        )


class OAuthProvider(ABC):
    """
    Abstract interface for a federated identity provider.

    Contract:
        - authorize_redirect() starts the flow and returns the redirect
          response to the provider's consent page
        - fetch_profile() completes the flow on the callback request and
          returns the caller's profile
        - Provider and transport failures are raised as elabel OAuthError
          so the router can redirect to the front-end error page
    """

    name: str = "oauth"

    @abstractmethod
    async def authorize_redirect(self, request: Request) -> Response:
        """
        Redirect the browser to the provider.

        State for the callback (CSRF state, nonce) is kept in
        `request.session`, so SessionMiddleware must be installed.
        """
        ...

    @abstractmethod
    async def fetch_profile(self, request: Request) -> OAuthProfile:
        """
        Exchange the authorization code on the callback request.

        Raises:
            OAuthError: state mismatch, denied consent, token exchange or
                userinfo failure.
        """
        ...
