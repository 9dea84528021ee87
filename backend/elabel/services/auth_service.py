"""
eLabel API — Authentication Service
====================================

What:  Local signup/login, bearer-token user lookup, and resolution of a
       federated (Google) profile to a local user.
Who:   elabel.routes.auth and the `get_current_user` dependency.

Accounts:
    One user per email address (stored lowercased). A Google sign-in with
    an email that already has an account signs into that account; an
    unknown email creates one with a random placeholder password.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from elabel.exceptions import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    OAuthError,
)
from elabel.models.user import User
from elabel.schemas.auth import AuthResponse, LoginRequest, SignupRequest
from elabel.security import (
    create_access_token,
    decode_access_token,
    generate_placeholder_password,
    hash_password,
    verify_password,
)
from elabel.services.oauth_base import OAuthProfile

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


class AuthService:
    """
    Business logic for user accounts.

    Error Handling Strategy:
        Credential problems raise AuthenticationError (401) with a message
        that does not reveal whether the email exists. Google sign-in
        problems raise OAuthError, which the router turns into a redirect.
    """

    async def signup(self, db: AsyncSession, payload: SignupRequest) -> AuthResponse:
        """
        Create a local account and return it with a fresh token.

        Raises:
            ConflictError: email already registered (→ 409 "User already exists")
            DatabaseError: insert failed (→ 500)
        """
        if await self.get_user_by_email(db, payload.email) is not None:
            raise ConflictError(message="User already exists", field="email")

        user = User(
            email=payload.email,
            password_hash=await run_in_threadpool(hash_password, payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as e:
            raise ConflictError(message="User already exists", field="email") from e
        except SQLAlchemyError as e:
            logger.error("Database error creating user: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__}) from e

        logger.info("User registered: %s", user.id)
        return AuthResponse.for_user(user, create_access_token(user.id))

    async def login(self, db: AsyncSession, payload: LoginRequest) -> AuthResponse:
        """
        Check an email/password pair.

        Raises:
            AuthenticationError: unknown email or wrong password (→ 401)
        """
        user = await self.get_user_by_email(db, payload.email)
        if user is None or not await run_in_threadpool(
            verify_password, payload.password, user.password_hash
        ):
            logger.info("Failed login attempt")
            raise AuthenticationError(message=INVALID_CREDENTIALS_MESSAGE)

        logger.info("User logged in: %s", user.id)
        return AuthResponse.for_user(user, create_access_token(user.id))

    async def user_from_token(self, db: AsyncSession, token: str) -> User:
        """
        Resolve a bearer token to its user.

        Raises:
            AuthenticationError: invalid/expired token, or the user it names
                no longer exists ("Not authorized, token failed")
        """
        user_id = decode_access_token(token)
        user = await self.get_user_by_id(db, user_id)
        if user is None:
            raise AuthenticationError(
                message="Not authorized, token failed",
                context={"user_id": str(user_id)},
            )
        return user

    async def resolve_oauth_user(self, db: AsyncSession, profile: OAuthProfile) -> User:
        """
        Find or create the local user for a federated profile.

        Raises:
            OAuthError: the profile carries no email, or the provider says
                the email is unverified
        """
        if not profile.email:
            raise OAuthError(message="No email provided by Google")
        if profile.email_verified is False:
            raise OAuthError(message="Google account email is not verified")

        email = profile.email.lower()
        user = await self.get_user_by_email(db, email)
        if user is not None:
            logger.info("Existing user signed in with Google: %s", user.id)
            return user

        user = User(
            email=email,
            password_hash=await run_in_threadpool(hash_password, generate_placeholder_password()),
            first_name=profile.first_name,
            last_name=profile.last_name,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Another callback for the same email created the account first
            await db.rollback()
            user = await self.get_user_by_email(db, email)
            if user is None:
                raise OAuthError(message="Could not create account")
            return user
        except SQLAlchemyError as e:
            logger.error("Database error creating OAuth user: %s", str(e), exc_info=True)
            raise OAuthError(
                message="Could not create account",
                context={"error_type": type(e).__name__},
            ) from e

        logger.info("User created from Google sign-in: %s", user.id)
        return user

    async def get_user_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        try:
            result = await db.execute(select(User).where(User.email == email.lower()))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error looking up user: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__}) from e

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> Optional[User]:
        try:
            result = await db.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error looking up user: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__}) from e


auth_service = AuthService()
