"""
eLabel API — Password Hashing and Access Tokens
================================================

What:  bcrypt password hashing and HS256 JWT issue/verify.
Who:   AuthService (signup, login, OAuth user creation) and the bearer-token
       dependency guarding /api/auth/me.

Token format:
    {"id": "<user uuid>", "iat": <issued>, "exp": <issued + JWT_EXPIRES_DAYS>}
    The same token is returned by signup, login and the Google callback.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from elabel.config import settings
from elabel.exceptions import AuthenticationError

JWT_ALGORITHM = "HS256"

# bcrypt only looks at the first 72 bytes and newer releases refuse longer
# input, so both hashing and checking truncate to the same prefix.
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("ascii"))
    except ValueError:
        # Malformed stored hash
        return False


def generate_placeholder_password() -> str:
    """Opaque random password for accounts created by federated sign-in."""
    return "google-oauth-" + secrets.token_urlsafe(24)


def create_access_token(user_id: uuid.UUID) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": str(user_id),
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> uuid.UUID:
    """
    Verifies signature and expiry and returns the user id.

    Raises:
        AuthenticationError: bad signature, expired, or malformed claims.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "id"]},
        )
        return uuid.UUID(str(payload["id"]))
    except (jwt.PyJWTError, ValueError) as e:
        raise AuthenticationError(
            message="Not authorized, token failed",
            context={"error_type": type(e).__name__},
        ) from e
