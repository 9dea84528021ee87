"""
eLabel API — Shared Route Dependencies

`get_current_user` guards routes that need a signed-in user. It accepts
`Authorization: Bearer <token>`; a missing header is "no token", anything
that fails verification is "token failed".
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from elabel.database import get_db_session
from elabel.exceptions import AuthenticationError
from elabel.models.user import User
from elabel.services.auth_service import auth_service

# auto_error=False: a missing header is reported with our own 401 body
bearer_scheme = HTTPBearer(auto_error=False, description="JWT from signup, login or Google sign-in")


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(message="Not authorized, no token")
    return await auth_service.user_from_token(db, credentials.credentials)
