"""
eLabel API — Authentication Schemas
====================================

What:  Signup/login request bodies and the identity payloads returned to
       the front end.
Why:   Field checks carry the exact messages the front end displays, so
       missing and empty values report the same text ("First name is
       required") instead of Pydantic's generic "Field required".
"""

import uuid
from datetime import datetime

from email_validator import EmailNotValidError, validate_email
from pydantic import ConfigDict, Field, field_validator

from elabel.models.user import User
from elabel.schemas.base import CamelModel

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128


def normalize_email(value: str) -> str:
    """Validates the shape of an address and lowercases it."""
    try:
        result = validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ValueError("Please include a valid email") from None
    return result.normalized.lower()


class SignupRequest(CamelModel):
    # Passwords are taken verbatim; names are stripped by their validators
    model_config = ConfigDict(str_strip_whitespace=False)

    first_name: str = Field(default="", max_length=100, validate_default=True)
    last_name: str = Field(default="", max_length=100, validate_default=True)
    email: str = Field(default="", validate_default=True)
    password: str = Field(default="", validate_default=True)

    @field_validator("first_name")
    @classmethod
    def first_name_present(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("First name is required")
        return value

    @field_validator("last_name")
    @classmethod
    def last_name_present(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Last name is required")
        return value

    @field_validator("email")
    @classmethod
    def email_shape(cls, value: str) -> str:
        return normalize_email(value.strip())

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError("Please enter a password with 6 or more characters")
        if len(value) > MAX_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_LENGTH} characters")
        return value


class LoginRequest(CamelModel):
    email: str = Field(default="", validate_default=True)
    password: str = Field(default="", validate_default=True)

    model_config = ConfigDict(str_strip_whitespace=False)

    @field_validator("email")
    @classmethod
    def email_shape(cls, value: str) -> str:
        return normalize_email(value.strip())

    @field_validator("password")
    @classmethod
    def password_present(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value


class UserResponse(CamelModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    created_at: datetime

    @classmethod
    def from_model(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            created_at=user.created_at,
        )


class AuthResponse(CamelModel):
    """Returned by signup and login: the identity plus a bearer token."""

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    token: str

    @classmethod
    def for_user(cls, user: User, token: str) -> "AuthResponse":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            token=token,
        )
