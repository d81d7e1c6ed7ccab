"""User, credential, and session models for the auth gate."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Final
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

_EMAIL_RE: Final[re.Pattern[str]] = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class User(BaseModel):
    """Public identity attached to a session."""

    id: str
    email: str
    created_at: datetime | None = None


class StoredUser(User):
    """A user record as persisted: identity plus a bcrypt password hash."""

    id: str = Field(default_factory=lambda: f"user_{uuid4().hex}")
    created_at: datetime | None = Field(default_factory=lambda: datetime.now(UTC))
    password_hash: str

    def public(self) -> User:
        return User(id=self.id, email=self.email, created_at=self.created_at)


class Credentials(BaseModel):
    """Signup request body."""

    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=6, max_length=72)

    @field_validator("email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        value = normalize_email(value)
        if not _EMAIL_RE.match(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def _bcrypt_length(cls, value: str) -> str:
        # bcrypt only accepts up to 72 bytes of input.
        if len(value.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return value


class LoginRequest(BaseModel):
    """Login request body.

    Only presence is checked here; a malformed email or short password is
    simply a credential that does not match, and is rejected as such.
    """

    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _normalise(cls, value: str) -> str:
        return normalize_email(value)


class AuthResponse(BaseModel):
    """Returned by signup and login: the identity and its bearer token."""

    user: User
    token: str
