"""Session/auth gate: signup, login, token authentication, logout.

Users are persisted in the ``users`` collection with a salted bcrypt
hash of their password; the cleartext password is never stored.
Sessions map an opaque bearer token to a :class:`User` and live only
as long as the :class:`SessionStore` instance (process lifetime, no
expiry, not persisted across restarts).
"""

from __future__ import annotations

import secrets

import bcrypt
import structlog

from src.models.auth import (
    AuthResponse,
    Credentials,
    LoginRequest,
    StoredUser,
    User,
    normalize_email,
)
from src.services.errors import Conflict, Unauthorized
from src.services.record_store import Collection
from src.services.storage import StorageBackend

logger = structlog.get_logger(__name__)

USERS_COLLECTION = "users"


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Hash a password using bcrypt with a fresh salt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"), hashed_password.encode("utf-8")
        )
    except ValueError:
        # Malformed stored hash.
        return False


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class UserRepository(Collection[StoredUser]):
    """Registered users keyed by normalised email."""

    def __init__(self, backend: StorageBackend) -> None:
        super().__init__(backend, USERS_COLLECTION, StoredUser)

    async def find_by_email(self, email: str) -> StoredUser | None:
        email = normalize_email(email)
        for user in await self._read():
            if user.email == email:
                return user
        return None

    async def add(self, user: StoredUser) -> StoredUser:
        """Persist *user*, raising :class:`Conflict` if the email is taken."""
        users = await self._read()
        if any(u.email == user.email for u in users):
            raise Conflict("User already exists")
        users.append(user)
        await self._write(users)
        return user


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionStore:
    """In-memory token -> identity map.

    Constructed once at startup and injected wherever tokens are issued
    or checked; tests build isolated instances.
    """

    __slots__ = ("_sessions",)

    def __init__(self) -> None:
        self._sessions: dict[str, User] = {}

    def issue(self, user: User) -> str:
        token = secrets.token_urlsafe(32)
        self._sessions[token] = user
        return token

    def resolve(self, token: str) -> User | None:
        return self._sessions.get(token)

    def revoke(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


# ---------------------------------------------------------------------------
# Auth service
# ---------------------------------------------------------------------------


class AuthService:
    """Issues and validates bearer tokens for registered users.

    States per token: anonymous -> authenticated (signup/login) ->
    anonymous (logout).
    """

    __slots__ = ("_bcrypt_rounds", "_sessions", "_users")

    def __init__(
        self,
        users: UserRepository,
        sessions: SessionStore,
        *,
        bcrypt_rounds: int = 12,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._bcrypt_rounds = bcrypt_rounds

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def signup(self, credentials: Credentials) -> AuthResponse:
        """Register a new user and open a session for it.

        Raises :class:`Conflict` if the email is already registered.
        """
        if await self._users.find_by_email(credentials.email) is not None:
            logger.info("auth.signup_conflict")
            raise Conflict("User already exists")

        stored = await self._users.add(
            StoredUser(
                email=normalize_email(credentials.email),
                password_hash=hash_password(
                    credentials.password, rounds=self._bcrypt_rounds
                ),
            )
        )
        user = stored.public()
        token = self._sessions.issue(user)
        logger.info("auth.signup", user_id=user.id)
        return AuthResponse(user=user, token=token)

    async def login(self, credentials: LoginRequest) -> AuthResponse:
        """Open a session for an existing user.

        Unknown email and wrong password both raise :class:`Unauthorized`
        with the same message.
        """
        stored = await self._users.find_by_email(credentials.email)
        if stored is None or not verify_password(credentials.password, stored.password_hash):
            logger.info("auth.login_rejected")
            raise Unauthorized("Invalid credentials")

        user = stored.public()
        token = self._sessions.issue(user)
        logger.info("auth.login", user_id=user.id)
        return AuthResponse(user=user, token=token)

    def authenticate(self, token: str | None) -> User:
        """Resolve a currently-issued *token* to its user."""
        if not token:
            raise Unauthorized("Missing bearer token")
        user = self._sessions.resolve(token)
        if user is None:
            raise Unauthorized("Invalid or expired token")
        return user

    def logout(self, token: str) -> None:
        """Invalidate *token*; later :meth:`authenticate` calls fail."""
        if self._sessions.revoke(token):
            logger.info("auth.logout")
