"""Bearer-token authentication for protected endpoints.

Provides FastAPI dependencies that read ``Authorization: Bearer <token>``
and resolve it through the :class:`~src.services.auth.AuthService` held
on ``app.state.auth``.  Any missing, unknown or revoked token is a 401.
"""

from __future__ import annotations

import structlog
from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.models.auth import User
from src.services.auth import AuthService
from src.services.errors import Unauthorized

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_bearer = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> str | None:
    """The raw bearer token, or ``None`` when the header is absent."""
    if credentials is None:
        return None
    return credentials.credentials


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> User:
    """FastAPI dependency returning the caller's identity.

    Usage::

        @router.get("/items")
        async def list_items(user: User = Depends(get_current_user)): ...
    """
    token = credentials.credentials if credentials is not None else None
    try:
        return get_auth_service(request).authenticate(token)
    except Unauthorized as exc:
        logger.info(
            "auth.rejected",
            path=request.url.path,
            reason=str(exc),
        )
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
