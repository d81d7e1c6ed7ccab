"""Authentication endpoints: signup, login, logout, current user."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from src.middleware.auth import get_auth_service, get_bearer_token, get_current_user
from src.models.auth import AuthResponse, Credentials, LoginRequest, User
from src.services.errors import Conflict, Unauthorized

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class UserResponse(BaseModel):
    user: User


class MessageResponse(BaseModel):
    message: str


@router.post("/signup", response_model=AuthResponse)
async def signup(body: Credentials, request: Request) -> AuthResponse:
    """Register a new account and return a session token."""
    try:
        return await get_auth_service(request).signup(body)
    except Conflict as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, request: Request) -> AuthResponse:
    try:
        return await get_auth_service(request).login(body)
    except Unauthorized as exc:
        raise HTTPException(
            status_code=401,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    user: User = Depends(get_current_user),
    token: str | None = Depends(get_bearer_token),
) -> MessageResponse:
    """Invalidate the caller's token."""
    if token:
        get_auth_service(request).logout(token)
    return MessageResponse(message="Logged out")


@router.get("/user", response_model=UserResponse)
async def current_user(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse(user=user)
