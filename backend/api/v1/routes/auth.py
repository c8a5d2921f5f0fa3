"""Account endpoints.

POST /api/v1/auth/register         - Create an account
POST /api/v1/auth/login            - Exchange credentials for a token
POST /api/v1/auth/verify-email     - Confirm an email address
POST /api/v1/auth/change-password  - Replace the current password
GET  /api/v1/auth/me               - Current user
POST /api/v1/auth/refresh          - Rotate the access token
POST /api/v1/auth/logout           - Revoke the access token
DELETE /api/v1/auth/account        - Delete the account (password confirmed)
"""

from __future__ import annotations

from typing import Any

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_token_claims, rate_limit_login
from api.v1.serializers import user_to_dict
from app.dependencies import get_redis
from db.models import User, UserRole
from db.session import get_db_session
from services.auth import AuthService, RegistrationData, revoke_token

router = APIRouter()

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.VOLUNTEER
    organization_name: str | None = Field(None, max_length=200)
    organization_type: str | None = Field(None, max_length=50)


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)


class DeleteAccountRequest(BaseModel):
    password: str = Field(..., min_length=1, max_length=128)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)


@router.post("/auth/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Register a volunteer or organization account.

    A verification email is sent; the account can be used right away.
    """
    user, token = await AuthService(db).register(RegistrationData(**request.model_dump()))
    return {
        "message": "User registered successfully. Please check your email for verification.",
        "user": user_to_dict(user),
        "token": token,
    }


@router.post("/auth/login")
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
    _rate_limit: None = Depends(rate_limit_login),
) -> dict:
    user, token = await AuthService(db).login(request.email, request.password)
    return {"message": "Login successful", "user": user_to_dict(user), "token": token}


@router.post("/auth/verify-email")
async def verify_email(
    request: VerifyEmailRequest,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await AuthService(db).verify_email(request.token)
    return {"message": "Email verified successfully"}


@router.post("/auth/change-password")
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await AuthService(db).change_password(user, request.current_password, request.new_password)
    return {"message": "Password changed successfully"}


@router.get("/auth/me")
async def me(user: User = Depends(get_current_user)) -> dict:
    return {"user": user_to_dict(user)}


@router.post("/auth/refresh")
async def refresh_token(
    claims: dict[str, Any] = Depends(get_token_claims),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    redis: aioredis.Redis = Depends(get_redis),
) -> dict:
    """Exchange a valid token for a fresh one. The presented token is revoked."""
    token = AuthService(db).refresh_token(user)
    await revoke_token(claims, redis)
    return {"message": "Token refreshed successfully", "token": token}


@router.post("/auth/logout")
async def logout(
    claims: dict[str, Any] = Depends(get_token_claims),
    redis: aioredis.Redis = Depends(get_redis),
) -> dict:
    await revoke_token(claims, redis)
    return {"message": "Logout successful"}


@router.delete("/auth/account")
async def delete_account(
    request: DeleteAccountRequest,
    claims: dict[str, Any] = Depends(get_token_claims),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    redis: aioredis.Redis = Depends(get_redis),
) -> dict:
    """Delete the current account. The password must be confirmed."""
    await AuthService(db).delete_account(user, request.password)
    await revoke_token(claims, redis)
    return {"message": "Account deleted successfully"}
