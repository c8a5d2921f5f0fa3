"""Shared API dependencies.

Provides authentication, role checks, rate limiting and service wiring
as injectable FastAPI dependencies.
"""

from __future__ import annotations

import hashlib
import uuid
from collections.abc import Callable
from typing import Any

import redis.asyncio as aioredis
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.dependencies import chat_rate_limiter, get_redis, login_rate_limiter
from app.exceptions import AuthenticationError, PermissionDeniedError
from app.logging_config import get_logger
from db.models import User, UserRole
from db.session import get_db_session
from services.auth import decode_access_token, is_token_revoked
from services.candidate_store import SqlCandidateStore
from services.matcher import Matcher

logger = get_logger(__name__)

_bearer = HTTPBearer(auto_error=False)


def _client_hash(request: Request) -> str:
    """Anonymized client identifier for rate limiting."""
    client_ip = request.client.host if request.client else "unknown"
    return hashlib.sha256(client_ip.encode()).hexdigest()[:16]


async def get_token_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    redis: aioredis.Redis = Depends(get_redis),
) -> dict[str, Any]:
    """Validated claims of the Bearer token. Revoked tokens are rejected."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")

    claims = decode_access_token(credentials.credentials)
    if await is_token_revoked(claims, redis):
        raise AuthenticationError("Token has been revoked")
    return claims


async def get_current_user(
    claims: dict[str, Any] = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Resolve the authenticated user from the Bearer token."""
    try:
        user_id = uuid.UUID(str(claims.get("sub")))
    except ValueError as exc:
        raise AuthenticationError("Invalid token") from exc

    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory restricting an endpoint to the given roles."""

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.info("role_check_failed", role=user.role.value)
            raise PermissionDeniedError("Insufficient permissions")
        return user

    return _check


require_volunteer = require_roles(UserRole.VOLUNTEER)
require_organization = require_roles(UserRole.NGO, UserRole.GOVERNMENT, UserRole.ADMIN)


async def rate_limit_login(
    request: Request,
    redis: aioredis.Redis = Depends(get_redis),
) -> None:
    """Per-IP rate limiting for login attempts."""
    await login_rate_limiter.check(_client_hash(request), redis)


async def rate_limit_chat(
    user: User = Depends(get_current_user),
    redis: aioredis.Redis = Depends(get_redis),
) -> None:
    """Per-user rate limiting for chatbot messages."""
    await chat_rate_limiter.check(str(user.id), redis)


def get_matcher(db: AsyncSession = Depends(get_db_session)) -> Matcher:
    """Matcher reading candidates from the request's DB session."""
    return Matcher(SqlCandidateStore(db), candidate_limit=None)


def clamp_match_limit(limit: int) -> int:
    """Cap a requested match count at the configured maximum."""
    return min(limit, get_settings().max_match_limit)
