"""Account registration, login and token handling.

SECURITY:
- Passwords are hashed with scrypt (cryptography); plaintext is never stored or logged
- Access tokens are HS256 JWTs signed with the configured secret
- Logout revokes a token by its jti in Redis until the token would expire
- Login failures return the same generic message whatever the cause
"""

from __future__ import annotations

import base64
import os
import secrets
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import redis.asyncio as aioredis
from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from pydantic import BaseModel
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.exceptions import AuthenticationError, ConflictError, ValidationError
from app.logging_config import get_logger
from db.models import (
    ActivityLog,
    Application,
    Notification,
    OrganizationProfile,
    Project,
    ProjectSkill,
    User,
    UserRole,
    VolunteerProfile,
    VolunteerSkill,
)
from services.email_service import send_email

logger = get_logger(__name__)

# scrypt cost parameters (interactive-login strength)
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1
_SALT_SIZE = 16
_KEY_SIZE = 32

MIN_PASSWORD_LENGTH = 8
ORGANIZATION_ROLES = {UserRole.NGO, UserRole.GOVERNMENT}


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def hash_password(password: str) -> str:
    """Hash a password. Format: scrypt$n$r$p$salt$key (base64 parts)."""
    salt = os.urandom(_SALT_SIZE)
    kdf = Scrypt(salt=salt, length=_KEY_SIZE, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P)
    key = kdf.derive(password.encode("utf-8"))
    return f"scrypt${_SCRYPT_N}${_SCRYPT_R}${_SCRYPT_P}${_b64(salt)}${_b64(key)}"


def verify_password(password: str, encoded: str) -> bool:
    """Check a password against a stored hash."""
    try:
        scheme, n, r, p, salt_b64, key_b64 = encoded.split("$")
        if scheme != "scrypt":
            return False
        kdf = Scrypt(
            salt=base64.b64decode(salt_b64),
            length=_KEY_SIZE,
            n=int(n),
            r=int(r),
            p=int(p),
        )
        kdf.verify(password.encode("utf-8"), base64.b64decode(key_b64))
        return True
    except (InvalidKey, ValueError):
        return False


def generate_verification_token() -> str:
    return secrets.token_hex(32)


def create_access_token(user_id: uuid.UUID, role: UserRole | str) -> str:
    """Issue a signed access token for a user."""
    settings = get_settings()
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "role": role.value if isinstance(role, UserRole) else role,
        "iat": now,
        "jti": secrets.token_hex(16),
        "exp": now + timedelta(minutes=settings.access_token_ttl_minutes),
    }
    return jwt.encode(
        payload,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """Validate a token and return its claims."""
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid token") from exc


def _revoked_key(jti: str) -> str:
    return f"revoked_token:{jti}"


async def revoke_token(claims: dict[str, Any], redis: aioredis.Redis) -> None:
    """Deny a token for the rest of its lifetime."""
    jti = claims.get("jti")
    if not jti:
        return
    expires_at = int(claims.get("exp", 0))
    ttl = max(1, expires_at - int(datetime.now(UTC).timestamp()))
    await redis.set(_revoked_key(jti), "1", ex=ttl)


async def is_token_revoked(claims: dict[str, Any], redis: aioredis.Redis) -> bool:
    jti = claims.get("jti")
    if not jti:
        return False
    return bool(await redis.exists(_revoked_key(jti)))


class RegistrationData(BaseModel):
    email: str
    password: str
    first_name: str
    last_name: str
    role: UserRole = UserRole.VOLUNTEER
    organization_name: str | None = None
    organization_type: str | None = None


class AuthService:
    """Account lifecycle operations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def register(self, data: RegistrationData) -> tuple[User, str]:
        """Create an account and return it with an access token."""
        if data.role == UserRole.ADMIN:
            raise ValidationError("Admin accounts cannot be self-registered")
        if len(data.password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "Password is too short", details={"min_length": MIN_PASSWORD_LENGTH}
            )

        email = data.email.strip().lower()
        existing = await self._get_by_email(email)
        if existing is not None:
            raise ConflictError("User already exists with this email")

        verification_token = generate_verification_token()
        user = User(
            email=email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
            verification_token=verification_token,
        )
        if data.role == UserRole.VOLUNTEER:
            user.volunteer_profile = VolunteerProfile(interests=[])
        elif data.role in ORGANIZATION_ROLES:
            user.organization_profile = OrganizationProfile(
                organization_name=data.organization_name or user.full_name,
                organization_type=data.organization_type,
            )

        self._session.add(user)
        await self._session.flush()

        await send_email(
            recipient=email,
            subject="Verify your email",
            template="email-verification",
            context={"first_name": user.first_name, "token": verification_token},
        )
        logger.info("user_registered", user_id=str(user.id), role=user.role.value)
        return user, create_access_token(user.id, user.role)

    async def login(self, email: str, password: str) -> tuple[User, str]:
        user = await self._get_by_email(email.strip().lower())
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        logger.info("user_logged_in", user_id=str(user.id))
        return user, create_access_token(user.id, user.role)

    async def verify_email(self, token: str) -> None:
        if not token:
            raise ValidationError("Invalid or expired verification token")
        stmt = select(User).where(User.verification_token == token)
        user = (await self._session.execute(stmt)).scalar_one_or_none()
        if user is None:
            raise ValidationError("Invalid or expired verification token")
        user.is_verified = True
        user.verification_token = None
        logger.info("email_verified", user_id=str(user.id))

    async def change_password(self, user: User, current: str, new: str) -> None:
        if not verify_password(current, user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        if len(new) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "Password is too short", details={"min_length": MIN_PASSWORD_LENGTH}
            )
        user.password_hash = hash_password(new)
        logger.info("password_changed", user_id=str(user.id))

    def refresh_token(self, user: User) -> str:
        logger.info("token_refreshed", user_id=str(user.id))
        return create_access_token(user.id, user.role)

    async def delete_account(self, user: User, password: str) -> None:
        """Delete a user and everything they own, after confirming the password.

        Rows are removed with bulk statements so nothing is lazy-loaded.
        Activity logs are kept but detached from the user.
        """
        if not verify_password(password, user.password_hash):
            raise ValidationError("Incorrect password")

        user_id = user.id
        applied_to = select(Application.project_id).where(Application.volunteer_id == user_id)
        await self._session.execute(
            update(Project)
            .where(Project.id.in_(applied_to), Project.volunteers_applied > 0)
            .values(volunteers_applied=Project.volunteers_applied - 1)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(delete(Application).where(Application.volunteer_id == user_id))

        owned = select(Project.id).where(Project.creator_id == user_id)
        await self._session.execute(delete(Application).where(Application.project_id.in_(owned)))
        await self._session.execute(delete(ProjectSkill).where(ProjectSkill.project_id.in_(owned)))
        await self._session.execute(delete(Project).where(Project.creator_id == user_id))

        profiles = select(VolunteerProfile.id).where(VolunteerProfile.user_id == user_id)
        await self._session.execute(
            delete(VolunteerSkill).where(VolunteerSkill.volunteer_id.in_(profiles))
        )
        await self._session.execute(
            delete(VolunteerProfile).where(VolunteerProfile.user_id == user_id)
        )
        await self._session.execute(
            delete(OrganizationProfile).where(OrganizationProfile.user_id == user_id)
        )
        await self._session.execute(delete(Notification).where(Notification.user_id == user_id))
        await self._session.execute(
            update(ActivityLog).where(ActivityLog.user_id == user_id).values(user_id=None)
        )
        await self._session.execute(delete(User).where(User.id == user_id))
        logger.info("account_deleted", user_id=str(user_id))

    async def _get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        return (await self._session.execute(stmt)).scalar_one_or_none()
