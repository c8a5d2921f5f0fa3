"""Tests for password hashing, tokens and account services."""

import uuid
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from sqlalchemy import func, select

from app.config import get_settings
from app.exceptions import AuthenticationError, ConflictError, ValidationError
from db.models import (
    Application,
    ApplicationStatus,
    Project,
    SkillLevel,
    User,
    UserRole,
    VolunteerProfile,
    VolunteerSkill,
)
from factories import TEST_PASSWORD, make_organization, make_project, make_volunteer
from services.auth import (
    AuthService,
    RegistrationData,
    create_access_token,
    decode_access_token,
    hash_password,
    is_token_revoked,
    revoke_token,
    verify_password,
)


class TestPasswordHashing:
    def test_round_trip(self):
        encoded = hash_password("s3cret-pass")
        assert encoded.startswith("scrypt$")
        assert "s3cret-pass" not in encoded
        assert verify_password("s3cret-pass", encoded)
        assert not verify_password("wrong-pass", encoded)

    def test_salts_differ(self):
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash_is_rejected(self):
        assert not verify_password("x", "not-a-hash")
        assert not verify_password("x", "bcrypt$1$2$3$YQ==$YQ==")


class TestTokens:
    def test_claims_round_trip(self):
        user_id = uuid.uuid4()
        claims = decode_access_token(create_access_token(user_id, UserRole.NGO))
        assert claims["sub"] == str(user_id)
        assert claims["role"] == "NGO"

    def test_expired_token_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "x", "exp": datetime.now(UTC) - timedelta(minutes=1)},
            settings.jwt_secret_key.get_secret_value(),
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(AuthenticationError, match="expired"):
            decode_access_token(token)

    def test_wrong_signature_rejected(self):
        token = jwt.encode({"sub": "x"}, "another-secret", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            decode_access_token(token)

    def test_tokens_carry_unique_ids(self):
        user_id = uuid.uuid4()
        first = decode_access_token(create_access_token(user_id, UserRole.VOLUNTEER))
        second = decode_access_token(create_access_token(user_id, UserRole.VOLUNTEER))
        assert first["jti"] != second["jti"]


class TestTokenRevocation:
    async def test_revoked_token_is_denied_until_expiry(self, fake_redis):
        claims = decode_access_token(create_access_token(uuid.uuid4(), UserRole.VOLUNTEER))
        assert not await is_token_revoked(claims, fake_redis)

        await revoke_token(claims, fake_redis)

        assert await is_token_revoked(claims, fake_redis)
        ttl = await fake_redis.ttl(f"revoked_token:{claims['jti']}")
        assert 0 < ttl <= get_settings().access_token_ttl_minutes * 60

    async def test_token_without_id_is_never_revoked(self, fake_redis):
        claims = {"sub": "x"}
        await revoke_token(claims, fake_redis)
        assert not await is_token_revoked(claims, fake_redis)


class TestAuthService:
    def _registration(self, **overrides) -> RegistrationData:
        data = {
            "email": "New@Example.com",
            "password": "long-enough-pw",
            "first_name": "Nia",
            "last_name": "New",
        }
        data.update(overrides)
        return RegistrationData(**data)

    async def test_register_volunteer_creates_profile(self, db_session):
        user, token = await AuthService(db_session).register(self._registration())

        assert user.email == "new@example.com"
        assert user.volunteer_profile is not None
        assert user.verification_token
        assert decode_access_token(token)["sub"] == str(user.id)

    async def test_register_ngo_creates_organization(self, db_session):
        user, _ = await AuthService(db_session).register(
            self._registration(role=UserRole.NGO, organization_name="Food Bank")
        )
        assert user.organization_profile.organization_name == "Food Bank"

    async def test_register_admin_rejected(self, db_session):
        with pytest.raises(ValidationError):
            await AuthService(db_session).register(self._registration(role=UserRole.ADMIN))

    async def test_duplicate_email_conflicts(self, db_session):
        await make_volunteer(db_session, "dup@example.com")
        with pytest.raises(ConflictError):
            await AuthService(db_session).register(self._registration(email="DUP@example.com"))

    async def test_login(self, db_session):
        vol = await make_volunteer(db_session, "login@example.com")
        service = AuthService(db_session)

        user, _ = await service.login("login@example.com", TEST_PASSWORD)
        assert user.id == vol.id

        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await service.login("login@example.com", "nope")
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            await service.login("ghost@example.com", TEST_PASSWORD)

    async def test_verify_email(self, db_session):
        service = AuthService(db_session)
        user, _ = await service.register(self._registration())

        await service.verify_email(user.verification_token)

        assert user.is_verified
        assert user.verification_token is None
        with pytest.raises(ValidationError):
            await service.verify_email("unknown-token")

    async def test_change_password(self, db_session):
        vol = await make_volunteer(db_session)
        service = AuthService(db_session)

        with pytest.raises(AuthenticationError):
            await service.change_password(vol, "wrong", "brand-new-password")
        with pytest.raises(ValidationError):
            await service.change_password(vol, TEST_PASSWORD, "short")

        await service.change_password(vol, TEST_PASSWORD, "brand-new-password")
        assert verify_password("brand-new-password", vol.password_hash)

    async def test_delete_account_requires_password(self, db_session):
        vol = await make_volunteer(db_session)
        with pytest.raises(ValidationError, match="Incorrect password"):
            await AuthService(db_session).delete_account(vol, "wrong")

    async def test_delete_account_removes_user_rows(self, db_session):
        org = await make_organization(db_session)
        vol = await make_volunteer(db_session, skills=[("Cooking", SkillLevel.BEGINNER)])
        project = await make_project(db_session, org)
        db_session.add(
            Application(
                volunteer_id=vol.id, project_id=project.id, status=ApplicationStatus.PENDING
            )
        )
        project.volunteers_applied = 1
        await db_session.commit()

        await AuthService(db_session).delete_account(vol, TEST_PASSWORD)
        await db_session.commit()

        assert await _count(db_session, User, User.id == vol.id) == 0
        assert await _count(db_session, VolunteerProfile) == 0
        assert await _count(db_session, VolunteerSkill) == 0
        assert await _count(db_session, Application) == 0
        refreshed = await db_session.get(Project, project.id, populate_existing=True)
        assert refreshed.volunteers_applied == 0


async def _count(session, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model)
    for criterion in criteria:
        stmt = stmt.where(criterion)
    return (await session.execute(stmt)).scalar_one()
