"""Volunteer profile management."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import NotFoundError, PermissionDeniedError
from app.logging_config import get_logger
from db.models import (
    SkillLevel,
    User,
    UserRole,
    VolunteerProfile,
    VolunteerSkill,
    VolunteerStatus,
)
from services.skill_catalog import get_or_create_skills

logger = get_logger(__name__)


class VolunteerSkillInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    level: SkillLevel = SkillLevel.BEGINNER
    years_of_experience: float = Field(0.0, ge=0, le=80)


class VolunteerProfileUpdate(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""

    bio: str | None = Field(None, max_length=2000)
    location: str | None = Field(None, max_length=200)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    interests: list[str] | None = Field(None, max_length=30)
    hours_per_week: float | None = Field(None, ge=0, le=168)
    status: VolunteerStatus | None = None
    skills: list[VolunteerSkillInput] | None = Field(None, max_length=50)


class VolunteerProfileService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_profile(self, user_id: uuid.UUID) -> VolunteerProfile:
        stmt = (
            select(VolunteerProfile)
            .where(VolunteerProfile.user_id == user_id)
            .options(
                selectinload(VolunteerProfile.user),
                selectinload(VolunteerProfile.skills).selectinload(VolunteerSkill.skill),
            )
            .execution_options(populate_existing=True)
        )
        profile = (await self._session.execute(stmt)).scalar_one_or_none()
        if profile is None:
            raise NotFoundError(
                "volunteer_profile",
                "Volunteer profile not found. Please complete your profile first.",
            )
        return profile

    async def upsert_profile(
        self, user: User, update: VolunteerProfileUpdate
    ) -> VolunteerProfile:
        """Create the profile on first write, then apply the given fields."""
        if user.role != UserRole.VOLUNTEER:
            raise PermissionDeniedError("Only volunteers have volunteer profiles")

        try:
            profile = await self.get_profile(user.id)
        except NotFoundError:
            profile = VolunteerProfile(user_id=user.id, interests=[])
            self._session.add(profile)
            await self._session.flush()
            profile = await self.get_profile(user.id)

        fields = update.model_dump(exclude_unset=True, exclude={"skills"})
        if "interests" in fields and fields["interests"] is not None:
            fields["interests"] = _dedupe(fields["interests"])
        for name, value in fields.items():
            setattr(profile, name, value)

        if update.skills is not None:
            await self._replace_skills(profile, update.skills)

        await self._session.flush()
        logger.info("volunteer_profile_updated", user_id=str(user.id), fields=sorted(fields))
        # Reload so relationships reflect the replaced skills
        return await self.get_profile(user.id)

    async def _replace_skills(
        self, profile: VolunteerProfile, skills: list[VolunteerSkillInput]
    ) -> None:
        catalog = await get_or_create_skills(self._session, (s.name for s in skills))
        profile.skills.clear()
        await self._session.flush()
        seen: set[str] = set()
        for entry in skills:
            key = entry.name.strip().lower()
            if key in seen:
                continue
            seen.add(key)
            profile.skills.append(
                VolunteerSkill(
                    skill=catalog[key],
                    level=entry.level,
                    years_of_experience=entry.years_of_experience,
                )
            )


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        cleaned = value.strip()
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            result.append(cleaned)
    return result
