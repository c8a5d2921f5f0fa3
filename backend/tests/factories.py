"""Builders for persisted test data."""

from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from db.models import (
    OrganizationProfile,
    Project,
    ProjectSkill,
    Skill,
    SkillLevel,
    User,
    UserRole,
    VolunteerProfile,
    VolunteerSkill,
)
from services.auth import create_access_token, hash_password
from services.skill_catalog import get_or_create_skills

TEST_PASSWORD = "correct-horse-battery"


async def make_volunteer(
    session: AsyncSession,
    email: str = "vol@example.com",
    *,
    interests: list[str] | None = None,
    skills: list[tuple[str, SkillLevel]] | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    hours_per_week: float | None = None,
    total_hours: int = 0,
) -> User:
    user = User(
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        first_name="Vera",
        last_name="Volunteer",
        role=UserRole.VOLUNTEER,
    )
    profile = VolunteerProfile(
        interests=interests or [],
        latitude=latitude,
        longitude=longitude,
        hours_per_week=hours_per_week,
        total_hours=total_hours,
    )
    for name, level in skills or []:
        skill = await _skill(session, name)
        profile.skills.append(VolunteerSkill(skill=skill, level=level))
    user.volunteer_profile = profile
    session.add(user)
    await session.commit()
    return user


async def make_organization(session: AsyncSession, email: str = "ngo@example.com") -> User:
    user = User(
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        first_name="Olga",
        last_name="Organizer",
        role=UserRole.NGO,
        organization_profile=OrganizationProfile(organization_name="Green Streets"),
    )
    session.add(user)
    await session.commit()
    return user


async def make_project(
    session: AsyncSession,
    creator: User,
    *,
    title: str = "Park Cleanup",
    category: str = "environment",
    skills: list[tuple[str, SkillLevel]] | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    estimated_hours: int | None = None,
    volunteers_needed: int = 5,
    tags: list[str] | None = None,
) -> Project:
    start = datetime.now(UTC) + timedelta(days=7)
    project = Project(
        title=title,
        category=category,
        description="Help clean the park",
        start_date=start,
        end_date=start + timedelta(days=14),
        latitude=latitude,
        longitude=longitude,
        estimated_hours=estimated_hours,
        volunteers_needed=volunteers_needed,
        creator_id=creator.id,
        tags=tags or [],
    )
    for name, level in skills or []:
        skill = await _skill(session, name)
        project.required_skills.append(ProjectSkill(skill=skill, required_level=level))
    session.add(project)
    await session.commit()
    return project


async def _skill(session: AsyncSession, name: str) -> Skill:
    return (await get_or_create_skills(session, [name]))[name.lower()]


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}
