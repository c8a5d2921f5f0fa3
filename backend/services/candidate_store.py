"""SQLAlchemy-backed candidate store for the matcher.

Loads volunteers and projects with their skills eagerly and converts the
ORM rows into immutable scoring snapshots. Database failures surface as
UpstreamError and are not retried here.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import UpstreamError
from app.logging_config import get_logger
from db.models import (
    Project,
    ProjectSkill,
    ProjectStatus,
    User,
    VolunteerProfile,
    VolunteerSkill,
    VolunteerStatus,
)
from services.scoring import (
    ProjectSnapshot,
    SkillRequirement,
    VolunteerSkillEntry,
    VolunteerSnapshot,
)

logger = get_logger(__name__)


def _value(enum_or_str: Any) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


def volunteer_snapshot(profile: VolunteerProfile) -> VolunteerSnapshot:
    """Convert a loaded VolunteerProfile (with user and skills) to a snapshot."""
    user = profile.user
    return VolunteerSnapshot(
        user_id=profile.user_id,
        profile_id=profile.id,
        first_name=user.first_name if user else "",
        last_name=user.last_name if user else "",
        avatar=user.avatar if user else None,
        bio=profile.bio,
        location=profile.location,
        latitude=profile.latitude,
        longitude=profile.longitude,
        interests=tuple(profile.interests or ()),
        hours_per_week=profile.hours_per_week,
        total_hours=profile.total_hours or 0,
        impact_score=profile.impact_score or 0.0,
        level=profile.level or 1,
        status=_value(profile.status),
        skills=tuple(
            VolunteerSkillEntry(
                name=vs.skill.name,
                level=_value(vs.level),
                years_of_experience=vs.years_of_experience or 0.0,
            )
            for vs in profile.skills
            if vs.skill is not None
        ),
        created_at=profile.created_at,
    )


def project_snapshot(project: Project) -> ProjectSnapshot:
    """Convert a loaded Project (with creator and skills) to a snapshot."""
    creator = project.creator
    org = creator.organization_profile if creator else None
    return ProjectSnapshot(
        id=project.id,
        title=project.title,
        category=project.category,
        description=project.description,
        short_description=project.short_description,
        tags=tuple(project.tags or ()),
        location=project.location,
        latitude=project.latitude,
        longitude=project.longitude,
        start_date=project.start_date,
        end_date=project.end_date,
        volunteers_needed=project.volunteers_needed or 0,
        volunteers_applied=project.volunteers_applied or 0,
        estimated_hours=project.estimated_hours,
        status=_value(project.status),
        creator_id=project.creator_id,
        creator_name=creator.full_name if creator else "",
        organization_name=org.organization_name if org else None,
        required_skills=tuple(
            SkillRequirement(
                name=ps.skill.name,
                required_level=_value(ps.required_level),
                is_required=bool(ps.is_required),
            )
            for ps in project.required_skills
            if ps.skill is not None
        ),
        created_at=project.created_at,
    )


_VOLUNTEER_OPTIONS = (
    selectinload(VolunteerProfile.user),
    selectinload(VolunteerProfile.skills).selectinload(VolunteerSkill.skill),
)

_PROJECT_OPTIONS = (
    selectinload(Project.creator).selectinload(User.organization_profile),
    selectinload(Project.required_skills).selectinload(ProjectSkill.skill),
)


class SqlCandidateStore:
    """Candidate store reading from the relational database."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_volunteer(self, user_id: uuid.UUID) -> VolunteerSnapshot | None:
        stmt = (
            select(VolunteerProfile)
            .where(VolunteerProfile.user_id == user_id)
            .options(*_VOLUNTEER_OPTIONS)
        )
        profile = await self._scalar(stmt)
        return volunteer_snapshot(profile) if profile else None

    async def get_project(self, project_id: uuid.UUID) -> ProjectSnapshot | None:
        stmt = select(Project).where(Project.id == project_id).options(*_PROJECT_OPTIONS)
        project = await self._scalar(stmt)
        return project_snapshot(project) if project else None

    async def list_active_projects(self, limit: int | None = None) -> Sequence[ProjectSnapshot]:
        stmt = (
            select(Project)
            .where(Project.status == ProjectStatus.ACTIVE)
            .options(*_PROJECT_OPTIONS)
            .order_by(Project.created_at.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        return [project_snapshot(p) for p in await self._scalars(stmt)]

    async def list_available_volunteers(
        self, limit: int | None = None
    ) -> Sequence[VolunteerSnapshot]:
        stmt = (
            select(VolunteerProfile)
            .where(VolunteerProfile.status == VolunteerStatus.AVAILABLE)
            .options(*_VOLUNTEER_OPTIONS)
            .order_by(VolunteerProfile.created_at.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        return [volunteer_snapshot(v) for v in await self._scalars(stmt)]

    async def _scalar(self, stmt: Any) -> Any:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("candidate_store_query_failed", error=type(exc).__name__)
            raise UpstreamError("database", "Candidate lookup failed") from exc
        return result.scalar_one_or_none()

    async def _scalars(self, stmt: Any) -> list[Any]:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("candidate_store_query_failed", error=type(exc).__name__)
            raise UpstreamError("database", "Candidate lookup failed") from exc
        return list(result.scalars().all())
