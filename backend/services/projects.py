"""Project and application workflows.

Covers project CRUD for organizations, the volunteer application
lifecycle (apply, respond, withdraw) and per-project statistics.
Every state change that concerns another user produces a notification.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import Select, String, cast, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.logging_config import get_logger
from db.models import (
    Application,
    ApplicationStatus,
    Project,
    ProjectPriority,
    ProjectSkill,
    ProjectStatus,
    Skill,
    SkillLevel,
    User,
    UserRole,
    VolunteerProfile,
    VolunteerStatus,
)
from services.candidate_store import project_snapshot
from services.matcher import Matcher
from services.notifications import NotificationService, NotificationType
from services.scoring import distance_km
from services.skill_catalog import get_or_create_skills

logger = get_logger(__name__)

SORTABLE_FIELDS = {
    "created_at": Project.created_at,
    "start_date": Project.start_date,
    "title": Project.title,
    "volunteers_needed": Project.volunteers_needed,
}

UPDATABLE_FIELDS = {
    "title",
    "description",
    "short_description",
    "category",
    "location",
    "latitude",
    "longitude",
    "start_date",
    "end_date",
    "volunteers_needed",
    "estimated_hours",
    "priority",
    "tags",
    "status",
}


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class ProjectSkillInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    level: SkillLevel = SkillLevel.BEGINNER
    is_required: bool = True


class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str | None = Field(None, max_length=10000)
    short_description: str | None = Field(None, max_length=500)
    category: str = Field(..., min_length=1, max_length=50)
    location: str | None = Field(None, max_length=200)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    start_date: datetime
    end_date: datetime | None = None
    volunteers_needed: int = Field(..., ge=1, le=10000)
    estimated_hours: int | None = Field(None, ge=0, le=100000)
    priority: ProjectPriority = ProjectPriority.MEDIUM
    required_skills: list[ProjectSkillInput] = Field(default_factory=list, max_length=30)
    tags: list[str] = Field(default_factory=list, max_length=20)

    @model_validator(mode="after")
    def check_dates(self) -> ProjectCreate:
        if self.end_date and _aware(self.end_date) < _aware(self.start_date):
            raise ValueError("end_date must not be before start_date")
        return self


class ProjectUpdate(BaseModel):
    """Partial update; only fields that are set are applied."""

    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=10000)
    short_description: str | None = Field(None, max_length=500)
    category: str | None = Field(None, min_length=1, max_length=50)
    location: str | None = Field(None, max_length=200)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    start_date: datetime | None = None
    end_date: datetime | None = None
    volunteers_needed: int | None = Field(None, ge=1, le=10000)
    estimated_hours: int | None = Field(None, ge=0, le=100000)
    priority: ProjectPriority | None = None
    tags: list[str] | None = Field(None, max_length=20)
    status: ProjectStatus | None = None


class ProjectQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    category: str | None = None
    location: str | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    search: str | None = None
    skill: str | None = None
    sort_by: str = "created_at"
    sort_order: str = Field("desc", pattern=r"^(asc|desc)$")
    user_lat: float | None = Field(None, ge=-90, le=90)
    user_lng: float | None = Field(None, ge=-180, le=180)
    radius_km: float | None = Field(None, gt=0)


@dataclass
class Page:
    items: list[Any]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    def pagination(self) -> dict[str, Any]:
        return {
            "current_page": self.page,
            "total_pages": self.total_pages,
            "total_items": self.total,
            "items_per_page": self.limit,
            "has_next": self.page < self.total_pages,
            "has_prev": self.page > 1,
        }


_PROJECT_DETAIL_OPTIONS = (
    selectinload(Project.creator).selectinload(User.organization_profile),
    selectinload(Project.required_skills).selectinload(ProjectSkill.skill),
)


def ensure_owner(project: Project, user: User) -> None:
    if project.creator_id != user.id and user.role != UserRole.ADMIN:
        raise PermissionDeniedError("Access denied. You can only manage your own projects.")


class ProjectService:
    """Project and application operations bound to one DB session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._notifications = NotificationService(session)

    # --- Projects ---

    async def get_project(self, project_id: uuid.UUID) -> Project:
        stmt = (
            select(Project)
            .where(Project.id == project_id)
            .options(*_PROJECT_DETAIL_OPTIONS)
            .execution_options(populate_existing=True)
        )
        project = (await self._session.execute(stmt)).scalar_one_or_none()
        if project is None:
            raise NotFoundError("project")
        return project

    async def list_projects(self, query: ProjectQuery) -> tuple[Page, dict[uuid.UUID, float]]:
        """Filtered, paginated projects plus distances (km) when a position is given."""
        sort_column = SORTABLE_FIELDS.get(query.sort_by)
        if sort_column is None:
            raise ValidationError(
                "Unsupported sort field", details={"allowed": sorted(SORTABLE_FIELDS)}
            )

        stmt = select(Project).where(Project.status == query.status)
        if query.category:
            stmt = stmt.where(Project.category.ilike(f"%{query.category}%"))
        if query.location:
            stmt = stmt.where(Project.location.ilike(f"%{query.location}%"))
        if query.search:
            pattern = f"%{query.search}%"
            # tags are stored as a JSON array; match a whole element
            tag_pattern = f'%"{query.search}"%'
            stmt = stmt.where(
                or_(
                    Project.title.ilike(pattern),
                    Project.description.ilike(pattern),
                    cast(Project.tags, String).ilike(tag_pattern),
                )
            )
        if query.skill:
            stmt = stmt.where(
                Project.required_skills.any(
                    ProjectSkill.skill.has(func.lower(Skill.name) == query.skill.lower())
                )
            )

        order = sort_column.desc() if query.sort_order == "desc" else sort_column.asc()
        stmt = stmt.options(*_PROJECT_DETAIL_OPTIONS).order_by(order)
        page = await self._paginate(stmt, query.page, query.limit)

        distances: dict[uuid.UUID, float] = {}
        if query.user_lat is not None and query.user_lng is not None:
            for project in page.items:
                distance = distance_km(
                    query.user_lat, query.user_lng, project.latitude, project.longitude
                )
                if distance is not None:
                    distances[project.id] = round(distance, 1)
            if query.radius_km:
                # Projects without coordinates are kept
                page.items = [
                    p
                    for p in page.items
                    if p.id not in distances or distances[p.id] <= query.radius_km
                ]
        return page, distances

    async def create_project(
        self, creator: User, data: ProjectCreate, matcher: Matcher | None = None
    ) -> Project:
        if creator.role not in (UserRole.NGO, UserRole.GOVERNMENT, UserRole.ADMIN):
            raise PermissionDeniedError("Only organizations can create projects")

        project = Project(
            title=data.title,
            description=data.description,
            short_description=data.short_description,
            category=data.category,
            location=data.location,
            latitude=data.latitude,
            longitude=data.longitude,
            start_date=data.start_date,
            end_date=data.end_date,
            volunteers_needed=data.volunteers_needed,
            estimated_hours=data.estimated_hours,
            priority=data.priority,
            tags=list(data.tags),
            creator_id=creator.id,
        )
        catalog = await get_or_create_skills(self._session, (s.name for s in data.required_skills))
        seen: set[str] = set()
        for requirement in data.required_skills:
            key = requirement.name.strip().lower()
            if key in seen:
                continue
            seen.add(key)
            project.required_skills.append(
                ProjectSkill(
                    skill=catalog[key],
                    required_level=requirement.level,
                    is_required=requirement.is_required,
                )
            )
        self._session.add(project)
        await self._session.flush()
        project = await self.get_project(project.id)
        logger.info("project_created", project_id=str(project.id), category=project.category)

        if matcher is not None:
            await self._notifications.notify_top_matches(project_snapshot(project), matcher)
        return project

    async def update_project(
        self, project_id: uuid.UUID, user: User, update: ProjectUpdate
    ) -> Project:
        project = await self.get_project(project_id)
        ensure_owner(project, user)

        fields = {
            k: v for k, v in update.model_dump(exclude_unset=True).items() if k in UPDATABLE_FIELDS
        }
        for name in ("title", "category", "start_date", "volunteers_needed", "priority", "status"):
            if name in fields and fields[name] is None:
                raise ValidationError(f"{name} cannot be null")
        start = fields.get("start_date", project.start_date)
        end = fields.get("end_date", project.end_date)
        if start and end and _aware(end) < _aware(start):
            raise ValidationError("end_date must not be before start_date")

        for name, value in fields.items():
            setattr(project, name, value)
        await self._session.flush()
        logger.info("project_updated", project_id=str(project_id), fields=sorted(fields))
        return await self.get_project(project_id)

    async def delete_project(self, project_id: uuid.UUID, user: User) -> None:
        project = await self.get_project(project_id)
        ensure_owner(project, user)

        stmt = select(Application.volunteer_id).where(Application.project_id == project_id)
        applicant_ids = list((await self._session.execute(stmt)).scalars().all())
        title = project.title

        await self._session.execute(delete(Application).where(Application.project_id == project_id))
        await self._session.delete(project)
        await self._session.flush()

        for volunteer_id in applicant_ids:
            await self._notifications.send(
                recipient_id=volunteer_id,
                type=NotificationType.PROJECT_DELETED,
                title="Project Cancelled",
                message=f'The project "{title}" has been cancelled.',
                data={"project_id": str(project_id)},
            )
        logger.info("project_deleted", project_id=str(project_id), applicants=len(applicant_ids))

    async def list_my_projects(
        self, user: User, status: ProjectStatus | None, page: int, limit: int
    ) -> Page:
        stmt = select(Project).where(Project.creator_id == user.id)
        if status:
            stmt = stmt.where(Project.status == status)
        stmt = stmt.options(*_PROJECT_DETAIL_OPTIONS).order_by(Project.created_at.desc())
        return await self._paginate(stmt, page, limit)

    async def project_stats(self, project_id: uuid.UUID, user: User) -> dict[str, Any]:
        project = await self.get_project(project_id)
        ensure_owner(project, user)

        stmt = (
            select(Application.status, func.count(Application.id))
            .where(Application.project_id == project_id)
            .group_by(Application.status)
        )
        counts = {status: count for status, count in (await self._session.execute(stmt)).all()}
        accepted = counts.get(ApplicationStatus.ACCEPTED, 0)
        fill_rate = (
            accepted / project.volunteers_needed * 100 if project.volunteers_needed else 0.0
        )
        return {
            "applications": {
                "total": sum(counts.values()),
                "pending": counts.get(ApplicationStatus.PENDING, 0),
                "accepted": accepted,
                "rejected": counts.get(ApplicationStatus.REJECTED, 0),
            },
            "project": {
                "volunteers_needed": project.volunteers_needed,
                "volunteers_applied": project.volunteers_applied,
                "fill_rate": round(fill_rate, 1),
            },
        }

    # --- Applications ---

    async def apply(
        self,
        project_id: uuid.UUID,
        volunteer: User,
        message: str | None = None,
        estimated_hours: int | None = None,
    ) -> Application:
        if volunteer.role != UserRole.VOLUNTEER:
            raise PermissionDeniedError("Only volunteers can apply for projects")

        project = await self.get_project(project_id)
        if project.status != ProjectStatus.ACTIVE:
            raise ValidationError("This project is no longer accepting applications")

        existing = await self._session.execute(
            select(Application.id).where(
                Application.project_id == project_id,
                Application.volunteer_id == volunteer.id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("You have already applied for this project")

        application = Application(
            volunteer_id=volunteer.id,
            project_id=project_id,
            message=message,
            estimated_hours=estimated_hours,
        )
        self._session.add(application)
        project.volunteers_applied = (project.volunteers_applied or 0) + 1
        await self._session.flush()
        await self._session.refresh(application)

        await self._notifications.send(
            recipient_id=project.creator_id,
            type=NotificationType.NEW_APPLICATION,
            title="New Volunteer Application",
            message=(
                f'{volunteer.full_name} has applied for your project "{project.title}"'
            ),
            data={
                "project_id": str(project_id),
                "application_id": str(application.id),
                "volunteer_id": str(volunteer.id),
            },
        )
        logger.info("application_created", project_id=str(project_id))
        return application

    async def list_project_applications(
        self,
        project_id: uuid.UUID,
        user: User,
        status: ApplicationStatus | None,
        page: int,
        limit: int,
    ) -> Page:
        project = await self.get_project(project_id)
        ensure_owner(project, user)

        stmt = select(Application).where(Application.project_id == project_id)
        if status:
            stmt = stmt.where(Application.status == status)
        stmt = stmt.options(
            selectinload(Application.volunteer).selectinload(User.volunteer_profile)
        ).order_by(Application.applied_at.desc())
        return await self._paginate(stmt, page, limit)

    async def respond_to_application(
        self,
        application_id: uuid.UUID,
        user: User,
        status: ApplicationStatus,
        message: str | None = None,
    ) -> Application:
        if status == ApplicationStatus.PENDING:
            raise ValidationError("Response must be ACCEPTED or REJECTED")

        application = await self._get_application(application_id)
        ensure_owner(application.project, user)

        application.status = status
        application.reviewed_at = datetime.now(UTC)
        await self._session.flush()

        title = application.project.title
        if status == ApplicationStatus.ACCEPTED:
            heading = "Application Accepted!"
            text = f'Congratulations! Your application for "{title}" has been accepted.'
        else:
            heading = "Application Update"
            text = f'Your application for "{title}" has been {status.value.lower()}.'
        if message:
            text += f" Message: {message}"

        await self._notifications.send(
            recipient_id=application.volunteer_id,
            type=NotificationType.APPLICATION_UPDATE,
            title=heading,
            message=text,
            data={
                "project_id": str(application.project_id),
                "application_id": str(application_id),
                "status": status.value,
            },
        )
        logger.info("application_reviewed", application_id=str(application_id), status=status.value)
        return application

    async def withdraw_application(self, application_id: uuid.UUID, user: User) -> None:
        application = await self._get_application(application_id)
        if application.volunteer_id != user.id:
            raise PermissionDeniedError()
        if application.status == ApplicationStatus.ACCEPTED:
            raise ValidationError(
                "Cannot withdraw an accepted application. Please contact the organization."
            )

        project = application.project
        project.volunteers_applied = max((project.volunteers_applied or 0) - 1, 0)
        await self._session.delete(application)
        await self._session.flush()

        await self._notifications.send(
            recipient_id=project.creator_id,
            type=NotificationType.APPLICATION_WITHDRAWN,
            title="Application Withdrawn",
            message=f'A volunteer has withdrawn their application for "{project.title}"',
            data={"project_id": str(project.id), "application_id": str(application_id)},
        )
        logger.info("application_withdrawn", application_id=str(application_id))

    async def list_my_applications(
        self, user: User, status: ApplicationStatus | None, page: int, limit: int
    ) -> Page:
        if user.role != UserRole.VOLUNTEER:
            raise PermissionDeniedError("Only volunteers can view applications")
        stmt = select(Application).where(Application.volunteer_id == user.id)
        if status:
            stmt = stmt.where(Application.status == status)
        stmt = stmt.options(
            selectinload(Application.project).selectinload(Project.creator).selectinload(
                User.organization_profile
            ),
            selectinload(Application.project)
            .selectinload(Project.required_skills)
            .selectinload(ProjectSkill.skill),
        ).order_by(Application.applied_at.desc())
        return await self._paginate(stmt, page, limit)

    # --- Platform statistics ---

    async def community_stats(self) -> dict[str, int]:
        async def count(stmt: Select) -> int:
            return int((await self._session.execute(stmt)).scalar_one())

        return {
            "active_projects": await count(
                select(func.count(Project.id)).where(Project.status == ProjectStatus.ACTIVE)
            ),
            "available_volunteers": await count(
                select(func.count(VolunteerProfile.id)).where(
                    VolunteerProfile.status == VolunteerStatus.AVAILABLE
                )
            ),
            "pending_applications": await count(
                select(func.count(Application.id)).where(
                    Application.status == ApplicationStatus.PENDING
                )
            ),
            "total_volunteers": await count(
                select(func.count(User.id)).where(User.role == UserRole.VOLUNTEER)
            ),
        }

    # --- Helpers ---

    async def _get_application(self, application_id: uuid.UUID) -> Application:
        stmt = (
            select(Application)
            .where(Application.id == application_id)
            .options(selectinload(Application.project))
        )
        application = (await self._session.execute(stmt)).scalar_one_or_none()
        if application is None:
            raise NotFoundError("application")
        return application

    async def _paginate(self, stmt: Select, page: int, limit: int) -> Page:
        count_stmt = select(func.count()).select_from(
            stmt.order_by(None).subquery()
        )
        total = int((await self._session.execute(count_stmt)).scalar_one())
        rows = await self._session.execute(stmt.offset((page - 1) * limit).limit(limit))
        return Page(items=list(rows.scalars().all()), total=total, page=page, limit=limit)
