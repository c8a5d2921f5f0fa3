"""Project endpoints.

GET    /api/v1/projects              - Browse projects (filters, pagination, distance)
GET    /api/v1/projects/mine         - Projects created by the current organization
GET    /api/v1/projects/{id}         - Project detail
POST   /api/v1/projects              - Create a project and notify top matches
PUT    /api/v1/projects/{id}         - Update (owner or admin)
DELETE /api/v1/projects/{id}         - Delete (owner or admin), applicants notified
GET    /api/v1/projects/{id}/stats   - Application statistics (owner or admin)
"""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_matcher, require_organization
from api.v1.serializers import project_to_dict
from db.models import ProjectStatus, User
from db.session import get_db_session
from services.matcher import Matcher
from services.projects import ProjectCreate, ProjectQuery, ProjectService, ProjectUpdate

router = APIRouter()


@router.get("/projects")
async def list_projects(
    query: Annotated[ProjectQuery, Query()],
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Browse projects.

    With `user_lat`/`user_lng` each project carries `distance_km`;
    `radius_km` then drops projects farther away than the radius.
    """
    page, distances = await ProjectService(db).list_projects(query)
    return {
        "projects": [project_to_dict(p, distances.get(p.id)) for p in page.items],
        "pagination": page.pagination(),
    }


@router.get("/projects/mine")
async def list_my_projects(
    status_filter: ProjectStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(require_organization),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    result = await ProjectService(db).list_my_projects(user, status_filter, page, limit)
    return {
        "projects": [project_to_dict(p) for p in result.items],
        "pagination": result.pagination(),
    }


@router.get("/projects/{project_id}")
async def get_project(
    project_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await ProjectService(db).get_project(project_id)
    return {"project": project_to_dict(project)}


@router.post("/projects", status_code=status.HTTP_201_CREATED)
async def create_project(
    request: ProjectCreate,
    user: User = Depends(require_organization),
    db: AsyncSession = Depends(get_db_session),
    matcher: Matcher = Depends(get_matcher),
) -> dict:
    project = await ProjectService(db).create_project(user, request, matcher)
    return {"message": "Project created successfully", "project": project_to_dict(project)}


@router.put("/projects/{project_id}")
async def update_project(
    project_id: uuid.UUID,
    request: ProjectUpdate,
    user: User = Depends(require_organization),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await ProjectService(db).update_project(project_id, user, request)
    return {"message": "Project updated successfully", "project": project_to_dict(project)}


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: uuid.UUID,
    user: User = Depends(require_organization),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await ProjectService(db).delete_project(project_id, user)
    return {"message": "Project deleted successfully"}


@router.get("/projects/{project_id}/stats")
async def project_stats(
    project_id: uuid.UUID,
    user: User = Depends(require_organization),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"stats": await ProjectService(db).project_stats(project_id, user)}
