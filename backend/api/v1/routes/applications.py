"""Application endpoints.

POST   /api/v1/projects/{id}/apply         - Apply to a project
GET    /api/v1/projects/{id}/applications  - Applications for a project (owner or admin)
PUT    /api/v1/applications/{id}/respond   - Accept or reject
DELETE /api/v1/applications/{id}           - Withdraw own application
GET    /api/v1/applications/mine           - Current volunteer's applications
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_organization, require_volunteer
from api.v1.serializers import application_to_dict, project_to_dict, user_to_dict
from db.models import ApplicationStatus, User
from db.session import get_db_session
from services.projects import ProjectService

router = APIRouter()


class ApplyRequest(BaseModel):
    message: str | None = Field(None, max_length=2000)
    estimated_hours: int | None = Field(None, ge=0, le=10000)


class RespondRequest(BaseModel):
    status: ApplicationStatus
    message: str | None = Field(None, max_length=2000)


@router.post("/projects/{project_id}/apply", status_code=status.HTTP_201_CREATED)
async def apply_to_project(
    project_id: uuid.UUID,
    request: ApplyRequest,
    user: User = Depends(require_volunteer),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    application = await ProjectService(db).apply(
        project_id, user, message=request.message, estimated_hours=request.estimated_hours
    )
    return {
        "message": "Application submitted successfully",
        "application": application_to_dict(application),
    }


@router.get("/projects/{project_id}/applications")
async def list_project_applications(
    project_id: uuid.UUID,
    status_filter: ApplicationStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(require_organization),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    result = await ProjectService(db).list_project_applications(
        project_id, user, status_filter, page, limit
    )
    return {
        "applications": [
            {**application_to_dict(a), "volunteer": user_to_dict(a.volunteer)}
            for a in result.items
        ],
        "pagination": result.pagination(),
    }


@router.put("/applications/{application_id}/respond")
async def respond_to_application(
    application_id: uuid.UUID,
    request: RespondRequest,
    user: User = Depends(require_organization),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    application = await ProjectService(db).respond_to_application(
        application_id, user, request.status, request.message
    )
    return {
        "message": f"Application {request.status.value.lower()} successfully",
        "application": application_to_dict(application),
    }


@router.delete("/applications/{application_id}")
async def withdraw_application(
    application_id: uuid.UUID,
    user: User = Depends(require_volunteer),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await ProjectService(db).withdraw_application(application_id, user)
    return {"message": "Application withdrawn successfully"}


@router.get("/applications/mine")
async def list_my_applications(
    status_filter: ApplicationStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(require_volunteer),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    result = await ProjectService(db).list_my_applications(user, status_filter, page, limit)
    return {
        "applications": [
            {**application_to_dict(a), "project": project_to_dict(a.project)}
            for a in result.items
        ],
        "pagination": result.pagination(),
    }
