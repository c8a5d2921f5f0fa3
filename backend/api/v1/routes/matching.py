"""Matching and insight endpoints.

GET /api/v1/ai/matches                           - Best projects for the current volunteer
GET /api/v1/ai/projects/{id}/recommendations     - Best volunteers for a project
GET /api/v1/ai/projects/{id}/impact              - Rule-based impact estimate
GET /api/v1/ai/skills/recommendations            - Skills worth learning
GET /api/v1/ai/insights/community                - Platform-wide counts (organizations only)
"""

from __future__ import annotations

import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import clamp_match_limit, get_matcher, require_organization, require_volunteer
from api.v1.serializers import match_to_dict
from app.config import get_settings
from db.models import Application, User
from db.session import get_db_session
from services.impact import ImpactInput, predict_impact
from services.matcher import Matcher
from services.profiles import VolunteerProfileService
from services.projects import ProjectService, ensure_owner
from services.skill_catalog import recommend_skills

router = APIRouter()


@router.get("/ai/matches")
async def volunteer_matches(
    limit: int = Query(get_settings().default_match_limit),
    user: User = Depends(require_volunteer),
    matcher: Matcher = Depends(get_matcher),
) -> dict:
    """Rank ACTIVE projects for the current volunteer.

    Each entry carries the total score (0-100), the per-factor
    breakdown and a short human-readable reason.
    """
    results = await matcher.find_matches_for_volunteer(user.id, clamp_match_limit(limit))
    return {
        "matches": [match_to_dict(r) for r in results],
        "metadata": {"total_matches": len(results), "algorithm": "weighted-factors"},
    }


@router.get("/ai/projects/{project_id}/recommendations")
async def project_recommendations(
    project_id: uuid.UUID,
    limit: int = Query(get_settings().default_match_limit),
    user: User = Depends(require_organization),
    db: AsyncSession = Depends(get_db_session),
    matcher: Matcher = Depends(get_matcher),
) -> dict:
    project = await ProjectService(db).get_project(project_id)
    ensure_owner(project, user)

    results = await matcher.recommend_volunteers_for_project(project_id, clamp_match_limit(limit))
    return {
        "recommendations": [match_to_dict(r) for r in results],
        "metadata": {"project_id": str(project_id), "total_recommendations": len(results)},
    }


@router.get("/ai/projects/{project_id}/impact")
async def project_impact(
    project_id: uuid.UUID,
    user: User = Depends(require_organization),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await ProjectService(db).get_project(project_id)
    ensure_owner(project, user)

    application_count = (
        await db.execute(
            select(func.count(Application.id)).where(Application.project_id == project_id)
        )
    ).scalar_one()
    prediction = predict_impact(
        ImpactInput(
            category=project.category,
            volunteers_needed=project.volunteers_needed or 0,
            volunteers_applied=project.volunteers_applied or 0,
            estimated_hours=project.estimated_hours,
            required_skill_count=len(project.required_skills),
            application_count=int(application_count),
        )
    )
    return {"project_id": str(project_id), **asdict(prediction)}


@router.get("/ai/skills/recommendations")
async def skill_recommendations(
    user: User = Depends(require_volunteer),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    profile = await VolunteerProfileService(db).get_profile(user.id)
    recommendations = await recommend_skills(
        db,
        current_skill_names=[vs.skill.name for vs in profile.skills],
        interests=profile.interests or [],
    )
    return {
        "recommendations": [asdict(r) for r in recommendations],
        "metadata": {"based_on_interests": list(profile.interests or [])},
    }


@router.get("/ai/insights/community")
async def community_insights(
    user: User = Depends(require_organization),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return {"stats": await ProjectService(db).community_stats()}
