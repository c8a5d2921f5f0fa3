"""Response shaping for ORM rows and match results."""

from __future__ import annotations

from typing import Any

from db.models import Application, Project, User, VolunteerProfile
from services.scoring import MatchResult, ProjectSnapshot, VolunteerSnapshot


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def user_to_dict(user: User) -> dict[str, Any]:
    return {
        "id": str(user.id),
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role.value,
        "avatar": user.avatar,
        "is_verified": user.is_verified,
    }


def profile_to_dict(profile: VolunteerProfile) -> dict[str, Any]:
    return {
        "id": str(profile.id),
        "user_id": str(profile.user_id),
        "bio": profile.bio,
        "location": profile.location,
        "latitude": profile.latitude,
        "longitude": profile.longitude,
        "interests": list(profile.interests or []),
        "hours_per_week": profile.hours_per_week,
        "total_hours": profile.total_hours,
        "impact_score": profile.impact_score,
        "level": profile.level,
        "status": profile.status.value,
        "skills": [
            {
                "name": vs.skill.name,
                "category": vs.skill.category,
                "level": vs.level.value,
                "years_of_experience": vs.years_of_experience,
            }
            for vs in profile.skills
        ],
    }


def project_to_dict(project: Project, distance: float | None = None) -> dict[str, Any]:
    creator = project.creator
    org = creator.organization_profile if creator else None
    data = {
        "id": str(project.id),
        "title": project.title,
        "description": project.description,
        "short_description": project.short_description,
        "category": project.category,
        "tags": list(project.tags or []),
        "location": project.location,
        "latitude": project.latitude,
        "longitude": project.longitude,
        "start_date": _iso(project.start_date),
        "end_date": _iso(project.end_date),
        "volunteers_needed": project.volunteers_needed,
        "volunteers_applied": project.volunteers_applied,
        "estimated_hours": project.estimated_hours,
        "priority": project.priority.value,
        "status": project.status.value,
        "created_at": _iso(project.created_at),
        "creator": {
            "id": str(project.creator_id),
            "name": creator.full_name if creator else None,
            "organization_name": org.organization_name if org else None,
        },
        "required_skills": [
            {
                "name": ps.skill.name,
                "required_level": ps.required_level.value,
                "is_required": ps.is_required,
            }
            for ps in project.required_skills
        ],
    }
    if distance is not None:
        data["distance_km"] = distance
    return data


def application_to_dict(application: Application) -> dict[str, Any]:
    return {
        "id": str(application.id),
        "project_id": str(application.project_id),
        "volunteer_id": str(application.volunteer_id),
        "message": application.message,
        "estimated_hours": application.estimated_hours,
        "status": application.status.value,
        "applied_at": _iso(application.applied_at),
        "reviewed_at": _iso(application.reviewed_at),
    }


def _project_snapshot_dict(project: ProjectSnapshot) -> dict[str, Any]:
    return {
        "id": str(project.id),
        "title": project.title,
        "category": project.category,
        "short_description": project.short_description,
        "location": project.location,
        "start_date": _iso(project.start_date),
        "end_date": _iso(project.end_date),
        "volunteers_needed": project.volunteers_needed,
        "volunteers_applied": project.volunteers_applied,
        "required_skills": [s.name for s in project.required_skills],
        "organization_name": project.organization_name or project.creator_name,
    }


def _volunteer_snapshot_dict(volunteer: VolunteerSnapshot) -> dict[str, Any]:
    return {
        "user_id": str(volunteer.user_id),
        "first_name": volunteer.first_name,
        "last_name": volunteer.last_name,
        "avatar": volunteer.avatar,
        "bio": volunteer.bio,
        "location": volunteer.location,
        "interests": list(volunteer.interests),
        "hours_per_week": volunteer.hours_per_week,
        "total_hours": volunteer.total_hours,
        "impact_score": volunteer.impact_score,
        "level": volunteer.level,
        "skills": [{"name": s.name, "level": s.level} for s in volunteer.skills],
    }


def match_to_dict(result: MatchResult) -> dict[str, Any]:
    """Score to one decimal, factors to two."""
    entity = result.entity
    if isinstance(entity, ProjectSnapshot):
        body = {"project": _project_snapshot_dict(entity)}
    else:
        body = {"volunteer": _volunteer_snapshot_dict(entity)}
    body.update(
        {
            "match_score": round(result.score, 1),
            "factors": result.factors.as_dict(2),
            "reason": result.reason,
        }
    )
    return body
