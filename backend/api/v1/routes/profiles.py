"""Volunteer profile endpoints.

GET /api/v1/volunteers/me/profile - Own volunteer profile
PUT /api/v1/volunteers/me/profile - Create or update own profile
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_volunteer
from api.v1.serializers import profile_to_dict
from db.models import User
from db.session import get_db_session
from services.profiles import VolunteerProfileService, VolunteerProfileUpdate

router = APIRouter()


@router.get("/volunteers/me/profile")
async def get_my_profile(
    user: User = Depends(require_volunteer),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    profile = await VolunteerProfileService(db).get_profile(user.id)
    return {"profile": profile_to_dict(profile)}


@router.put("/volunteers/me/profile")
async def update_my_profile(
    update: VolunteerProfileUpdate,
    user: User = Depends(require_volunteer),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Upsert the profile fields used for matching.

    Sending `skills` replaces the whole skill list.
    """
    profile = await VolunteerProfileService(db).upsert_profile(user, update)
    return {"message": "Profile updated successfully", "profile": profile_to_dict(profile)}
