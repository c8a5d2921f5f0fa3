"""API v1 router aggregation.

Combines all v1 route modules into a single router.
"""

from __future__ import annotations

from fastapi import APIRouter

from api.v1.routes.applications import router as applications_router
from api.v1.routes.auth import router as auth_router
from api.v1.routes.chat import router as chat_router
from api.v1.routes.matching import router as matching_router
from api.v1.routes.profiles import router as profiles_router
from api.v1.routes.projects import router as projects_router

api_v1_router = APIRouter()

api_v1_router.include_router(auth_router, tags=["Auth"])
api_v1_router.include_router(profiles_router, tags=["Volunteers"])
api_v1_router.include_router(projects_router, tags=["Projects"])
api_v1_router.include_router(applications_router, tags=["Applications"])
api_v1_router.include_router(matching_router, tags=["Matching"])
api_v1_router.include_router(chat_router, tags=["Chatbot"])
