"""Tests for matching, insight, chat and health endpoints."""

from unittest.mock import AsyncMock

import pytest
import respx
from httpx import Response
from sqlalchemy import select

from api.deps import get_matcher
from api.v1.routes.chat import get_chatbot
from app.config import get_settings
from app.exceptions import UpstreamError
from db.models import ActivityLog, SkillLevel, User, UserRole
from factories import auth_headers, make_organization, make_project, make_volunteer
from gateway.health import HealthMonitor, get_health_monitor
from services.chatbot import ChatReply


@pytest.mark.asyncio
class TestMatchingEndpoints:
    """Test suite for /api/v1/ai/*."""

    async def test_volunteer_matches_are_ranked(self, client, db_session):
        org = await make_organization(db_session)
        vol = await make_volunteer(
            db_session, interests=["environment"], skills=[("Gardening", SkillLevel.ADVANCED)]
        )
        await make_project(db_session, org, title="Reading Club", category="education")
        await make_project(
            db_session, org, title="Park Cleanup", skills=[("Gardening", SkillLevel.BEGINNER)]
        )

        response = await client.get("/api/v1/ai/matches", headers=auth_headers(vol))

        assert response.status_code == 200
        matches = response.json()["matches"]
        assert [m["project"]["title"] for m in matches] == ["Park Cleanup", "Reading Club"]
        assert matches[0]["match_score"] == 45.0
        assert matches[0]["factors"]["skills"] == 20.0
        assert matches[0]["reason"] == "Matches your skills, Aligns with your interests"
        assert response.json()["metadata"]["total_matches"] == 2

    async def test_matches_without_profile_is_404(self, client, db_session):
        user = User(
            email="bare@example.com",
            password_hash="x",
            first_name="Bare",
            last_name="User",
            role=UserRole.VOLUNTEER,
        )
        db_session.add(user)
        await db_session.commit()

        response = await client.get("/api/v1/ai/matches", headers=auth_headers(user))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "VOLUNTEER_PROFILE_NOT_FOUND"

    async def test_zero_limit_is_400(self, client, db_session):
        vol = await make_volunteer(db_session)
        response = await client.get(
            "/api/v1/ai/matches", headers=auth_headers(vol), params={"limit": 0}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_negative_recommendation_limit_is_400(self, client, db_session):
        org = await make_organization(db_session)
        project = await make_project(db_session, org)
        response = await client.get(
            f"/api/v1/ai/projects/{project.id}/recommendations",
            headers=auth_headers(org),
            params={"limit": -3},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_limit_is_capped(self, client, db_session, app):
        vol = await make_volunteer(db_session)
        matcher = AsyncMock()
        matcher.find_matches_for_volunteer.return_value = []
        app.dependency_overrides[get_matcher] = lambda: matcher

        await client.get("/api/v1/ai/matches", headers=auth_headers(vol), params={"limit": 500})

        matcher.find_matches_for_volunteer.assert_awaited_once_with(
            vol.id, get_settings().max_match_limit
        )

    async def test_upstream_failure_is_502(self, client, db_session, app):
        vol = await make_volunteer(db_session)
        matcher = AsyncMock()
        matcher.find_matches_for_volunteer.side_effect = UpstreamError("database")
        app.dependency_overrides[get_matcher] = lambda: matcher

        response = await client.get("/api/v1/ai/matches", headers=auth_headers(vol))

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "DATABASE_UPSTREAM_ERROR"

    async def test_unexpected_error_is_generic_500(self, client, db_session, app):
        vol = await make_volunteer(db_session)
        matcher = AsyncMock()
        matcher.find_matches_for_volunteer.side_effect = KeyError("internal detail")
        app.dependency_overrides[get_matcher] = lambda: matcher

        response = await client.get("/api/v1/ai/matches", headers=auth_headers(vol))

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"
        assert "internal detail" not in response.text

    async def test_project_recommendations_for_owner(self, client, db_session):
        org = await make_organization(db_session)
        keen = await make_volunteer(db_session, "keen@example.com", interests=["environment"])
        project = await make_project(db_session, org)

        response = await client.get(
            f"/api/v1/ai/projects/{project.id}/recommendations", headers=auth_headers(org)
        )

        assert response.status_code == 200
        (rec,) = response.json()["recommendations"]
        assert rec["volunteer"]["user_id"] == str(keen.id)
        assert rec["reason"] == "Interested in this cause"

    async def test_project_recommendations_denied_to_other_org(self, client, db_session):
        owner = await make_organization(db_session)
        other = await make_organization(db_session, "other@example.com")
        project = await make_project(db_session, owner)

        response = await client.get(
            f"/api/v1/ai/projects/{project.id}/recommendations", headers=auth_headers(other)
        )
        assert response.status_code == 403

    async def test_project_impact(self, client, db_session):
        org = await make_organization(db_session)
        project = await make_project(db_session, org, volunteers_needed=12, estimated_hours=60)

        response = await client.get(
            f"/api/v1/ai/projects/{project.id}/impact", headers=auth_headers(org)
        )

        body = response.json()
        # 50 + 15 (size) + 10 (duration) + 10 (environment)
        assert body["impact_score"] == 85
        assert body["prediction"] == "HIGH"

    async def test_skill_recommendations(self, client, db_session):
        org = await make_organization(db_session)
        vol = await make_volunteer(
            db_session, interests=["environment"], skills=[("Gardening", SkillLevel.BEGINNER)]
        )
        await make_project(
            db_session,
            org,
            skills=[("Gardening", SkillLevel.BEGINNER), ("Carpentry", SkillLevel.BEGINNER)],
        )
        await make_project(
            db_session, org, title="Bench Repair", skills=[("Carpentry", SkillLevel.BEGINNER)]
        )

        response = await client.get(
            "/api/v1/ai/skills/recommendations", headers=auth_headers(vol)
        )

        (rec,) = response.json()["recommendations"]
        assert rec["name"] == "Carpentry"
        assert rec["demand_score"] == 2

    async def test_community_insights(self, client, db_session):
        org = await make_organization(db_session)
        await make_volunteer(db_session)
        await make_project(db_session, org)

        response = await client.get("/api/v1/ai/insights/community", headers=auth_headers(org))

        assert response.json()["stats"] == {
            "active_projects": 1,
            "available_volunteers": 1,
            "pending_applications": 0,
            "total_volunteers": 1,
        }

    async def test_community_insights_require_token(self, client):
        response = await client.get("/api/v1/ai/insights/community")
        assert response.status_code == 401

    async def test_community_insights_denied_to_volunteer(self, client, db_session):
        vol = await make_volunteer(db_session)
        response = await client.get(
            "/api/v1/ai/insights/community", headers=auth_headers(vol)
        )
        assert response.status_code == 403


@pytest.mark.asyncio
class TestChatEndpoint:
    """Test suite for POST /api/v1/chat."""

    async def test_chat_reply_is_logged(self, client, db_session, app):
        vol = await make_volunteer(db_session)
        chatbot = AsyncMock()
        chatbot.reply.return_value = ChatReply(reply="Hello there")
        app.dependency_overrides[get_chatbot] = lambda: chatbot
        message = "x" * 150

        response = await client.post(
            "/api/v1/chat", headers=auth_headers(vol), json={"message": message}
        )

        assert response.status_code == 200
        assert response.json() == {"reply": "Hello there", "type": "model"}
        log = (await db_session.execute(select(ActivityLog))).scalar_one()
        assert log.action == "CHATBOT_INTERACTION"
        assert log.details["message"] == "x" * 100

    @respx.mock
    async def test_chat_upstream_error_is_502(self, client, db_session):
        vol = await make_volunteer(db_session)
        respx.post(get_settings().hf_model_url).mock(return_value=Response(500))

        response = await client.post(
            "/api/v1/chat", headers=auth_headers(vol), json={"message": "hi"}
        )

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "CHATBOT_UPSTREAM_ERROR"

    async def test_chat_requires_auth(self, client):
        response = await client.post("/api/v1/chat", json={"message": "hi"})
        assert response.status_code == 401


@pytest.mark.asyncio
class TestHealthEndpoints:
    async def test_liveness(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_readiness_healthy(self, client, app, fake_redis, db_engine):
        app.dependency_overrides[get_health_monitor] = lambda: HealthMonitor(
            fake_redis, db_engine
        )
        response = await client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["database"]["status"] == "ok"

    async def test_readiness_degraded_without_connections(self, client, app):
        app.dependency_overrides[get_health_monitor] = lambda: HealthMonitor(None, None)
        response = await client.get("/health/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"
