"""Tests for the project and application API endpoints."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select

from db.models import Application, Notification, SkillLevel
from factories import auth_headers, make_organization, make_project, make_volunteer

BERLIN = (52.5200, 13.4050)
MUNICH = (48.1351, 11.5820)


def project_payload(**overrides) -> dict:
    start = datetime.now(UTC) + timedelta(days=10)
    payload = {
        "title": "River Cleanup",
        "category": "environment",
        "description": "Collect litter along the river",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=14)).isoformat(),
        "volunteers_needed": 8,
        "estimated_hours": 20,
        "required_skills": [{"name": "Gardening", "level": "BEGINNER"}],
        "tags": ["outdoor"],
    }
    payload.update(overrides)
    return payload


async def count(session, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model)
    for criterion in criteria:
        stmt = stmt.where(criterion)
    return (await session.execute(stmt)).scalar_one()


@pytest.mark.asyncio
class TestProjectEndpoints:
    """Test suite for /api/v1/projects."""

    async def test_create_project_notifies_matching_volunteers(self, client, db_session):
        org = await make_organization(db_session)
        keen = await make_volunteer(
            db_session,
            "keen@example.com",
            interests=["environment"],
            skills=[("Gardening", SkillLevel.EXPERT)],
        )

        response = await client.post(
            "/api/v1/projects", headers=auth_headers(org), json=project_payload()
        )

        assert response.status_code == 201
        project = response.json()["project"]
        assert project["creator"]["organization_name"] == "Green Streets"
        assert project["required_skills"][0]["name"] == "Gardening"
        assert project["status"] == "ACTIVE"
        assert await count(
            db_session,
            Notification,
            Notification.user_id == keen.id,
            Notification.type == "NEW_PROJECT_MATCH",
        ) == 1

    async def test_volunteer_cannot_create_project(self, client, db_session):
        vol = await make_volunteer(db_session)
        response = await client.post(
            "/api/v1/projects", headers=auth_headers(vol), json=project_payload()
        )
        assert response.status_code == 403

    async def test_end_before_start_is_rejected(self, client, db_session):
        org = await make_organization(db_session)
        start = datetime.now(UTC) + timedelta(days=10)
        response = await client.post(
            "/api/v1/projects",
            headers=auth_headers(org),
            json=project_payload(
                start_date=start.isoformat(), end_date=(start - timedelta(days=1)).isoformat()
            ),
        )
        assert response.status_code == 422

    async def test_list_filters_and_paginates(self, client, db_session):
        org = await make_organization(db_session)
        await make_project(db_session, org, title="Tree Planting", category="environment")
        await make_project(db_session, org, title="Reading Club", category="education")
        await make_project(
            db_session,
            org,
            title="Garden Build",
            category="environment",
            skills=[("Carpentry", SkillLevel.INTERMEDIATE)],
        )

        response = await client.get("/api/v1/projects", params={"category": "environment"})
        assert response.status_code == 200
        body = response.json()
        assert {p["title"] for p in body["projects"]} == {"Tree Planting", "Garden Build"}
        assert body["pagination"]["total_items"] == 2

        by_skill = await client.get("/api/v1/projects", params={"skill": "carpentry"})
        assert [p["title"] for p in by_skill.json()["projects"]] == ["Garden Build"]

        search = await client.get("/api/v1/projects", params={"search": "reading"})
        assert [p["title"] for p in search.json()["projects"]] == ["Reading Club"]

        paged = await client.get("/api/v1/projects", params={"limit": 1, "page": 2})
        assert len(paged.json()["projects"]) == 1
        assert paged.json()["pagination"]["total_pages"] == 3
        assert paged.json()["pagination"]["has_prev"] is True

    async def test_search_matches_whole_tags(self, client, db_session):
        org = await make_organization(db_session)
        await make_project(db_session, org, title="Tree Planting", tags=["outdoor", "family"])
        await make_project(db_session, org, title="Indoor Workshop", tags=["outdoorsy"])

        response = await client.get("/api/v1/projects", params={"search": "outdoor"})

        assert [p["title"] for p in response.json()["projects"]] == ["Tree Planting"]

    async def test_list_with_distance_and_radius(self, client, db_session):
        org = await make_organization(db_session)
        await make_project(db_session, org, title="Near", latitude=BERLIN[0], longitude=BERLIN[1])
        await make_project(db_session, org, title="Far", latitude=MUNICH[0], longitude=MUNICH[1])

        response = await client.get(
            "/api/v1/projects",
            params={"user_lat": BERLIN[0], "user_lng": BERLIN[1], "radius_km": 50},
        )

        projects = response.json()["projects"]
        assert [p["title"] for p in projects] == ["Near"]
        assert projects[0]["distance_km"] == 0.0

    async def test_unknown_sort_field_is_400(self, client):
        response = await client.get("/api/v1/projects", params={"sort_by": "password"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_get_missing_project_is_404(self, client):
        response = await client.get(
            "/api/v1/projects/00000000-0000-0000-0000-000000000000"
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PROJECT_NOT_FOUND"

    async def test_update_by_owner_only(self, client, db_session):
        owner = await make_organization(db_session)
        other = await make_organization(db_session, "other@example.com")
        project = await make_project(db_session, owner)
        url = f"/api/v1/projects/{project.id}"

        denied = await client.put(url, headers=auth_headers(other), json={"title": "Hijacked"})
        assert denied.status_code == 403

        updated = await client.put(
            url, headers=auth_headers(owner), json={"title": "Bigger Cleanup", "status": "CLOSED"}
        )
        assert updated.status_code == 200
        assert updated.json()["project"]["title"] == "Bigger Cleanup"
        assert updated.json()["project"]["status"] == "CLOSED"

    async def test_delete_notifies_applicants(self, client, db_session):
        org = await make_organization(db_session)
        vol = await make_volunteer(db_session)
        project = await make_project(db_session, org)
        await client.post(f"/api/v1/projects/{project.id}/apply", headers=auth_headers(vol), json={})

        response = await client.delete(f"/api/v1/projects/{project.id}", headers=auth_headers(org))

        assert response.status_code == 200
        assert await count(db_session, Application) == 0
        assert await count(
            db_session,
            Notification,
            Notification.user_id == vol.id,
            Notification.type == "PROJECT_DELETED",
        ) == 1


@pytest.mark.asyncio
class TestApplicationEndpoints:
    """Test suite for the application lifecycle."""

    async def test_apply_respond_flow(self, client, db_session):
        org = await make_organization(db_session)
        vol = await make_volunteer(db_session)
        project = await make_project(db_session, org)

        applied = await client.post(
            f"/api/v1/projects/{project.id}/apply",
            headers=auth_headers(vol),
            json={"message": "Count me in", "estimated_hours": 6},
        )
        assert applied.status_code == 201
        application_id = applied.json()["application"]["id"]
        assert applied.json()["application"]["status"] == "PENDING"

        duplicate = await client.post(
            f"/api/v1/projects/{project.id}/apply", headers=auth_headers(vol), json={}
        )
        assert duplicate.status_code == 409

        listing = await client.get(
            f"/api/v1/projects/{project.id}/applications", headers=auth_headers(org)
        )
        assert listing.json()["applications"][0]["volunteer"]["id"] == str(vol.id)

        responded = await client.put(
            f"/api/v1/applications/{application_id}/respond",
            headers=auth_headers(org),
            json={"status": "ACCEPTED"},
        )
        assert responded.status_code == 200
        assert responded.json()["application"]["status"] == "ACCEPTED"

        withdraw = await client.delete(
            f"/api/v1/applications/{application_id}", headers=auth_headers(vol)
        )
        assert withdraw.status_code == 400

        mine = await client.get("/api/v1/applications/mine", headers=auth_headers(vol))
        assert mine.json()["applications"][0]["project"]["title"] == "Park Cleanup"

        stats = await client.get(f"/api/v1/projects/{project.id}/stats", headers=auth_headers(org))
        assert stats.json()["stats"]["applications"]["accepted"] == 1
        assert stats.json()["stats"]["project"]["volunteers_applied"] == 1

        types = (
            await db_session.execute(select(Notification.type).order_by(Notification.created_at))
        ).scalars().all()
        assert set(types) == {"NEW_APPLICATION", "APPLICATION_UPDATE"}

    async def test_withdraw_pending_application(self, client, db_session):
        org = await make_organization(db_session)
        vol = await make_volunteer(db_session)
        project = await make_project(db_session, org)
        applied = await client.post(
            f"/api/v1/projects/{project.id}/apply", headers=auth_headers(vol), json={}
        )
        application_id = applied.json()["application"]["id"]

        response = await client.delete(
            f"/api/v1/applications/{application_id}", headers=auth_headers(vol)
        )

        assert response.status_code == 200
        detail = await client.get(f"/api/v1/projects/{project.id}")
        assert detail.json()["project"]["volunteers_applied"] == 0

    async def test_cannot_apply_to_closed_project(self, client, db_session):
        org = await make_organization(db_session)
        vol = await make_volunteer(db_session)
        project = await make_project(db_session, org)
        await client.put(
            f"/api/v1/projects/{project.id}", headers=auth_headers(org), json={"status": "CLOSED"}
        )

        response = await client.post(
            f"/api/v1/projects/{project.id}/apply", headers=auth_headers(vol), json={}
        )
        assert response.status_code == 400

    async def test_respond_pending_is_rejected(self, client, db_session):
        org = await make_organization(db_session)
        vol = await make_volunteer(db_session)
        project = await make_project(db_session, org)
        applied = await client.post(
            f"/api/v1/projects/{project.id}/apply", headers=auth_headers(vol), json={}
        )

        response = await client.put(
            f"/api/v1/applications/{applied.json()['application']['id']}/respond",
            headers=auth_headers(org),
            json={"status": "PENDING"},
        )
        assert response.status_code == 400
