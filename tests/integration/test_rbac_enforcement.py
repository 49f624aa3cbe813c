"""
Integration tests for the token endpoint and per-request permission checks
on incident updates.
"""
import pytest

from crisissync.core.permissions import VIEW_DASHBOARD, RESOLVE_INCIDENT, DISPATCH_RESOURCES
from crisissync.services.incident_store import IncidentStore


@pytest.fixture
async def seeded(db_session):
    await IncidentStore(db_session).seed_if_empty()
    await db_session.commit()


async def _token(client, username, password):
    return await client.post("/api/auth/token", data={"username": username, "password": password})


class TestTokenEndpoint:

    async def test_admin_with_correct_secret(self, client):
        response = await _token(client, "admin", "admin123")
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["role"] == "ADMIN"
        assert {VIEW_DASHBOARD, RESOLVE_INCIDENT, DISPATCH_RESOURCES} <= set(body["scopes"])
        assert body["user"]["id"] == "admin-01"

    async def test_admin_with_wrong_secret(self, client):
        response = await _token(client, "admin", "letmein")
        assert response.status_code == 401

    async def test_citizen_needs_no_secret(self, client):
        response = await _token(client, "citizen", "anonymous")
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "CITIZEN"
        assert VIEW_DASHBOARD not in body["scopes"]
        assert body["user"]["id"].startswith("citizen-")

    async def test_unknown_role(self, client):
        response = await _token(client, "mayor", "x")
        assert response.status_code == 401


class TestUpdateEnforcement:

    async def test_anonymous_update_is_401(self, client, seeded):
        response = await client.put("/api/incidents/2", json={"status": "Investigating"})
        assert response.status_code == 401

    async def test_invalid_token_is_401(self, client, seeded):
        response = await client.put(
            "/api/incidents/2",
            json={"status": "Investigating"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401

    @pytest.mark.parametrize("body", [
        {"status": "Investigating"},
        {"status": "Resolved"},
        {"deployedResources": ["Sonko Rescue Team 9"]},
    ])
    async def test_citizen_update_is_403(self, client, seeded, citizen_headers, body):
        response = await client.put("/api/incidents/2", json=body, headers=citizen_headers)
        assert response.status_code == 403

        listed = (await client.get("/api/incidents")).json()["data"]
        matatu = next(i for i in listed if i["id"] == "2")
        assert matatu["status"] == "Pending"
        assert matatu["deployedResources"] == []

    async def test_admin_token_from_endpoint_can_resolve(self, client, seeded):
        token = (await _token(client, "admin", "admin123")).json()["access_token"]
        response = await client.put(
            "/api/incidents/2",
            json={"status": "Resolved", "deployedResources": ["AMREF Flying Doctors 3"]},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 200
        assert response.json()["changes"] == 1

    async def test_reads_and_reports_stay_open(self, client, seeded, incident_payload):
        assert (await client.get("/api/incidents")).status_code == 200
        assert (await client.post("/api/incidents", json=incident_payload)).status_code == 200


async def test_updates_open_when_enforcement_disabled(client, seeded, open_updates):
    response = await client.put("/api/incidents/2", json={"status": "Resolved"})
    assert response.status_code == 200
    assert response.json()["changes"] == 1


async def test_expired_token_is_ignored_when_enforcement_disabled(
    client, seeded, open_updates, expired_admin_headers,
):
    response = await client.put(
        "/api/incidents/2", json={"status": "Investigating"}, headers=expired_admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["changes"] == 1


async def test_expired_token_is_401_when_enforced(client, seeded, expired_admin_headers):
    response = await client.put(
        "/api/incidents/2", json={"status": "Investigating"}, headers=expired_admin_headers,
    )
    assert response.status_code == 401


async def test_openapi_scopes_match_available_operations(client):
    schema = (await client.get("/openapi.json")).json()
    flows = schema["components"]["securitySchemes"]["OAuth2PasswordBearer"]["flows"]
    scopes = flows["password"]["scopes"]
    assert VIEW_DASHBOARD in scopes
    assert "delete_incident" not in scopes
