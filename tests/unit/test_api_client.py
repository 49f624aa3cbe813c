"""
Unit tests for the incident API client against a mocked transport.
"""
import json

import httpx
import pytest

from crisissync.client.api_client import IncidentApiClient
from crisissync.core.exceptions import TransportError
from crisissync.core.permissions import UserRole
from crisissync.schemas.incidents import IncidentStatus


def _client(handler) -> IncidentApiClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IncidentApiClient(base_url="http://backend/api", http_client=http, timeout=5)


async def test_list_returns_empty_on_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert await _client(handler).list_incidents() == []


async def test_list_returns_empty_on_server_error():
    client = _client(lambda request: httpx.Response(500, json={"error": "db locked"}))
    assert await client.list_incidents() == []


@pytest.mark.parametrize("body", [{"data": None}, [], {"data": {"id": "1"}}, {"items": []}, "ok"])
async def test_list_returns_empty_on_unexpected_body(body):
    client = _client(lambda request: httpx.Response(200, json=body))
    assert await client.list_incidents() == []


async def test_list_returns_empty_on_non_json_body():
    client = _client(lambda request: httpx.Response(200, text="<html>proxy error</html>"))
    assert await client.list_incidents() == []


async def test_list_parses_incidents(incident_payload):
    client = _client(lambda request: httpx.Response(200, json={"data": [incident_payload]}))
    incidents = await client.list_incidents()
    assert [i.id for i in incidents] == ["abc123xyz"]


async def test_create_raises_transport_error(make_incident):
    client = _client(lambda request: httpx.Response(400, json={"error": "UNIQUE constraint failed"}))
    with pytest.raises(TransportError) as exc_info:
        await client.create_incident(make_incident())
    assert exc_info.value.status_code == 400
    assert "UNIQUE constraint failed" in str(exc_info.value)


async def test_create_sends_camel_case_body(make_incident):
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"message": "success", "data": seen["body"], "id": seen["body"]["id"]})

    created = await _client(handler).create_incident(make_incident(deployed_resources=["A", "B"]))
    assert seen["body"]["reporterName"] == "Concerned Citizen"
    assert seen["body"]["deployedResources"] == ["A", "B"]
    assert created.deployed_resources == ["A", "B"]


async def test_update_sends_only_supplied_fields():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"message": "success", "changes": 1})

    client = _client(handler)
    assert await client.update_incident("1", status=IncidentStatus.INVESTIGATING) == 1
    await client.update_incident("1", deployed_resources=[])
    assert bodies == [{"status": "Investigating"}, {"deployedResources": []}]


async def test_update_raises_on_forbidden():
    client = _client(lambda request: httpx.Response(403, json={"detail": "Not enough permissions"}))
    with pytest.raises(TransportError):
        await client.update_incident("1", status=IncidentStatus.RESOLVED)


async def test_token_is_attached_after_authenticate():
    auth_headers = []

    def handler(request):
        if request.url.path.endswith("/auth/token"):
            return httpx.Response(200, json={"access_token": "tok", "token_type": "bearer"})
        auth_headers.append(request.headers.get("Authorization"))
        return httpx.Response(200, json={"data": []})

    client = _client(handler)
    await client.list_incidents()
    await client.authenticate(UserRole.ADMIN, "admin123")
    await client.list_incidents()
    client.clear_token()
    await client.list_incidents()
    assert auth_headers == [None, "Bearer tok", None]


@pytest.mark.parametrize("body", [{"message": "success"}, {"data": None}, [], {"data": {"id": "x"}}])
async def test_create_with_unreadable_reply_raises_transport_error(make_incident, body):
    client = _client(lambda request: httpx.Response(200, json=body))
    with pytest.raises(TransportError):
        await client.create_incident(make_incident())


async def test_update_with_unreadable_reply_raises_transport_error():
    client = _client(lambda request: httpx.Response(200, json=["changes", 1]))
    with pytest.raises(TransportError):
        await client.update_incident("1", status=IncidentStatus.RESOLVED)
