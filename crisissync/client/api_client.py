"""
HTTP client for the CrisisSync incident API.

Listing degrades to an empty list on any failure; create and update raise
TransportError so the caller can tell the user.
"""
from typing import List, Optional

import httpx

from crisissync.core.exceptions import TransportError
from crisissync.core.logging import get_logger, correlation_id_ctx
from crisissync.core.permissions import UserRole
from crisissync.schemas.incidents import Incident, IncidentStatus

logger = get_logger(__name__)


class IncidentApiClient:
    """Thin async wrapper over ``/incidents`` and ``/auth/token``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        if base_url is None or timeout is None:
            from crisissync.core.config import get_settings
            settings = get_settings()
            base_url = base_url or settings.client_base_url
            timeout = timeout if timeout is not None else settings.client_timeout_seconds
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None
        self._access_token: Optional[str] = None

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "IncidentApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def clear_token(self) -> None:
        self._access_token = None

    def _headers(self) -> dict:
        headers = {}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        cid = correlation_id_ctx.get()
        if cid:
            headers["X-Correlation-ID"] = cid
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        if response.is_error:
            raise TransportError(
                f"{method} {url} returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        return response

    async def authenticate(self, role: UserRole, credential: Optional[str] = None) -> str:
        """Obtain a bearer token for ``role``; later requests carry it."""
        response = await self._request(
            "POST",
            "/auth/token",
            data={"username": UserRole(role).value.lower(), "password": credential or "anonymous"},
        )
        self._access_token = response.json()["access_token"]
        return self._access_token

    async def list_incidents(self) -> List[Incident]:
        """All incidents, newest first. Any failure is logged and yields []."""
        try:
            response = await self._request("GET", "/incidents")
            items = _envelope_data(response)
            if not isinstance(items, list):
                raise TransportError(f"Expected a list of incidents, got {type(items).__name__}")
            return [Incident.model_validate(item) for item in items]
        except (TransportError, ValueError) as e:
            logger.error(f"API Error: {e}")
            return []

    async def create_incident(self, incident: Incident) -> Incident:
        """Persist ``incident``. Raises TransportError on failure or an unreadable reply."""
        response = await self._request(
            "POST", "/incidents", json=incident.model_dump(mode="json", by_alias=True),
        )
        try:
            return Incident.model_validate(_envelope_data(response))
        except ValueError as e:
            raise TransportError(f"Unreadable create response: {e}", status_code=response.status_code) from e

    async def update_incident(
        self,
        incident_id: str,
        status: Optional[IncidentStatus] = None,
        deployed_resources: Optional[List[str]] = None,
    ) -> int:
        """Send only the supplied mutable fields. Returns the server's change count."""
        body = {}
        if status is not None:
            body["status"] = IncidentStatus(status).value
        if deployed_resources is not None:
            body["deployedResources"] = list(deployed_resources)
        response = await self._request("PUT", f"/incidents/{incident_id}", json=body)
        try:
            payload = response.json()
            return int(payload.get("changes", 0))
        except (ValueError, TypeError, AttributeError) as e:
            raise TransportError(f"Unreadable update response: {e}", status_code=response.status_code) from e


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        return str(payload.get("error") or payload.get("detail") or payload)
    return str(payload)


def _envelope_data(response: httpx.Response):
    """``data`` member of a ``{"data": ...}`` reply. Raises TransportError for any other shape."""
    try:
        payload = response.json()
    except ValueError as e:
        raise TransportError(f"Response is not JSON: {e}", status_code=response.status_code) from e
    if not isinstance(payload, dict) or "data" not in payload:
        raise TransportError(
            f"Unexpected response body: {str(payload)[:200]}", status_code=response.status_code,
        )
    return payload["data"]
