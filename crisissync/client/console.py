"""
Dispatch console: the report / triage / dispatch workflow.

Drives an explicit Session, the incident API client and the analyzer.
Every mutating action consults the session first; a denied check raises
PermissionDenied and never touches the network. Changes are applied only
after the server confirms them, then the full incident list is re-fetched.
"""
import random
import time
import uuid
from typing import List, Optional

from crisissync.client.api_client import IncidentApiClient
from crisissync.core.exceptions import PermissionDenied, ReportSubmissionError, TransportError
from crisissync.core.logging import get_logger
from crisissync.core.permissions import (
    UserRole, VIEW_DASHBOARD, RESOLVE_INCIDENT, DISPATCH_RESOURCES,
)
from crisissync.schemas.analysis import NearbyResources
from crisissync.schemas.incidents import (
    Coordinates, DashboardStats, DisasterType, Incident, IncidentStatus, SeverityLevel,
)
from crisissync.services.analysis import IncidentAnalyzer, coerce_category, coerce_severity
from crisissync.services.session import Session, SessionUser

logger = get_logger(__name__)

AVAILABLE_RESOURCES = [
    "Red Cross Kenya",
    "St John Ambulance",
    "Nairobi Fire Rescue",
    "KWS Ranger Unit",
    "NDMA Response Team",
    "County Police Patrol",
    "Sonko Rescue Team",
    "AMREF Flying Doctors",
]

ADMIN_ONLY = "Access Denied: Tier 1 Admin clearance required to view operational details."
CANNOT_RESOLVE = "Insufficient permissions to resolve incidents."
CANNOT_DISPATCH = "Authorization required to dispatch resources."
SIGN_IN_FIRST = "Sign in to submit a report."
SESSION_EXPIRED = "Your session has expired. Please sign in again."


def unit_label(resource: str) -> str:
    """Catalogue entry -> concrete unit label, e.g. ``"St John Ambulance 42"``."""
    return f"{resource} {random.randint(1, 99)}"


def compute_stats(incidents: List[Incident]) -> DashboardStats:
    total = len(incidents)
    pending = sum(1 for i in incidents if i.status == IncidentStatus.PENDING)
    resolved = sum(1 for i in incidents if i.status == IncidentStatus.RESOLVED)
    critical = sum(
        1 for i in incidents if i.severity in (SeverityLevel.CRITICAL, SeverityLevel.HIGH)
    )
    return DashboardStats(
        total=total,
        pending=pending,
        active=total - pending - resolved,
        resolved=resolved,
        critical=critical,
    )


def filter_public_alerts(incidents: List[Incident]) -> List[Incident]:
    """High/Critical incidents that are not yet resolved."""
    return [
        i for i in incidents
        if i.severity in (SeverityLevel.CRITICAL, SeverityLevel.HIGH)
        and i.status != IncidentStatus.RESOLVED
    ]


class DispatchConsole:
    """Client-side workflow over one session."""

    def __init__(self, session: Session, client: IncidentApiClient, analyzer: IncidentAnalyzer):
        self.session = session
        self.client = client
        self.analyzer = analyzer
        self.incidents: List[Incident] = []

    @classmethod
    def from_settings(cls) -> "DispatchConsole":
        """Console wired to the configured backend URL, admin secret and LLM provider."""
        from crisissync.core.config import get_settings
        settings = get_settings()
        return cls(
            session=Session(admin_secret=settings.admin_password),
            client=IncidentApiClient(),
            analyzer=IncidentAnalyzer(),
        )

    # -- session -----------------------------------------------------------

    async def login(self, role: UserRole, credential: Optional[str] = None) -> SessionUser:
        """
        Open a session. A bad admin credential raises AuthenticationFailed
        and leaves the session as it was.
        """
        user = self.session.login(role, credential)
        self.client.clear_token()
        try:
            await self.client.authenticate(role, credential)
        except TransportError as e:
            # Reads still work; server-checked updates will be refused
            logger.warning(f"Could not obtain API token: {e}")
        await self.refresh()
        return user

    def logout(self) -> None:
        self.session.logout()
        self.client.clear_token()
        self.incidents = []

    # -- reads -------------------------------------------------------------

    async def refresh(self) -> List[Incident]:
        if not self.session.is_authenticated:
            self.incidents = []
            return self.incidents
        self.incidents = await self.client.list_incidents()
        return self.incidents

    def get(self, incident_id: str) -> Incident:
        for incident in self.incidents:
            if incident.id == incident_id:
                return incident
        raise KeyError(f"Unknown incident: {incident_id}")

    def dashboard_stats(self) -> DashboardStats:
        return compute_stats(self.incidents)

    def public_alerts(self) -> List[Incident]:
        return filter_public_alerts(self.incidents)

    # -- reporting ---------------------------------------------------------

    def _reporter_name(self) -> str:
        user = self.session.user
        if user is not None and user.role == UserRole.CITIZEN:
            return user.name or "Anonymous"
        return "Dispatched Unit"

    async def submit_report(
        self,
        description: str,
        location: Coordinates,
        image: Optional[str] = None,
        fallback_type: DisasterType = DisasterType.OTHER,
    ) -> Incident:
        """
        Classify a report, persist it and refresh the list.

        Classifier problems never surface here (the analyzer falls back).
        A failed persist raises ReportSubmissionError.
        """
        if not self.session.is_authenticated:
            raise PermissionDenied(SIGN_IN_FIRST)

        analysis = await self.analyzer.analyze_report(description, image)

        incident = Incident(
            id=uuid.uuid4().hex,
            title=analysis.summary or "New Incident Report",
            description=description,
            type=coerce_category(analysis.category, fallback_type),
            status=IncidentStatus.PENDING,
            severity=coerce_severity(analysis.severity),
            location=location,
            timestamp=int(time.time() * 1000),
            reporter_name=self._reporter_name(),
            ai_analysis=analysis.advice,
            image_url=image,
            deployed_resources=[],
        )

        try:
            created = await self.client.create_incident(incident)
        except TransportError as e:
            logger.error(f"Report submission failed: {e}")
            raise ReportSubmissionError() from e

        await self.refresh()
        return created

    # -- triage ------------------------------------------------------------

    async def change_status(self, incident_id: str, status: IncidentStatus) -> int:
        status = IncidentStatus(status)
        if status == IncidentStatus.RESOLVED:
            self.session.require(RESOLVE_INCIDENT, CANNOT_RESOLVE)
        self.session.require(VIEW_DASHBOARD, ADMIN_ONLY)

        changes = await self._send_update(incident_id, status=status)
        await self.refresh()
        return changes

    async def toggle_resource(self, incident_id: str, unit: str) -> List[str]:
        """Remove ``unit`` if deployed, otherwise append it. Returns the new list."""
        self.session.require(DISPATCH_RESOURCES, CANNOT_DISPATCH)

        current = list(self.get(incident_id).deployed_resources)
        if unit in current:
            updated = [r for r in current if r != unit]
        else:
            updated = current + [unit]

        await self._send_update(incident_id, deployed_resources=updated)
        await self.refresh()
        return updated

    async def _send_update(self, incident_id: str, **fields) -> int:
        """
        PUT an update. A 401 means the API token is no longer accepted: the
        session is closed and PermissionDenied(SESSION_EXPIRED) is raised.
        """
        try:
            return await self.client.update_incident(incident_id, **fields)
        except TransportError as e:
            if e.status_code != 401:
                raise
            logger.warning(f"API rejected the session token for {incident_id}, signing out")
            self.logout()
            raise PermissionDenied(SESSION_EXPIRED) from e

    async def find_resources(self, incident_id: str, facility_type: str) -> NearbyResources:
        self.session.require(VIEW_DASHBOARD, ADMIN_ONLY)
        incident = self.get(incident_id)
        return await self.analyzer.find_nearby_resources(
            incident.location.latitude, incident.location.longitude, facility_type,
        )

    async def situation_report(self) -> str:
        self.session.require(VIEW_DASHBOARD, ADMIN_ONLY)
        return await self.analyzer.situation_report(self.incidents)
