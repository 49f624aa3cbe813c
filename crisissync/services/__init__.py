"""Services package."""

from crisissync.services.incident_store import IncidentStore
from crisissync.services.session import Session, SessionState, SessionUser

__all__ = [
    "IncidentStore",
    "Session",
    "SessionState",
    "SessionUser",
]
