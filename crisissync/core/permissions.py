"""
Role-based permission table.

Static configuration: roles map to fixed sets of permission tokens.
The same table backs the console's local checks and the API's
per-request checks.
"""
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    CITIZEN = "CITIZEN"


VIEW_DASHBOARD = "view_dashboard"
RESOLVE_INCIDENT = "resolve_incident"
DISPATCH_RESOURCES = "dispatch_resources"
DELETE_INCIDENT = "delete_incident"  # no operation consumes this yet
CREATE_REPORT = "create_report"
VIEW_PUBLIC_ALERTS = "view_public_alerts"

ALL_PERMISSIONS = frozenset({
    VIEW_DASHBOARD, RESOLVE_INCIDENT, DISPATCH_RESOURCES, DELETE_INCIDENT,
    CREATE_REPORT, VIEW_PUBLIC_ALERTS,
})

PERMISSIONS: dict[UserRole, frozenset[str]] = {
    UserRole.ADMIN: frozenset({VIEW_DASHBOARD, RESOLVE_INCIDENT, DISPATCH_RESOURCES, DELETE_INCIDENT}),
    UserRole.CITIZEN: frozenset({CREATE_REPORT, VIEW_PUBLIC_ALERTS}),
}


def permissions_for(role: Optional[UserRole]) -> frozenset[str]:
    """Permissions granted to a role; no role means no permissions."""
    if role is None:
        return frozenset()
    return PERMISSIONS.get(UserRole(role), frozenset())


def has_permission(role: Optional[UserRole], permission: str) -> bool:
    return permission in permissions_for(role)
