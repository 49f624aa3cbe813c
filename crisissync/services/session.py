"""
Session / access control state machine.

A Session is an explicit object owned by whoever drives the workflow (the
console on the client side, the token endpoint on the server side). States:

    UNAUTHENTICATED --login(CITIZEN)--------------> CITIZEN_SESSION
    UNAUTHENTICATED --login(ADMIN, good secret)---> ADMIN_SESSION
    any             --logout()--------------------> UNAUTHENTICATED

A failed admin login leaves the state untouched.
"""
import logging
import random
import secrets
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from crisissync.core.exceptions import AuthenticationFailed, PermissionDenied
from crisissync.core.permissions import UserRole, permissions_for

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    CITIZEN_SESSION = "citizen_session"
    ADMIN_SESSION = "admin_session"


class SessionUser(BaseModel):
    id: str
    name: str
    role: UserRole
    department: Optional[str] = None


def _credential_matches(supplied: Optional[str], expected: str) -> bool:
    if supplied is None:
        return False
    return secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


class Session:
    """Current user and role for one client session. Never persisted."""

    def __init__(self, admin_secret: str):
        self._admin_secret = admin_secret
        self._user: Optional[SessionUser] = None

    @property
    def user(self) -> Optional[SessionUser]:
        return self._user

    @property
    def role(self) -> Optional[UserRole]:
        return self._user.role if self._user else None

    @property
    def state(self) -> SessionState:
        if self._user is None:
            return SessionState.UNAUTHENTICATED
        if self._user.role == UserRole.ADMIN:
            return SessionState.ADMIN_SESSION
        return SessionState.CITIZEN_SESSION

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def login(self, role: UserRole, credential: Optional[str] = None) -> SessionUser:
        role = UserRole(role)
        if role == UserRole.ADMIN:
            if not _credential_matches(credential, self._admin_secret):
                logger.warning("Admin login rejected: invalid credential")
                raise AuthenticationFailed("Invalid command officer credential.")
            self._user = SessionUser(
                id="admin-01",
                name="Command Officer",
                role=UserRole.ADMIN,
                department="Central Dispatch",
            )
        else:
            # Anonymous citizen identity
            self._user = SessionUser(
                id=f"citizen-{random.randint(0, 999)}",
                name="Concerned Citizen",
                role=UserRole.CITIZEN,
            )
        logger.info(f"Session opened for {self._user.id} ({self._user.role.value})")
        return self._user

    def logout(self) -> None:
        if self._user is not None:
            logger.info(f"Session closed for {self._user.id}")
        self._user = None

    def has_permission(self, permission: str) -> bool:
        return permission in permissions_for(self.role)

    def require(self, permission: str, message: str) -> None:
        """Raise PermissionDenied(message) unless the current role grants ``permission``."""
        if not self.has_permission(permission):
            raise PermissionDenied(message)
