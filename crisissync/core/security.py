"""
Security and Authentication for the CrisisSync API.

OAuth2 password flow with JWT bearer tokens. A token carries the role and
the role's permission tokens as scopes. The incident update endpoint checks
them per request when ENFORCE_SERVER_PERMISSIONS is on.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from crisissync.core.config import get_settings
from crisissync.core.permissions import (
    UserRole, VIEW_DASHBOARD, RESOLVE_INCIDENT, DISPATCH_RESOURCES,
    CREATE_REPORT, VIEW_PUBLIC_ALERTS,
)
from crisissync.schemas.incidents import IncidentStatus, IncidentUpdate

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="api/auth/token",
    auto_error=False,  # GET and POST /incidents stay open
    scopes={
        VIEW_DASHBOARD: "View the operations dashboard and change incident status",
        RESOLVE_INCIDENT: "Mark incidents as Resolved",
        DISPATCH_RESOURCES: "Assign response units to incidents",
        CREATE_REPORT: "Submit incident reports",
        VIEW_PUBLIC_ALERTS: "View public alerts",
    },
)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """
    Generate a signed JWT token.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


class User(BaseModel):
    id: str
    name: str
    role: UserRole
    scopes: List[str] = []


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[User]:
    """
    Decode the bearer token if one was sent.

    No token yields None; a token that does not verify is a 401. With
    enforcement disabled the token is not read at all, so a stale one
    cannot block an update.
    """
    if token is None or not settings.enforce_server_permissions:
        return None

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        user_id: Optional[str] = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        return User(
            id=user_id,
            name=payload.get("name", ""),
            role=UserRole(payload.get("role")),
            scopes=payload.get("scopes", []),
        )
    except (JWTError, ValueError):
        raise credentials_exception


def required_update_permissions(update: IncidentUpdate) -> List[str]:
    """Permissions an update needs, derived from which mutable fields it touches."""
    required = [VIEW_DASHBOARD]
    if update.status == IncidentStatus.RESOLVED:
        required.append(RESOLVE_INCIDENT)
    if update.deployed_resources is not None:
        required.append(DISPATCH_RESOURCES)
    return required


def enforce_update_permissions(user: Optional[User], update: IncidentUpdate) -> None:
    """Per-request check for PUT /incidents/{id}. No-op when enforcement is disabled."""
    if not settings.enforce_server_permissions:
        return
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    for scope in required_update_permissions(update):
        if scope not in user.scopes:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Not enough permissions. Required scope: {scope}",
                headers={"WWW-Authenticate": f'Bearer scope="{scope}"'},
            )
