"""
Authentication router for CrisisSync.
Exchanges a role login for a JWT carrying the role's permissions.
"""

from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from crisissync.core.config import get_settings
from crisissync.core.exceptions import AuthenticationFailed
from crisissync.core.permissions import UserRole, permissions_for
from crisissync.core.security import create_access_token
from crisissync.services.session import Session

router = APIRouter()
settings = get_settings()


@router.post("/token")
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
) -> Any:
    """
    OAuth2 /token endpoint. ``username`` is the role (``admin`` or
    ``citizen``); ``password`` is only checked for admins.
    """
    try:
        role = UserRole(form_data.username.upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {form_data.username}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = Session(admin_secret=settings.admin_password)
    try:
        user = session.login(role, form_data.password or None)
    except AuthenticationFailed:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    scopes = sorted(permissions_for(user.role))
    access_token = create_access_token(
        data={"sub": user.id, "name": user.name, "role": user.role.value, "scopes": scopes},
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "role": user.role.value,
        "scopes": scopes,
        "user": user.model_dump(),
    }
