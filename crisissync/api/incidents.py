"""
Incident API Router.

GET    /incidents        all incidents, newest first
POST   /incidents        persist a reported incident
PUT    /incidents/{id}   change status and/or deployed resources

Only ``status`` and ``deployedResources`` are mutable after creation.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crisissync.core.database import get_db
from crisissync.core.security import User, get_current_user, enforce_update_permissions
from crisissync.schemas.incidents import (
    Incident, IncidentCreate, IncidentUpdate,
    IncidentListResponse, IncidentCreateResponse, IncidentUpdateResponse,
)
from crisissync.services.incident_store import IncidentStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=IncidentListResponse)
async def list_incidents(db: AsyncSession = Depends(get_db)):
    """List every incident, newest first."""
    incidents = await IncidentStore(db).list_all()
    return IncidentListResponse(data=incidents)


@router.post("", response_model=IncidentCreateResponse)
async def create_incident(payload: IncidentCreate, db: AsyncSession = Depends(get_db)):
    """
    Persist a new incident and echo it back.
    The id is normally supplied by the reporting client; one is assigned if absent.
    A duplicate id is rejected by the store (StorageError -> 400).
    """
    incident = Incident(**payload.model_dump(exclude={"id"}), id=payload.id or str(uuid.uuid4()))

    stored = await IncidentStore(db).insert(incident)
    await db.commit()

    logger.info(
        f"Incident {stored.id} created",
        extra={"extra_data": {
            "incident_id": stored.id,
            "type": stored.type.value,
            "severity": stored.severity.value,
        }},
    )
    return IncidentCreateResponse(data=stored, id=stored.id)


@router.put("/{incident_id}", response_model=IncidentUpdateResponse)
async def update_incident(
    incident_id: str,
    payload: IncidentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user),
):
    """
    Update the mutable fields of an incident.
    Unknown ids are not an error: the response reports zero changes.
    """
    enforce_update_permissions(current_user, payload)

    changes = await IncidentStore(db).update_fields(
        incident_id,
        status=payload.status,
        deployed_resources=payload.deployed_resources,
    )
    await db.commit()

    if changes == 0:
        logger.info(f"Update for unknown incident {incident_id} affected no rows")
    else:
        logger.info(
            f"Incident {incident_id} updated",
            extra={"extra_data": {
                "incident_id": incident_id,
                "status": payload.status.value if payload.status else None,
                "deployed_resources": payload.deployed_resources,
                "actor": current_user.id if current_user else None,
            }},
        )
    return IncidentUpdateResponse(changes=changes)
