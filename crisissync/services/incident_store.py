"""
Incident Store - Database operations for incident records.

Keyed CRUD over the single ``incidents`` table. There is no delete: an
incident exists for good once inserted.
"""
import json
import time
from typing import List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crisissync.core.exceptions import StorageError
from crisissync.core.logging import get_logger
from crisissync.models.incident_orm import IncidentORM
from crisissync.schemas.incidents import (
    Coordinates, DisasterType, Incident, IncidentStatus, SeverityLevel,
)

logger = get_logger(__name__)


def encode_resources(resources: Optional[List[str]]) -> str:
    return json.dumps(list(resources or []))


def decode_resources(raw: Optional[str]) -> List[str]:
    """Stored JSON string back to an ordered list. Empty or broken values read as []."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Discarding undecodable deployedResources value: {raw!r}")
        return []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


class IncidentStore:
    """Repository for incident database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_all(self) -> List[Incident]:
        """Every incident, newest first. No pagination."""
        result = await self.session.execute(
            select(IncidentORM).order_by(IncidentORM.timestamp.desc())
        )
        return [self._orm_to_pydantic(row) for row in result.scalars().all()]

    async def get(self, incident_id: str) -> Optional[Incident]:
        orm_obj = await self.session.get(IncidentORM, incident_id)
        if orm_obj is None:
            return None
        return self._orm_to_pydantic(orm_obj)

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(IncidentORM))
        return result.scalar_one()

    async def insert(self, incident: Incident) -> Incident:
        """
        Insert a new incident.

        Raises StorageError when the id is already taken; the stored
        record is left as it was.
        """
        existing = await self.session.get(IncidentORM, incident.id)
        if existing is not None:
            raise StorageError(f"UNIQUE constraint failed: incidents.id ({incident.id})")

        orm_obj = IncidentORM(
            id=incident.id,
            title=incident.title,
            description=incident.description,
            type=incident.type.value,
            status=incident.status.value,
            severity=incident.severity.value,
            latitude=incident.location.latitude,
            longitude=incident.location.longitude,
            timestamp=incident.timestamp,
            reporter_name=incident.reporter_name,
            ai_analysis=incident.ai_analysis,
            image_url=incident.image_url,
            deployed_resources=encode_resources(incident.deployed_resources),
        )
        self.session.add(orm_obj)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError(str(e.orig) if getattr(e, "orig", None) else str(e)) from e

        return self._orm_to_pydantic(orm_obj)

    async def update_fields(
        self,
        incident_id: str,
        status: Optional[IncidentStatus] = None,
        deployed_resources: Optional[List[str]] = None,
    ) -> int:
        """
        Update the mutable fields of an incident.

        Only the arguments that are not None are written. Returns the
        number of rows affected: 0 for an unknown id, which is not an error.
        """
        values = {}
        if status is not None:
            values["status"] = IncidentStatus(status).value
        if deployed_resources is not None:
            values["deployed_resources"] = encode_resources(deployed_resources)

        if not values:
            return 1 if await self.session.get(IncidentORM, incident_id) is not None else 0

        try:
            result = await self.session.execute(
                update(IncidentORM)
                .where(IncidentORM.id == incident_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError(str(e)) from e
        return result.rowcount or 0

    async def seed_if_empty(self) -> int:
        """Insert the example incidents when the table is empty. Returns rows inserted."""
        if await self.count() > 0:
            return 0
        logger.info("Seeding database with initial data...")
        seeds = seed_incidents()
        for incident in seeds:
            await self.insert(incident)
        return len(seeds)

    @staticmethod
    def _orm_to_pydantic(orm_obj: IncidentORM) -> Incident:
        return Incident(
            id=orm_obj.id,
            title=orm_obj.title,
            description=orm_obj.description,
            type=DisasterType(orm_obj.type),
            status=IncidentStatus(orm_obj.status),
            severity=SeverityLevel(orm_obj.severity),
            location=Coordinates(latitude=orm_obj.latitude, longitude=orm_obj.longitude),
            timestamp=orm_obj.timestamp,
            reporter_name=orm_obj.reporter_name,
            ai_analysis=orm_obj.ai_analysis,
            image_url=orm_obj.image_url,
            deployed_resources=decode_resources(orm_obj.deployed_resources),
        )


def seed_incidents(now_ms: Optional[int] = None) -> List[Incident]:
    """The two bootstrap incidents, timestamped one and two hours before now."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return [
        Incident(
            id="1",
            title="Flash Flood in Kibera",
            description="Heavy rains caused river banks to overflow near the bridge. Several homes affected.",
            type=DisasterType.FLOOD,
            status=IncidentStatus.INVESTIGATING,
            severity=SeverityLevel.HIGH,
            location=Coordinates(latitude=-1.3120, longitude=36.7890),
            timestamp=now_ms - 3_600_000,
            reporter_name="John Kamau",
            ai_analysis="High risk of waterborne diseases. Immediate evacuation of low-lying structures recommended.",
            image_url="https://images.unsplash.com/photo-1548625361-888469d6571d?auto=format&fit=crop&q=80&w=400",
            deployed_resources=["Red Cross Unit 4", "Nairobi Fire Dept"],
        ),
        Incident(
            id="2",
            title="Matatu Collision on Thika Superhighway",
            description="14-seater matatu collided with a lorry near Roysambu. Traffic standstill.",
            type=DisasterType.ACCIDENT,
            status=IncidentStatus.PENDING,
            severity=SeverityLevel.CRITICAL,
            location=Coordinates(latitude=-1.2186, longitude=36.8868),
            timestamp=now_ms - 7_200_000,
            reporter_name="Jane Wanjiku",
            ai_analysis="Potential multiple casualties. Requires immediate advanced life support units.",
            image_url="https://images.unsplash.com/photo-1566416954271-965a3952f207?auto=format&fit=crop&q=80&w=400",
            deployed_resources=[],
        ),
    ]
