"""
Incident Schemas and Enums.

Wire contract shared by the REST API, the incident store and the console
client. Field names are camelCase on the wire (``reporterName``,
``deployedResources``...) and snake_case in Python.
"""
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class DisasterType(str, Enum):
    FLOOD = "Flood"
    FIRE = "Fire"
    ACCIDENT = "Road Accident"
    EARTHQUAKE = "Earthquake"
    DROUGHT = "Drought"
    LANDSLIDE = "Landslide"
    OTHER = "Other"


class IncidentStatus(str, Enum):
    """Workflow convention only; any status may move to any other."""
    PENDING = "Pending"
    INVESTIGATING = "Investigating"
    RESOLVED = "Resolved"


class SeverityLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Coordinates(WireModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class IncidentBase(WireModel):
    title: str = Field(..., min_length=1)
    description: str
    type: DisasterType
    status: IncidentStatus = IncidentStatus.PENDING
    severity: SeverityLevel = SeverityLevel.MEDIUM
    location: Coordinates
    timestamp: int = Field(..., ge=0, description="Creation time, ms since epoch")
    reporter_name: str
    ai_analysis: Optional[str] = None
    image_url: Optional[str] = None
    deployed_resources: List[str] = Field(default_factory=list)

    @field_validator("deployed_resources", mode="before")
    @classmethod
    def _null_resources_are_empty(cls, value):
        return [] if value is None else value


class IncidentCreate(IncidentBase):
    """POST body. ``id`` is normally generated by the reporting client."""
    id: Optional[str] = Field(None, min_length=1, max_length=64)


class Incident(IncidentBase):
    id: str


class IncidentUpdate(WireModel):
    """PUT body. Every other field of a full incident is ignored."""
    status: Optional[IncidentStatus] = None
    deployed_resources: Optional[List[str]] = None


class IncidentListResponse(WireModel):
    data: List[Incident]


class IncidentCreateResponse(WireModel):
    message: str = "success"
    data: Incident
    id: str


class IncidentUpdateResponse(WireModel):
    message: str = "success"
    changes: int


class DashboardStats(WireModel):
    total: int = 0
    pending: int = 0
    active: int = 0
    resolved: int = 0
    critical: int = 0  # High and Critical together
