"""Models package."""

from crisissync.models.incident_orm import IncidentORM

__all__ = [
    "IncidentORM",
]
