"""
ORM Model for reported incidents.

Single table. Column names follow the original SQLite layout so an existing
``database.sqlite`` stays readable: location is flattened into two REAL
columns and ``deployedResources`` holds a JSON-encoded string.
"""
from sqlalchemy import Column, String, Text, Float, BigInteger

from crisissync.core.database import Base


class IncidentORM(Base):
    __tablename__ = "incidents"

    id = Column(String(64), primary_key=True)

    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default="Pending")
    severity = Column(String(20), nullable=False, default="Medium")

    # Immutable after creation
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    timestamp = Column(BigInteger, nullable=False, index=True)
    reporter_name = Column("reporterName", Text, nullable=False)

    ai_analysis = Column("aiAnalysis", Text, nullable=True)
    image_url = Column("imageUrl", Text, nullable=True)  # URL or base64 data URI
    deployed_resources = Column("deployedResources", Text, nullable=False, default="[]")
