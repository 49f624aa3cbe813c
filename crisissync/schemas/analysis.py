"""Classifier output shapes."""
from typing import List

from pydantic import BaseModel, Field

from crisissync.schemas.incidents import DisasterType, SeverityLevel


class AnalysisResult(BaseModel):
    """
    Structured classification of a report.

    ``severity`` and ``category`` are requested from the classifier as enum
    values but kept as plain strings here; callers map unknown values.
    """
    severity: str
    category: str
    summary: str
    advice: str


FALLBACK_ANALYSIS = AnalysisResult(
    severity=SeverityLevel.MEDIUM.value,
    category=DisasterType.OTHER.value,
    summary="Analysis failed. Manual review required.",
    advice="Stay safe and wait for responders.",
)


class NearbyPlace(BaseModel):
    title: str = ""
    uri: str = ""


class NearbyResources(BaseModel):
    text: str
    places: List[NearbyPlace] = Field(default_factory=list)
