"""
Incident Analyzer - AI triage for incoming reports.

Wraps an LLMAdapter behind one circuit breaker per operation. Every public
method absorbs upstream failures and returns a fixed fallback, so callers
never see a classifier error.
"""
import json
from typing import Optional, Sequence

from crisissync.core.exceptions import UpstreamClassifierError
from crisissync.core.logging import get_logger
from crisissync.core.resilience import (
    CircuitBreaker, classifier_circuit_breaker, resource_lookup_circuit_breaker, sitrep_circuit_breaker,
)
from crisissync.schemas.analysis import (
    AnalysisResult, FALLBACK_ANALYSIS, NearbyPlace, NearbyResources,
)
from crisissync.schemas.incidents import DisasterType, Incident, SeverityLevel
from crisissync.services.llm_adapter import LLMAdapter, LLMResponse, get_adapter

logger = get_logger(__name__)

RESOURCE_LOOKUP_FALLBACK = "Could not fetch nearby resources at this time."
NO_INCIDENTS_SITREP = "No active incidents. Systems operational and monitoring."
EMPTY_SITREP = "Monitor active incidents and ensure resources are available."
FAILED_SITREP = "Unable to generate situation report."

ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "severity": {"type": "STRING", "enum": [s.value for s in SeverityLevel]},
        "category": {"type": "STRING", "enum": [t.value for t in DisasterType]},
        "summary": {"type": "STRING"},
        "advice": {"type": "STRING"},
    },
    "required": ["severity", "category", "summary", "advice"],
}


def build_analysis_prompt(description: str) -> str:
    return (
        "You are a disaster management AI assistant. Analyze the following incident report.\n"
        "Determine the severity level (Low, Medium, High, Critical), the category of disaster, "
        "provide a short professional summary (max 20 words), and give 1 sentence of immediate "
        "safety advice.\n\n"
        f'Report Description: "{description}"'
    )


def strip_data_uri(image: Optional[str]) -> Optional[str]:
    """``data:image/jpeg;base64,AAAA`` -> ``AAAA``. Bare payloads pass through."""
    if not image:
        return None
    if image.startswith("data:") and "," in image:
        return image.split(",", 1)[1]
    return image


def parse_analysis(text: str) -> AnalysisResult:
    """Decode the classifier's JSON reply. Raises UpstreamClassifierError if unusable."""
    if not text:
        raise UpstreamClassifierError("No response from AI")
    cleaned = text.strip()
    # Some providers wrap JSON in a markdown fence
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    try:
        payload = json.loads(cleaned)
        return AnalysisResult.model_validate(payload)
    except ValueError as e:
        raise UpstreamClassifierError(f"Malformed classifier response: {e}") from e


class IncidentAnalyzer:
    """Classification, resource lookup and SitRep generation."""

    def __init__(
        self,
        adapter: Optional[LLMAdapter] = None,
        classify_breaker: Optional[CircuitBreaker] = None,
        lookup_breaker: Optional[CircuitBreaker] = None,
        sitrep_breaker: Optional[CircuitBreaker] = None,
    ):
        self._adapter = adapter
        self.classify_breaker = classify_breaker or classifier_circuit_breaker
        self.lookup_breaker = lookup_breaker or resource_lookup_circuit_breaker
        self.sitrep_breaker = sitrep_breaker or sitrep_circuit_breaker

    @property
    def adapter(self) -> LLMAdapter:
        if self._adapter is None:
            self._adapter = get_adapter()
        return self._adapter

    async def _generate(self, breaker: CircuitBreaker, prompt: str, **kwargs) -> LLMResponse:
        return await breaker.call(self.adapter.generate, prompt, **kwargs)

    async def analyze_report(self, description: str, image_base64: Optional[str] = None) -> AnalysisResult:
        """
        Classify a report. Any failure yields FALLBACK_ANALYSIS
        (Medium / Other / manual review / stay safe).
        """
        try:
            response = await self._generate(
                self.classify_breaker,
                build_analysis_prompt(description),
                image_base64=strip_data_uri(image_base64),
                response_schema=ANALYSIS_SCHEMA,
            )
            result = parse_analysis(response.text)
        except Exception as e:
            logger.error(f"AI analysis failed: {e}")
            return FALLBACK_ANALYSIS.model_copy()

        logger.info(
            "Report classified",
            extra={"extra_data": {
                "severity": result.severity,
                "category": result.category,
                "model_version": response.model_version,
                "prompt_hash": response.prompt_hash,
            }},
        )
        return result

    async def find_nearby_resources(
        self, latitude: float, longitude: float, facility_type: str,
    ) -> NearbyResources:
        """Free-text advice plus grounded places; fallback text and no places on failure."""
        prompt = f"Find {facility_type} near latitude {latitude}, longitude {longitude}."
        try:
            response = await self._generate(self.lookup_breaker, prompt, near=(latitude, longitude))
        except Exception as e:
            logger.error(f"Resource lookup failed: {e}")
            return NearbyResources(text=RESOURCE_LOOKUP_FALLBACK, places=[])

        return NearbyResources(
            text=response.text,
            places=[NearbyPlace(**place) for place in response.places],
        )

    async def situation_report(self, incidents: Sequence[Incident]) -> str:
        """One-sentence SitRep for the dashboard from the five newest incidents."""
        if not incidents:
            return NO_INCIDENTS_SITREP

        summaries = "; ".join(
            f"{i.type.value} ({i.severity.value}): {i.title}" for i in list(incidents)[:5]
        )
        prompt = (
            "You are a tactical operations commander AI.\n"
            f'Based on these current active incidents: "{summaries}".\n'
            "Provide a 1-sentence strategic situation report (SitRep) for the dashboard. "
            "Focus on resource allocation or general public safety advice."
        )
        try:
            response = await self._generate(self.sitrep_breaker, prompt)
        except Exception as e:
            logger.error(f"SitRep generation failed: {e}")
            return FAILED_SITREP
        return response.text or EMPTY_SITREP


def coerce_severity(value: str) -> SeverityLevel:
    try:
        return SeverityLevel(value)
    except ValueError:
        return SeverityLevel.MEDIUM


def coerce_category(value: str, fallback: DisasterType = DisasterType.OTHER) -> DisasterType:
    try:
        return DisasterType(value)
    except ValueError:
        return fallback

