"""
Vendor-neutral LLM Adapter.

Lower-level abstraction used by the incident analyzer (analysis.py). An
adapter sends one prompt, optionally with an inline JPEG, a JSON response
schema or a location for map grounding, and returns an LLMResponse.
Adapters raise on failure; the analyzer owns the fallback policy.
"""
import base64
import hashlib
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime, timezone
from pydantic import BaseModel, Field

from crisissync.core.logging import get_logger

logger = get_logger(__name__)


class LLMResponse(BaseModel):
    """Standardised response from any LLM adapter."""
    text: str
    model_version: str
    prompt_hash: str
    timestamp: datetime
    provider: str  # "gemini", "on-prem"
    # Places referenced by map grounding, as {"title", "uri"} dicts
    places: List[Dict[str, str]] = Field(default_factory=list)


class LLMAdapterConfig(BaseModel):
    """Configuration for an LLM adapter instance."""
    provider: str
    model_name: str
    api_key: Optional[str] = None
    endpoint_url: Optional[str] = None
    max_tokens: int = 1024
    temperature: float = 0.2
    timeout_seconds: float = 30.0


class LLMAdapter(ABC):
    """Abstract base class for LLM adapters."""

    def __init__(self, config: LLMAdapterConfig):
        self.config = config

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        image_base64: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        near: Optional[Tuple[float, float]] = None,
    ) -> LLMResponse:
        """Send a prompt to the LLM and return a standardised response."""
        ...

    def compute_prompt_hash(self, prompt: str) -> str:
        """SHA-256 prefix of the prompt, for log correlation."""
        return hashlib.sha256(prompt.encode()).hexdigest()[:16]

    @property
    def model_version(self) -> str:
        return f"{self.config.provider}/{self.config.model_name}"


class GeminiAdapter(LLMAdapter):
    """Google Gemini implementation."""

    async def generate(
        self,
        prompt: str,
        *,
        image_base64: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        near: Optional[Tuple[float, float]] = None,
    ) -> LLMResponse:
        from google import genai
        from google.genai import types

        client = genai.Client(
            api_key=self.config.api_key,
            http_options=types.HttpOptions(timeout=int(self.config.timeout_seconds * 1000)),
        )

        parts = [types.Part.from_text(text=prompt)]
        if image_base64:
            parts.append(types.Part.from_bytes(
                data=base64.b64decode(image_base64),
                mime_type="image/jpeg",
            ))

        config_kwargs: Dict[str, Any] = {}
        if response_schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_schema"] = response_schema
        if near is not None:
            latitude, longitude = near
            config_kwargs["tools"] = [types.Tool(google_maps=types.GoogleMaps())]
            config_kwargs["tool_config"] = types.ToolConfig(
                retrieval_config=types.RetrievalConfig(
                    lat_lng=types.LatLng(latitude=latitude, longitude=longitude),
                ),
            )

        response = await client.aio.models.generate_content(
            model=self.config.model_name,
            contents=[types.Content(role="user", parts=parts)],
            config=types.GenerateContentConfig(**config_kwargs) if config_kwargs else None,
        )
        return LLMResponse(
            text=response.text if response.text else "",
            model_version=self.model_version,
            prompt_hash=self.compute_prompt_hash(prompt),
            timestamp=datetime.now(timezone.utc),
            provider="gemini",
            places=_grounded_places(response),
        )


def _grounded_places(response: Any) -> List[Dict[str, str]]:
    """Pull map/web grounding chunks out of a Gemini response."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    places = []
    for chunk in chunks:
        source = getattr(chunk, "maps", None) or getattr(chunk, "web", None)
        if source is None:
            continue
        places.append({
            "title": getattr(source, "title", None) or "",
            "uri": getattr(source, "uri", None) or "",
        })
    return places


class OnPremAdapter(LLMAdapter):
    """Adapter for an on-premises OpenAI-compatible server (vLLM, Ollama, TGI). Text only."""

    async def generate(
        self,
        prompt: str,
        *,
        image_base64: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        near: Optional[Tuple[float, float]] = None,
    ) -> LLMResponse:
        import httpx

        if image_base64:
            logger.info("On-prem adapter ignores attached image")
        if response_schema is not None:
            prompt = f"{prompt}\nRespond with a single JSON object only."

        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{self.config.endpoint_url}/v1/completions",
                json={
                    "model": self.config.model_name,
                    "prompt": prompt,
                    "max_tokens": self.config.max_tokens,
                    "temperature": self.config.temperature,
                },
                timeout=self.config.timeout_seconds,
            )
            resp.raise_for_status()
            data = resp.json()
        return LLMResponse(
            text=data.get("choices", [{}])[0].get("text", ""),
            model_version=self.model_version,
            prompt_hash=self.compute_prompt_hash(prompt),
            timestamp=datetime.now(timezone.utc),
            provider="on-prem",
        )


def get_adapter(provider: Optional[str] = None) -> LLMAdapter:
    """
    Factory function. Returns the adapter named by ``provider`` or, when
    omitted, by the LLM_PROVIDER setting.
    """
    from crisissync.core.config import get_settings
    settings = get_settings()

    effective_provider = provider or settings.llm_provider

    if effective_provider == "gemini":
        return GeminiAdapter(LLMAdapterConfig(
            provider="gemini",
            model_name=settings.gemini_model,
            api_key=settings.gemini_api_key,
            timeout_seconds=settings.llm_timeout_seconds,
        ))
    elif effective_provider == "on-prem":
        return OnPremAdapter(LLMAdapterConfig(
            provider="on-prem",
            model_name=settings.onprem_llm_model,
            endpoint_url=settings.onprem_llm_url,
            timeout_seconds=settings.llm_timeout_seconds,
        ))
    else:
        raise ValueError(f"Unknown LLM provider: {effective_provider}")
