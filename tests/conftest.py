"""
Pytest configuration and fixtures.
"""

import os

# Settings are read at import time; configure before importing the app.
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_PASSWORD", "admin123")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SEED_ON_STARTUP", "false")

from datetime import timedelta
from typing import AsyncGenerator, Callable, List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from crisissync.main import app
from crisissync.core.config import get_settings
from crisissync.core.database import Base, get_db
from crisissync.core.permissions import UserRole, permissions_for
from crisissync.core.resilience import CircuitBreaker
from crisissync.core.security import create_access_token
from crisissync.models.incident_orm import IncidentORM  # noqa: F401
from crisissync.schemas.incidents import Coordinates, DisasterType, Incident, SeverityLevel
from crisissync.services.analysis import IncidentAnalyzer
from crisissync.services.llm_adapter import LLMAdapter, LLMAdapterConfig, LLMResponse

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Fresh in-memory database per test.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database dependency overridden.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def open_updates(settings, monkeypatch):
    """Run with server-side permission checks disabled (client-only access control)."""
    monkeypatch.setattr(settings, "enforce_server_permissions", False)


def _token_headers(role: UserRole, expires_delta: timedelta = timedelta(minutes=5)) -> dict:
    token = create_access_token(
        {
            "sub": f"{role.value.lower()}-test",
            "name": "Test User",
            "role": role.value,
            "scopes": sorted(permissions_for(role)),
        },
        expires_delta=expires_delta,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers() -> dict:
    return _token_headers(UserRole.ADMIN)


@pytest.fixture
def citizen_headers() -> dict:
    return _token_headers(UserRole.CITIZEN)


@pytest.fixture
def expired_admin_headers() -> dict:
    """Admin token that expired five minutes ago."""
    return _token_headers(UserRole.ADMIN, expires_delta=timedelta(minutes=-5))


@pytest.fixture
def make_incident() -> Callable[..., Incident]:
    """Factory for valid incidents; keyword arguments override fields."""
    def _make(**overrides) -> Incident:
        fields = dict(
            id="inc-1",
            title="River overflow near bridge",
            description="Water rising fast, two homes flooded.",
            type=DisasterType.FLOOD,
            severity=SeverityLevel.HIGH,
            location=Coordinates(latitude=-1.3120, longitude=36.7890),
            timestamp=1_700_000_000_000,
            reporter_name="Concerned Citizen",
            ai_analysis="Move to higher ground.",
        )
        fields.update(overrides)
        return Incident(**fields)
    return _make


@pytest.fixture
def incident_payload() -> dict:
    """Full incident JSON as a browser client would send it."""
    return {
        "id": "abc123xyz",
        "title": "Bush fire near southern gate",
        "description": "Dry grass caught fire, spreading with wind.",
        "type": "Fire",
        "status": "Pending",
        "severity": "Medium",
        "location": {"latitude": -2.9904, "longitude": 38.4623},
        "timestamp": 1_700_000_100_000,
        "reporterName": "KWS Ranger Team",
        "aiAnalysis": "Keep clear of the fire line.",
        "imageUrl": None,
        "deployedResources": [],
    }


class FakeLLMAdapter(LLMAdapter):
    """Scripted adapter: returns queued texts or raises queued exceptions."""

    def __init__(self, replies: Optional[List] = None, places: Optional[List[dict]] = None):
        super().__init__(LLMAdapterConfig(provider="fake", model_name="scripted"))
        self.replies = list(replies or [])
        self.places = places or []
        self.calls: List[dict] = []

    async def generate(self, prompt, *, image_base64=None, response_schema=None, near=None):
        self.calls.append({
            "prompt": prompt,
            "image_base64": image_base64,
            "response_schema": response_schema,
            "near": near,
        })
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        from datetime import datetime, timezone
        return LLMResponse(
            text=reply,
            model_version=self.model_version,
            prompt_hash=self.compute_prompt_hash(prompt),
            timestamp=datetime.now(timezone.utc),
            provider="fake",
            places=self.places,
        )


@pytest.fixture
def fake_adapter() -> FakeLLMAdapter:
    return FakeLLMAdapter()


@pytest.fixture
def analyzer(fake_adapter) -> IncidentAnalyzer:
    """Analyzer over the fake adapter with its own breakers, isolated from other tests."""
    return IncidentAnalyzer(
        adapter=fake_adapter,
        classify_breaker=CircuitBreaker("test-classifier", failure_threshold=100, recovery_timeout=60),
        lookup_breaker=CircuitBreaker("test-lookup", failure_threshold=100, recovery_timeout=60),
        sitrep_breaker=CircuitBreaker("test-sitrep", failure_threshold=100, recovery_timeout=60),
    )
