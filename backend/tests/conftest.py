"""
Verdant Backend: Test Configuration (conftest.py)
=================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set before any verdant import so settings,
       the engine and the photo storage root all point at test locations.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session:   AsyncMock session for error-path unit tests
    ├── temp_storage:      temporary photo storage root
    ├── session_factory:   real SQLite database (temp file, WAL) with schema
    ├── db_session:        one session from that factory
    ├── make_plant:        inserts and commits a Plant
    ├── photo_b64:         small PNG as base64, generated with Pillow
    ├── fake_vision / fake_language: scripted AI capabilities
    └── test_client:       HTTPX AsyncClient over the app with overrides

Sessions on the SQLite database:
    Seed data and read results through short-lived sessions. The engine
    uses NullPool and WAL so the app's sessions, the enrichment pipeline's
    session and the test's own session never block each other.
"""

import base64
import io
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

# Override settings for testing BEFORE any verdant imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="verdant_test_")
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from verdant.database import Base, get_db_session
from verdant.models import Plant
from verdant.services.ai_base import (
    IdentityMatch,
    JournalEntry,
    LanguageCapability,
    LightClassification,
    VisionCapability,
)


# ══════════════════════════════════════════════════════════════════════════
# Fake AI Capabilities
# ══════════════════════════════════════════════════════════════════════════

class FakeVision(VisionCapability):
    """Scripted vision capability. Set `error` to make classify_light raise."""

    def __init__(self):
        self.is_available = True
        self.result = LightClassification(sunlight_level="high", confidence="high")
        self.error: Optional[Exception] = None
        self.calls: List[str] = []

    @property
    def available(self) -> bool:
        return self.is_available

    async def classify_light(self, photo_path: str) -> LightClassification:
        self.calls.append(photo_path)
        if self.error:
            raise self.error
        return self.result


class FakeLanguage(LanguageCapability):
    """Scripted language capability recording what it was given."""

    def __init__(self):
        self.is_available = True
        self.result = JournalEntry(
            narrative="Gave the fern a good drink.",
            identity_match=IdentityMatch(matches=True),
        )
        self.error: Optional[Exception] = None
        self.calls: List[Dict[str, Any]] = []

    @property
    def available(self) -> bool:
        return self.is_available

    async def generate_journal_entry(self, care_log, plant_with_care, history) -> JournalEntry:
        self.calls.append(
            {"care_log": care_log, "plant_with_care": plant_with_care, "history": history}
        )
        if self.error:
            raise self.error
        return self.result


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.get.return_value = plant
        mock_db_session.flush.side_effect = SQLAlchemyError("boom")
    """
    session = AsyncMock()
    session.get = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """
    Real SQLite database with the full schema, one file per test.

    pysqlite's own transaction handling breaks SAVEPOINT; the two listeners
    hand BEGIN to SQLAlchemy so begin_nested() works as on PostgreSQL.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'verdant.db'}",
        poolclass=NullPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_plant(session_factory):
    """
    Async factory inserting a committed Plant.

    Usage:
        plant = await make_plant(name="Fern", water_frequency_days=7)
    """

    async def _make(**overrides) -> Plant:
        fields = {
            "owner_id": "user-1",
            "name": "Fern",
            "type": "Boston Fern",
            "location": "Living room",
            "water_frequency_days": 7,
            "fertilizer_frequency_days": 30,
            "created_at": datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        plant = Plant(**fields)
        async with session_factory() as session:
            session.add(plant)
            await session.commit()
        return plant

    return _make


def image_b64(size=(64, 48), fmt="PNG", mode="RGB", color=(34, 139, 34)) -> str:
    buffer = io.BytesIO()
    Image.new(mode, size, color=color).save(buffer, format=fmt)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def photo_b64():
    """A small, valid PNG encoded as bare base64."""
    return image_b64()


@pytest.fixture
def large_photo_b64():
    """A 3000x2000 JPEG, larger than the normalization bound."""
    return image_b64(size=(3000, 2000), fmt="JPEG")


@pytest.fixture
def fake_vision():
    return FakeVision()


@pytest.fixture
def fake_language():
    return FakeLanguage()


@pytest_asyncio.fixture
async def test_client(session_factory, fake_vision, fake_language):
    """
    HTTPX AsyncClient talking to a fresh app.

    The request session and the enrichment pipeline both use the test
    database; the pipeline uses the fake AI capabilities. Background tasks
    finish before the client call returns.

    Usage:
        response = await test_client.get("/health")
    """
    from verdant.dependencies import get_enrichment_pipeline
    from verdant.main import create_app
    from verdant.services.enrichment import EnrichmentPipeline
    from verdant.services.gemini_service import GeminiService

    app = create_app(ai_service=GeminiService(api_key="test-key-not-real"))

    async def _db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _db_session
    app.dependency_overrides[get_enrichment_pipeline] = lambda: EnrichmentPipeline(
        session_factory=session_factory,
        vision=fake_vision,
        language=fake_language,
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
