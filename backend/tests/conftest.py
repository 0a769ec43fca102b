"""
NoteSync Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Stores, the coordinator and the pipeline run against a real in-memory
       SQLite database (aiosqlite); the Gemini provider is replaced by a fake
       client; HTTP tests go through httpx's ASGITransport.

Fixture Hierarchy (all function-scoped):
    test_settings ─┬─ database ── db_session
                   └─ app_container ── test_client
    event_bus ── recorded_events
             ├── coordinator ── category_store
             └── note_store
    fake_gemini ── external_strategy ── make_pipeline
"""

import os

# Must be set before notesync.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = ""
os.environ["GENERATION_STRATEGY"] = "gemini"
os.environ["WEBHOOK_URL"] = ""
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"

from typing import List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from notesync.config import Settings
from notesync.database import Database
from notesync.schemas.note import NoteCreate
from notesync.services.consistency import ConsistencyCoordinator
from notesync.services.category_store import CategoryStore
from notesync.services.events import DomainEvent, EventBus
from notesync.services.file_service import FileService
from notesync.services.generation_pipeline import GenerationPipeline
from notesync.services.note_store import NoteStore
from notesync.services.strategies import GenerationStrategy, StrategyKind

from helpers import FakeGeminiClient, paragraph

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


# ══════════════════════════════════════════════════════════════════════════
# Settings & Database
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def test_settings() -> Settings:
    return Settings(database_url=MEMORY_URL, gemini_api_key="", generation_strategy="gemini")


@pytest_asyncio.fixture
async def database(test_settings):
    db = Database(url=MEMORY_URL, config=test_settings)
    await db.open(create_schema=True)
    yield db
    await db.close()


@pytest_asyncio.fixture
async def db_session(database):
    async with database.session() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Services
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded_events(event_bus) -> List[DomainEvent]:
    events: List[DomainEvent] = []
    event_bus.subscribe(events.append)
    return events


@pytest.fixture
def coordinator(event_bus) -> ConsistencyCoordinator:
    return ConsistencyCoordinator(event_bus)


@pytest.fixture
def note_store(event_bus) -> NoteStore:
    return NoteStore(event_bus)


@pytest.fixture
def category_store(event_bus, coordinator) -> CategoryStore:
    return CategoryStore(event_bus, coordinator)


@pytest.fixture
def fake_gemini() -> FakeGeminiClient:
    return FakeGeminiClient()


@pytest.fixture
def external_strategy(fake_gemini) -> GenerationStrategy:
    return GenerationStrategy(kind=StrategyKind.EXTERNAL, client=fake_gemini)


@pytest.fixture
def make_pipeline(note_store, coordinator, test_settings):
    def _make(strategy: GenerationStrategy) -> GenerationPipeline:
        return GenerationPipeline(note_store, coordinator, strategy, FileService(test_settings))
    return _make


@pytest.fixture
def make_note():
    """Builds a valid NoteCreate; keyword arguments override fields."""
    counter = {"n": 0}

    def _make(**overrides) -> NoteCreate:
        counter["n"] += 1
        data = {
            "doc_id": f"doc-{counter['n']}",
            "owner_id": "user-1",
            "title": f"Note {counter['n']}",
            "content": [paragraph("First sentence. Second sentence. Third sentence.")],
        }
        data.update(overrides)
        return NoteCreate(**data)

    return _make


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def app_container(test_settings, fake_gemini):
    from notesync.dependencies import build_container

    container = build_container(
        test_settings,
        database=Database(url=MEMORY_URL, config=test_settings),
        gemini_client=fake_gemini,
    )
    # ASGITransport does not run the lifespan; open the database here
    await container.database.open(create_schema=True)
    yield container
    await container.database.close()


@pytest_asyncio.fixture
async def test_client(app_container):
    """
    HTTPX client bound to a fresh app instance.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
    """
    from notesync.main import create_app

    app = create_app(app_container)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

