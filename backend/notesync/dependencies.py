"""
NoteSync Backend — Application Container & Route Dependencies
==============================================================

What:  Builds every long-lived collaborator once (database, event bus,
       stores, coordinator, pipeline) and exposes them to routes through
       typed FastAPI dependencies.
How:   `build_container(settings)` wires an `AppContainer`; `create_app`
       stores it on `app.state.container`. Routes declare what they need:

           async def list_notes(store: NoteStoreDep, db: DbSession, owner_id: OwnerId): ...

Identity:
    The caller is identified by the trusted `X-User-ID` header (set by the
    gateway). A request without it fails with ValidationError(field="owner_id").
"""

from dataclasses import dataclass
from typing import Annotated, AsyncIterator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.config import Settings, settings as default_settings
from notesync.database import Database
from notesync.exceptions import ValidationError
from notesync.services.category_store import CategoryStore
from notesync.services.consistency import ConsistencyCoordinator
from notesync.services.events import ActivityTracker, EventBus, WebhookNotifier, log_observer
from notesync.services.file_service import FileService
from notesync.services.gemini_service import GeminiClient
from notesync.services.generation_pipeline import GenerationPipeline
from notesync.services.note_store import NoteStore
from notesync.services.strategies import GenerationStrategy, build_strategy


@dataclass
class AppContainer:
    settings: Settings
    database: Database
    event_bus: EventBus
    activity_tracker: ActivityTracker
    note_store: NoteStore
    category_store: CategoryStore
    coordinator: ConsistencyCoordinator
    strategy: GenerationStrategy
    pipeline: GenerationPipeline


def build_container(
    config: Optional[Settings] = None,
    database: Optional[Database] = None,
    gemini_client: Optional[GeminiClient] = None,
) -> AppContainer:
    """
    Wire the application. `database` and `gemini_client` can be injected
    (tests pass an in-memory database and a client with a mocked model).
    """
    config = config or default_settings

    event_bus = EventBus()
    event_bus.subscribe(log_observer)
    activity_tracker = ActivityTracker(max_records=config.activity_log_size)
    event_bus.subscribe(activity_tracker)
    event_bus.subscribe(WebhookNotifier(config.webhook_url, timeout=config.webhook_timeout))

    coordinator = ConsistencyCoordinator(event_bus)
    note_store = NoteStore(event_bus)
    category_store = CategoryStore(event_bus, coordinator)
    strategy = build_strategy(config, gemini_client)

    return AppContainer(
        settings=config,
        database=database or Database(config=config),
        event_bus=event_bus,
        activity_tracker=activity_tracker,
        note_store=note_store,
        category_store=category_store,
        coordinator=coordinator,
        strategy=strategy,
        pipeline=GenerationPipeline(note_store, coordinator, strategy, FileService(config)),
    )


# ── Dependencies ──────────────────────────────────────────────────────────


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    """One session per request; committed on success, rolled back on error."""
    async with get_container(request).database.session() as session:
        yield session


def get_owner_id(x_user_id: Annotated[Optional[str], Header()] = None) -> str:
    owner_id = (x_user_id or "").strip()
    if not owner_id:
        raise ValidationError(message="X-User-ID header is required", field="owner_id")
    return owner_id


def get_note_store(request: Request) -> NoteStore:
    return get_container(request).note_store


def get_category_store(request: Request) -> CategoryStore:
    return get_container(request).category_store


def get_pipeline(request: Request) -> GenerationPipeline:
    return get_container(request).pipeline


def get_activity_tracker(request: Request) -> ActivityTracker:
    return get_container(request).activity_tracker


ContainerDep = Annotated[AppContainer, Depends(get_container)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
OwnerId = Annotated[str, Depends(get_owner_id)]
NoteStoreDep = Annotated[NoteStore, Depends(get_note_store)]
CategoryStoreDep = Annotated[CategoryStore, Depends(get_category_store)]
PipelineDep = Annotated[GenerationPipeline, Depends(get_pipeline)]
ActivityTrackerDep = Annotated[ActivityTracker, Depends(get_activity_tracker)]
