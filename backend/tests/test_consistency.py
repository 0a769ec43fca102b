"""
NoteSync Backend — Consistency Coordinator Tests
=================================================

What we test:
    ✅ ensure_category_exists creates once, then returns the existing row
    ✅ ensure_category_exists matches case-insensitively and keeps the stored spelling
    ✅ Concurrent ensure calls converge on a single category
    ✅ Only the call that created the row emits an event
    ✅ Cascades are two committed phases: a phase-2 failure leaves phase 1 applied
       and reports the count in the error context
"""

import asyncio

import pytest
from sqlalchemy import func, select

from notesync.config import Settings
from notesync.database import Database
from notesync.exceptions import ConflictError, ValidationError
from notesync.models.category import Category
from notesync.models.note import Note
from notesync.services.category_store import CategoryStore
from notesync.services.consistency import ConsistencyCoordinator
from notesync.services.events import EventBus, EventKind


class TestEnsureCategoryExists:
    @pytest.mark.asyncio
    async def test_creates_then_reuses(self, db_session, coordinator, recorded_events):
        first = await coordinator.ensure_category_exists(db_session, "user-1", "Generated Summary")
        second = await coordinator.ensure_category_exists(db_session, "user-1", "Generated Summary")

        assert first.id == second.id
        count = await db_session.scalar(select(func.count()).select_from(Category))
        assert count == 1

        creates = [e for e in recorded_events if e.kind is EventKind.CREATE]
        assert len(creates) == 1
        assert creates[0].payload["name"] == "Generated Summary"

    @pytest.mark.asyncio
    async def test_case_insensitive_match_keeps_stored_spelling(self, db_session, coordinator, category_store):
        await category_store.create(db_session, "user-1", "generated quiz")

        category = await coordinator.ensure_category_exists(db_session, "user-1", "Generated Quiz")

        assert category.name == "generated quiz"

    @pytest.mark.asyncio
    async def test_non_ascii_name_is_reused(self, db_session, coordinator):
        first = await coordinator.ensure_category_exists(db_session, "user-1", "Éclairs")
        second = await coordinator.ensure_category_exists(db_session, "user-1", "Éclairs")

        assert first.id == second.id
        assert await db_session.scalar(select(func.count()).select_from(Category)) == 1

    @pytest.mark.asyncio
    async def test_per_owner(self, db_session, coordinator):
        a = await coordinator.ensure_category_exists(db_session, "user-1", "Generated")
        b = await coordinator.ensure_category_exists(db_session, "user-2", "Generated")
        assert a.id != b.id

    @pytest.mark.asyncio
    async def test_blank_name(self, db_session, coordinator):
        with pytest.raises(ValidationError):
            await coordinator.ensure_category_exists(db_session, "user-1", "  ")

    @pytest.mark.asyncio
    async def test_works_without_event_bus(self, db_session):
        category = await ConsistencyCoordinator().ensure_category_exists(db_session, "user-1", "Solo")
        assert category.name == "Solo"

    @pytest.mark.asyncio
    async def test_concurrent_calls_converge(self, tmp_path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'ensure.db'}"
        database = Database(url=url, config=Settings(database_url=url))
        await database.open(create_schema=True)

        bus = EventBus()
        created = []
        bus.subscribe(created.append)
        coordinator = ConsistencyCoordinator(bus)

        async def ensure():
            async with database.session() as session:
                category = await coordinator.ensure_category_exists(session, "user-1", "Generated")
                return category.id

        try:
            ids = await asyncio.gather(*(ensure() for _ in range(5)))

            async with database.session() as session:
                count = await session.scalar(select(func.count()).select_from(Category))
        finally:
            await database.close()

        assert len(set(ids)) == 1
        assert count == 1
        assert len(created) == 1


class TestTwoPhaseCascades:
    @pytest.mark.asyncio
    async def test_rename_phase_two_failure_keeps_phase_one(
        self, db_session, category_store, note_store, make_note, monkeypatch
    ):
        await category_store.create(db_session, "user-1", "Home")
        work = await category_store.create(db_session, "user-1", "Work")
        work_id = work.id
        await note_store.create(db_session, make_note(category="Work"))
        await note_store.create(db_session, make_note(category="Work"))

        async def nothing_found(*args, **kwargs):
            return None

        # Skip the friendly pre-check so the unique index rejects phase 2
        monkeypatch.setattr(CategoryStore, "_find_by_name", nothing_found)

        with pytest.raises(ConflictError) as exc_info:
            await category_store.rename(db_session, work_id, "user-1", "Home")

        assert exc_info.value.context["notes_updated"] == 2

        names = await db_session.scalars(select(Category.name).order_by(Category.name))
        assert list(names) == ["Home", "Work"]
        moved = await db_session.scalars(select(Note.category))
        assert list(moved) == ["Home", "Home"]

    @pytest.mark.asyncio
    async def test_delete_cascade_commits_notes_first(self, db_session, coordinator, category_store, note_store, make_note):
        category = await category_store.create(db_session, "user-1", "Work")
        await note_store.create(db_session, make_note(category="Work"))

        deleted = await coordinator.delete_category(db_session, category)

        assert deleted == 1
        assert await db_session.scalar(select(func.count()).select_from(Note)) == 0
        assert await db_session.scalar(select(func.count()).select_from(Category)) == 0
