"""
NoteSync Backend — Category Store Tests
========================================

What we test:
    ✅ Names are trimmed; blank names are rejected
    ✅ Case-insensitive uniqueness per owner (pre-check and unique index)
    ✅ Different owners may reuse a name
    ✅ Listing is per owner, ordered case-insensitively
    ✅ Rename moves the owner's notes and reports how many
    ✅ Delete removes the owner's notes in that category and reports how many
    ✅ Unknown or foreign categories are not found
"""

import uuid

import pytest
from sqlalchemy import select

from notesync.exceptions import ConflictError, NotFoundError, ValidationError
from notesync.models.category import CATEGORY_UNIQUE_INDEX, Category
from notesync.models.note import Note
from notesync.services.category_store import CategoryStore
from notesync.services.events import EventKind


class TestCreateAndList:
    @pytest.mark.asyncio
    async def test_create_trims_and_emits(self, db_session, category_store, recorded_events):
        category = await category_store.create(db_session, "user-1", "  Work  ")

        assert category.name == "Work"
        assert category.owner_id == "user-1"
        assert recorded_events[-1].kind is EventKind.CREATE
        assert recorded_events[-1].entity == "category"
        assert recorded_events[-1].payload["name"] == "Work"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", [None, "", "   "])
    async def test_blank_name_is_rejected(self, db_session, category_store, name):
        with pytest.raises(ValidationError) as exc_info:
            await category_store.create(db_session, "user-1", name)
        assert exc_info.value.field == "name"

    @pytest.mark.asyncio
    async def test_duplicate_differs_only_in_case(self, db_session, category_store):
        await category_store.create(db_session, "user-1", "Work")

        with pytest.raises(ConflictError) as exc_info:
            await category_store.create(db_session, "user-1", "WORK")
        assert exc_info.value.constraint == CATEGORY_UNIQUE_INDEX

    @pytest.mark.asyncio
    async def test_unique_index_catches_what_the_pre_check_misses(
        self, db_session, category_store, monkeypatch
    ):
        await category_store.create(db_session, "user-1", "Work")

        async def nothing_found(*args, **kwargs):
            return None

        monkeypatch.setattr(CategoryStore, "_find_by_name", nothing_found)

        with pytest.raises(ConflictError):
            await category_store.create(db_session, "user-1", "work")

        rows = (await db_session.execute(select(Category))).scalars().all()
        assert [c.name for c in rows] == ["Work"]

    @pytest.mark.asyncio
    async def test_owners_are_independent(self, db_session, category_store):
        await category_store.create(db_session, "user-1", "Work")
        other = await category_store.create(db_session, "user-2", "work")
        assert other.name == "work"

    @pytest.mark.asyncio
    async def test_list_is_per_owner_and_case_insensitively_sorted(self, db_session, category_store):
        for name in ["beta", "Alpha", "Gamma"]:
            await category_store.create(db_session, "user-1", name)
        await category_store.create(db_session, "user-2", "Aardvark")

        categories = await category_store.list(db_session, "user-1")

        assert [c.name for c in categories] == ["Alpha", "beta", "Gamma"]

    @pytest.mark.asyncio
    async def test_lookup_folds_case_in_sql_on_both_sides(self, db_session, category_store):
        stored = await category_store.create(db_session, "user-1", "Äpfel")

        for spelling in ["Äpfel", "ÄPFEL"]:
            found = await category_store._find_by_name(db_session, "user-1", spelling)
            assert found is not None and found.id == stored.id

        with pytest.raises(ConflictError):
            await category_store.create(db_session, "user-1", "ÄPFEL")


class TestRename:
    @pytest.mark.asyncio
    async def test_rename_moves_notes(self, db_session, category_store, note_store, make_note, recorded_events):
        category = await category_store.create(db_session, "user-1", "Work")
        for _ in range(3):
            await note_store.create(db_session, make_note(category="Work"))
        await note_store.create(db_session, make_note(category="Home"))
        await note_store.create(db_session, make_note(category="Work", owner_id="user-2"))

        renamed, notes_updated = await category_store.rename(db_session, category.id, "user-1", " Job ")

        assert renamed.name == "Job"
        assert notes_updated == 3

        result = await db_session.execute(
            select(Note.owner_id, Note.category).order_by(Note.owner_id, Note.category)
        )
        assert sorted(result.all()) == [
            ("user-1", "Home"),
            ("user-1", "Job"),
            ("user-1", "Job"),
            ("user-1", "Job"),
            ("user-2", "Work"),
        ]

        event = recorded_events[-1]
        assert event.kind is EventKind.UPDATE
        assert event.payload["previous_name"] == "Work"
        assert event.payload["notes_updated"] == 3
        assert event.payload["updated_fields"] == ["name"]

    @pytest.mark.asyncio
    async def test_rename_with_no_notes(self, db_session, category_store):
        category = await category_store.create(db_session, "user-1", "Empty")
        _, notes_updated = await category_store.rename(db_session, category.id, "user-1", "Still Empty")
        assert notes_updated == 0

    @pytest.mark.asyncio
    async def test_rename_to_own_name_in_other_case(self, db_session, category_store):
        category = await category_store.create(db_session, "user-1", "work")
        renamed, _ = await category_store.rename(db_session, category.id, "user-1", "Work")
        assert renamed.name == "Work"

    @pytest.mark.asyncio
    async def test_rename_into_existing_name_conflicts(self, db_session, category_store, note_store, make_note):
        await category_store.create(db_session, "user-1", "Home")
        work = await category_store.create(db_session, "user-1", "Work")
        await note_store.create(db_session, make_note(category="Work"))

        with pytest.raises(ConflictError):
            await category_store.rename(db_session, work.id, "user-1", "home")

        # Rejected before the cascade started
        categories = await db_session.scalars(select(Note.category))
        assert list(categories) == ["Work"]

    @pytest.mark.asyncio
    async def test_rename_blank_name(self, db_session, category_store):
        category = await category_store.create(db_session, "user-1", "Work")
        with pytest.raises(ValidationError):
            await category_store.rename(db_session, category.id, "user-1", "  ")

    @pytest.mark.asyncio
    async def test_rename_foreign_category_is_not_found(self, db_session, category_store):
        category = await category_store.create(db_session, "user-1", "Work")
        with pytest.raises(NotFoundError):
            await category_store.rename(db_session, category.id, "user-2", "Mine Now")
        with pytest.raises(NotFoundError):
            await category_store.rename(db_session, uuid.uuid4(), "user-1", "Nothing")


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_category_and_its_notes(
        self, db_session, category_store, note_store, make_note, recorded_events
    ):
        category = await category_store.create(db_session, "user-1", "Work")
        await note_store.create(db_session, make_note(category="Work"))
        await note_store.create(db_session, make_note(category="Work"))
        kept = await note_store.create(db_session, make_note(category="Home"))

        notes_deleted = await category_store.delete(db_session, category.id, "user-1")

        assert notes_deleted == 2
        remaining = (await db_session.execute(select(Note))).scalars().all()
        assert [n.id for n in remaining] == [kept.id]
        assert await category_store.list(db_session, "user-1") == []

        event = recorded_events[-1]
        assert event.kind is EventKind.DELETE
        assert event.entity == "category"
        assert event.payload["notes_deleted"] == 2

    @pytest.mark.asyncio
    async def test_delete_leaves_other_owners_alone(self, db_session, category_store, note_store, make_note):
        category = await category_store.create(db_session, "user-1", "Work")
        await category_store.create(db_session, "user-2", "Work")
        await note_store.create(db_session, make_note(category="Work", owner_id="user-2"))

        assert await category_store.delete(db_session, category.id, "user-1") == 0

        assert len(await category_store.list(db_session, "user-2")) == 1
        assert len(await note_store.get_by_owner(db_session, "user-2")) == 1

    @pytest.mark.asyncio
    async def test_delete_unknown(self, db_session, category_store):
        with pytest.raises(NotFoundError):
            await category_store.delete(db_session, uuid.uuid4(), "user-1")
