"""
NoteSync Backend — Note Store Tests
====================================

What:  NoteStore against a real in-memory SQLite database.
How:   Every test gets a fresh schema (see conftest.py); events are captured
       through the `recorded_events` fixture.

What we test:
    ✅ create: required fields named in the error, duplicate doc_id → 409
    ✅ reads: by doc_id, owner scoping, filters, most-recent-first ordering
    ✅ update: required title/content, updated_fields reported in the event
    ✅ delete, toggle_archive / toggle_star flip semantics
    ✅ set_category: canonical spelling, unknown category, clearing
    ✅ Events are emitted after the commit, one per mutation
    ✅ Unexpected storage failures become InternalError with the driver message
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError

from notesync.database import storage_errors
from notesync.exceptions import ConflictError, InternalError, NotFoundError, ValidationError
from notesync.models.note import DEFAULT_PREVIEW, Note
from notesync.schemas.note import NoteFilter, NoteUpdate
from notesync.services.events import EventKind

from helpers import paragraph


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_persists_and_emits(self, db_session, note_store, make_note, recorded_events):
        note = await note_store.create(db_session, make_note(doc_id="abc", tags=["a", "a", " "]))

        assert note.id is not None
        assert note.doc_id == "abc"
        assert note.preview == DEFAULT_PREVIEW
        assert note.tags == ["a"]
        assert note.provenance == "text"
        assert note.is_archived is False and note.is_starred is False

        assert len(recorded_events) == 1
        event = recorded_events[0]
        assert event.kind is EventKind.CREATE
        assert event.entity == "note"
        assert event.entity_id == "abc"
        assert event.owner_id == "user-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["doc_id", "title", "content", "owner_id"])
    async def test_missing_required_field_is_named(self, db_session, note_store, make_note, missing):
        with pytest.raises(ValidationError) as exc_info:
            await note_store.create(db_session, make_note(**{missing: None}))
        assert exc_info.value.field == missing

    @pytest.mark.asyncio
    async def test_blank_title_is_missing(self, db_session, note_store, make_note):
        with pytest.raises(ValidationError) as exc_info:
            await note_store.create(db_session, make_note(title="   "))
        assert exc_info.value.field == "title"

    @pytest.mark.asyncio
    async def test_empty_content_list_is_accepted(self, db_session, note_store, make_note):
        note = await note_store.create(db_session, make_note(content=[]))
        assert note.content == []

    @pytest.mark.asyncio
    async def test_duplicate_doc_id_conflicts(self, db_session, note_store, make_note, recorded_events):
        await note_store.create(db_session, make_note(doc_id="dup"))

        with pytest.raises(ConflictError) as exc_info:
            await note_store.create(db_session, make_note(doc_id="dup", owner_id="user-2"))

        assert exc_info.value.constraint == "doc_id"
        assert len(recorded_events) == 1

    @pytest.mark.asyncio
    async def test_unique_index_is_the_authority(self, db_session, note_store, make_note, monkeypatch):
        """A duplicate that slips past the pre-check is still a conflict."""
        await note_store.create(db_session, make_note(doc_id="race"))

        async def no_existing(*args, **kwargs):
            return 0

        monkeypatch.setattr(db_session, "scalar", no_existing)

        with pytest.raises(ConflictError):
            await note_store.create(db_session, make_note(doc_id="race"))

        monkeypatch.undo()
        rows = (await db_session.execute(select(Note).where(Note.doc_id == "race"))).scalars().all()
        assert len(rows) == 1


class TestReads:
    @pytest.mark.asyncio
    async def test_get_by_doc_id(self, db_session, note_store, make_note):
        created = await note_store.create(db_session, make_note(doc_id="find-me"))
        found = await note_store.get_by_doc_id(db_session, "find-me")
        assert found.id == created.id

    @pytest.mark.asyncio
    async def test_get_missing_raises_not_found(self, db_session, note_store):
        with pytest.raises(NotFoundError) as exc_info:
            await note_store.get_by_doc_id(db_session, "nope")
        assert exc_info.value.context["resource_id"] == "nope"

    @pytest.mark.asyncio
    async def test_other_owners_note_is_not_found(self, db_session, note_store, make_note):
        await note_store.create(db_session, make_note(doc_id="mine", owner_id="user-1"))

        with pytest.raises(NotFoundError):
            await note_store.get_by_doc_id(db_session, "mine", owner_id="user-2")

    @pytest.mark.asyncio
    async def test_get_by_owner_orders_most_recent_first(self, db_session, note_store, make_note):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for offset, doc_id in [(1, "old"), (3, "new"), (2, "mid")]:
            note = await note_store.create(db_session, make_note(doc_id=doc_id))
            note.updated_at = base + timedelta(hours=offset)
        await db_session.commit()
        await note_store.create(db_session, make_note(doc_id="other", owner_id="user-2"))

        notes = await note_store.get_by_owner(db_session, "user-1")

        assert [n.doc_id for n in notes] == ["new", "mid", "old"]

    @pytest.mark.asyncio
    async def test_get_by_owner_without_owner_is_invalid(self, db_session, note_store):
        with pytest.raises(ValidationError) as exc_info:
            await note_store.get_by_owner(db_session, "")
        assert exc_info.value.field == "owner_id"

    @pytest.mark.asyncio
    async def test_filters(self, db_session, note_store, make_note):
        plain = await note_store.create(db_session, make_note(doc_id="plain", category="Work"))
        archived = await note_store.create(db_session, make_note(doc_id="archived"))
        starred = await note_store.create(db_session, make_note(doc_id="starred"))
        await note_store.toggle_archive(db_session, archived.id)
        await note_store.toggle_star(db_session, starred.id)

        assert [n.doc_id for n in await note_store.list_archived(db_session, "user-1")] == ["archived"]
        assert [n.doc_id for n in await note_store.list_starred(db_session, "user-1")] == ["starred"]

        in_work = await note_store.get_by_owner(db_session, "user-1", NoteFilter(category="Work"))
        assert [n.id for n in in_work] == [plain.id]

        active = await note_store.get_by_owner(db_session, "user-1", NoteFilter(is_archived=False))
        assert {n.doc_id for n in active} == {"plain", "starred"}


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_reports_changed_fields(self, db_session, note_store, make_note, recorded_events):
        note = await note_store.create(db_session, make_note(doc_id="u1", title="Before"))
        before = note.updated_at

        updated = await note_store.update(
            db_session,
            "u1",
            NoteUpdate(title="After", content=note.content, tags=["x"]),
        )

        assert updated.title == "After"
        assert updated.tags == ["x"]
        assert updated.updated_at >= before

        event = recorded_events[-1]
        assert event.kind is EventKind.UPDATE
        assert event.payload["updated_fields"] == ["tags", "title"]

    @pytest.mark.asyncio
    async def test_unset_optional_fields_are_left_alone(self, db_session, note_store, make_note):
        await note_store.create(db_session, make_note(doc_id="u2", category="Work", tags=["keep"]))

        updated = await note_store.update(
            db_session, "u2", NoteUpdate(title="New", content=[paragraph("New body.")])
        )

        assert updated.category == "Work"
        assert updated.tags == ["keep"]

    @pytest.mark.asyncio
    async def test_title_and_content_are_required(self, db_session, note_store, make_note):
        await note_store.create(db_session, make_note(doc_id="u3"))

        with pytest.raises(ValidationError) as exc_info:
            await note_store.update(db_session, "u3", NoteUpdate(content=[]))
        assert exc_info.value.field == "title"

        with pytest.raises(ValidationError) as exc_info:
            await note_store.update(db_session, "u3", NoteUpdate(title="T"))
        assert exc_info.value.field == "content"

    @pytest.mark.asyncio
    async def test_update_missing_note(self, db_session, note_store):
        with pytest.raises(NotFoundError):
            await note_store.update(db_session, "ghost", NoteUpdate(title="T", content=[]))


class TestDeleteAndToggles:
    @pytest.mark.asyncio
    async def test_delete(self, db_session, note_store, make_note, recorded_events):
        note = await note_store.create(db_session, make_note(doc_id="gone"))

        await note_store.delete(db_session, note.id, owner_id="user-1")

        with pytest.raises(NotFoundError):
            await note_store.get_by_doc_id(db_session, "gone")
        assert recorded_events[-1].kind is EventKind.DELETE
        assert recorded_events[-1].payload["reason"] == "User initiated"

    @pytest.mark.asyncio
    async def test_delete_unknown_or_foreign_note(self, db_session, note_store, make_note):
        note = await note_store.create(db_session, make_note())

        with pytest.raises(NotFoundError):
            await note_store.delete(db_session, uuid.uuid4())
        with pytest.raises(NotFoundError):
            await note_store.delete(db_session, note.id, owner_id="someone-else")

    @pytest.mark.asyncio
    async def test_toggle_archive_twice_restores(self, db_session, note_store, make_note, recorded_events):
        note = await note_store.create(db_session, make_note())

        first = await note_store.toggle_archive(db_session, note.id)
        assert first.is_archived is True
        second = await note_store.toggle_archive(db_session, note.id)
        assert second.is_archived is False

        kinds = [e.kind for e in recorded_events]
        assert kinds == [EventKind.CREATE, EventKind.ARCHIVE, EventKind.ARCHIVE]
        assert recorded_events[1].payload["is_archived"] is True

    @pytest.mark.asyncio
    async def test_toggle_star_is_independent_of_archive(self, db_session, note_store, make_note):
        note = await note_store.create(db_session, make_note())

        await note_store.toggle_archive(db_session, note.id)
        starred = await note_store.toggle_star(db_session, note.id)

        assert starred.is_starred is True
        assert starred.is_archived is True


class TestSetCategory:
    @pytest.mark.asyncio
    async def test_stores_canonical_name(self, db_session, note_store, category_store, make_note, recorded_events):
        await category_store.create(db_session, "user-1", "Work Stuff")
        note = await note_store.create(db_session, make_note())

        updated = await note_store.set_category(db_session, note.id, "user-1", "work stuff")

        assert updated.category == "Work Stuff"
        assert recorded_events[-1].payload["updated_fields"] == ["category"]

    @pytest.mark.asyncio
    async def test_unknown_category_is_rejected(self, db_session, note_store, make_note):
        note = await note_store.create(db_session, make_note())

        with pytest.raises(ValidationError) as exc_info:
            await note_store.set_category(db_session, note.id, "user-1", "Nowhere")
        assert exc_info.value.field == "category"

    @pytest.mark.asyncio
    async def test_another_owners_category_does_not_count(self, db_session, note_store, category_store, make_note):
        await category_store.create(db_session, "user-2", "Shared Name")
        note = await note_store.create(db_session, make_note())

        with pytest.raises(ValidationError):
            await note_store.set_category(db_session, note.id, "user-1", "Shared Name")

    @pytest.mark.asyncio
    async def test_none_clears(self, db_session, note_store, make_note):
        note = await note_store.create(db_session, make_note(category="Loose"))

        cleared = await note_store.set_category(db_session, note.id, "user-1", None)

        assert cleared.category is None


class TestStorageErrors:
    @pytest.mark.asyncio
    async def test_unexpected_failure_keeps_the_driver_message(self, db_session):
        with pytest.raises(InternalError) as exc_info:
            async with storage_errors(db_session, "create note", context={"doc_id": "x"}):
                raise OperationalError("INSERT INTO notes", {}, Exception("disk I/O error"))

        context = exc_info.value.context
        assert context["operation"] == "create note"
        assert context["doc_id"] == "x"
        assert "disk I/O error" in context["error"]

    @pytest.mark.asyncio
    async def test_integrity_error_without_conflict_message_is_internal(self, db_session):
        with pytest.raises(InternalError) as exc_info:
            async with storage_errors(db_session, "move notes"):
                raise IntegrityError("UPDATE notes", {}, Exception("NOT NULL constraint failed"))

        assert exc_info.value.context["error"] == "NOT NULL constraint failed"
