"""
NoteSync Backend — Note Store
==============================

What:  CRUD, filtering and flag toggles for notes.
Who:   Note routes, the generation pipeline (to read sources and persist
       generated notes) and the category cascades (indirectly, through the
       coordinator).

Identifiers:
    doc_id   client-visible; used by read/update and the generation entry points
    id       storage UUID; used by delete, toggles and set_category

Every mutation commits before its domain event is emitted, so observers
never see a write that could still roll back.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.database import storage_errors
from notesync.exceptions import ConflictError, NotFoundError, ValidationError
from notesync.models.category import Category
from notesync.models.note import DEFAULT_PREVIEW, Note
from notesync.schemas.note import NoteCreate, NoteFilter, NoteUpdate
from notesync.services.events import DomainEvent, EventBus, EventKind
from notesync.services.note_factory import unique_tags

logger = logging.getLogger(__name__)

REQUIRED_CREATE_FIELDS = ("doc_id", "title", "content", "owner_id")


def note_snapshot(note: Note) -> Dict[str, Any]:
    return {
        "id": str(note.id),
        "doc_id": note.doc_id,
        "title": note.title,
        "category": note.category,
        "tags": list(note.tags or []),
        "provenance": note.provenance,
        "is_archived": note.is_archived,
        "is_starred": note.is_starred,
    }


class NoteStore:
    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus

    def _emit(self, kind: EventKind, note: Note, **extra: Any) -> None:
        payload = note_snapshot(note)
        payload.update(extra)
        self.event_bus.notify(DomainEvent(kind=kind, entity="note", owner_id=note.owner_id, payload=payload))

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_by_doc_id(
        self, db: AsyncSession, doc_id: str, owner_id: Optional[str] = None
    ) -> Note:
        """
        Fetch a note by its client-visible id.

        When `owner_id` is given a note owned by someone else is reported as
        not found, the same as a missing one.
        """
        async with storage_errors(db, "get note"):
            result = await db.execute(select(Note).where(Note.doc_id == doc_id))
            note = result.scalar_one_or_none()

        if note is None or (owner_id is not None and note.owner_id != owner_id):
            raise NotFoundError(resource="note", resource_id=doc_id)
        return note

    async def _get_by_id(
        self, db: AsyncSession, note_id: uuid.UUID, owner_id: Optional[str] = None
    ) -> Note:
        async with storage_errors(db, "get note"):
            note = await db.get(Note, note_id)

        if note is None or (owner_id is not None and note.owner_id != owner_id):
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return note

    async def get_by_owner(
        self,
        db: AsyncSession,
        owner_id: str,
        filter: Optional[NoteFilter] = None,
    ) -> List[Note]:
        """Owner's notes, most recently updated first."""
        if not owner_id:
            raise ValidationError(message="owner_id is required", field="owner_id")

        query = select(Note).where(Note.owner_id == owner_id)
        if filter is not None:
            if filter.is_archived is not None:
                query = query.where(Note.is_archived == filter.is_archived)
            if filter.is_starred is not None:
                query = query.where(Note.is_starred == filter.is_starred)
            if filter.category is not None:
                query = query.where(Note.category == filter.category)
        query = query.order_by(Note.updated_at.desc(), Note.doc_id)

        async with storage_errors(db, "list notes"):
            result = await db.execute(query)
            return list(result.scalars().all())

    async def list_archived(self, db: AsyncSession, owner_id: str) -> List[Note]:
        return await self.get_by_owner(db, owner_id, NoteFilter(is_archived=True))

    async def list_starred(self, db: AsyncSession, owner_id: str) -> List[Note]:
        return await self.get_by_owner(db, owner_id, NoteFilter(is_starred=True))

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(self, db: AsyncSession, data: NoteCreate) -> Note:
        """
        Insert a new note.

        Raises:
            ValidationError: doc_id, title, content or owner_id is missing
                             (the first missing one is named in `field`)
            ConflictError:   another note already uses this doc_id
        """
        for field_name in REQUIRED_CREATE_FIELDS:
            value = getattr(data, field_name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(message=f"{field_name} is required", field=field_name)

        conflict = f"A note with doc_id '{data.doc_id}' already exists"

        async with storage_errors(db, "check doc_id"):
            existing = await db.scalar(select(func.count()).select_from(Note).where(Note.doc_id == data.doc_id))
        if existing:
            raise ConflictError(message=conflict, constraint="doc_id")

        note = Note(
            doc_id=data.doc_id,
            owner_id=data.owner_id,
            title=data.title,
            content=data.content,
            preview=data.preview or DEFAULT_PREVIEW,
            category=data.category or None,
            tags=unique_tags(data.tags),
            provenance=data.provenance,
            source_doc_id=data.source_doc_id,
        )

        # The unique index on doc_id is the authority under concurrency
        async with storage_errors(db, "create note", conflict_message=conflict, constraint="doc_id"):
            db.add(note)
            await db.commit()

        logger.info("Note created: doc_id=%s owner=%s provenance=%s", note.doc_id, note.owner_id, note.provenance)
        self._emit(EventKind.CREATE, note)
        return note

    async def update(
        self,
        db: AsyncSession,
        doc_id: str,
        patch: NoteUpdate,
        owner_id: Optional[str] = None,
    ) -> Note:
        """Replace title and content (and optionally category, tags, preview)."""
        if not patch.title or not patch.title.strip():
            raise ValidationError(message="title is required", field="title")
        if patch.content is None:
            raise ValidationError(message="content is required", field="content")

        note = await self.get_by_doc_id(db, doc_id, owner_id=owner_id)

        updated_fields = []
        for field_name in patch.model_fields_set | {"title", "content"}:
            value = getattr(patch, field_name)
            if field_name == "tags":
                value = unique_tags(value or [])
            elif field_name == "preview":
                value = value or DEFAULT_PREVIEW
            elif field_name == "category":
                value = value or None
            if getattr(note, field_name) != value:
                setattr(note, field_name, value)
                updated_fields.append(field_name)
        note.touch()

        async with storage_errors(db, "update note"):
            await db.commit()

        updated_fields.sort()
        logger.info("Note updated: doc_id=%s fields=%s", doc_id, updated_fields)
        self._emit(EventKind.UPDATE, note, updated_fields=updated_fields)
        return note

    async def delete(
        self,
        db: AsyncSession,
        note_id: uuid.UUID,
        owner_id: Optional[str] = None,
        reason: str = "User initiated",
    ) -> None:
        note = await self._get_by_id(db, note_id, owner_id=owner_id)

        async with storage_errors(db, "delete note"):
            await db.delete(note)
            await db.commit()

        logger.info("Note deleted: id=%s doc_id=%s", note_id, note.doc_id)
        self._emit(EventKind.DELETE, note, reason=reason)

    async def toggle_archive(
        self, db: AsyncSession, note_id: uuid.UUID, owner_id: Optional[str] = None
    ) -> Note:
        """Flip is_archived; calling twice restores the original value."""
        note = await self._get_by_id(db, note_id, owner_id=owner_id)
        note.is_archived = not note.is_archived
        note.touch()

        async with storage_errors(db, "toggle archive"):
            await db.commit()

        self._emit(EventKind.ARCHIVE, note)
        return note

    async def toggle_star(
        self, db: AsyncSession, note_id: uuid.UUID, owner_id: Optional[str] = None
    ) -> Note:
        """Flip is_starred; calling twice restores the original value."""
        note = await self._get_by_id(db, note_id, owner_id=owner_id)
        note.is_starred = not note.is_starred
        note.touch()

        async with storage_errors(db, "toggle star"):
            await db.commit()

        self._emit(EventKind.STAR, note)
        return note

    async def set_category(
        self,
        db: AsyncSession,
        note_id: uuid.UUID,
        owner_id: str,
        category: Optional[str],
    ) -> Note:
        """
        Assign a note to one of the owner's categories, or clear it with None.

        The stored name is the category's own spelling, whatever case the
        caller used.
        """
        note = await self._get_by_id(db, note_id, owner_id=owner_id)

        name = (category or "").strip() or None
        if name is not None:
            async with storage_errors(db, "lookup category"):
                existing = await db.scalar(
                    select(Category).where(
                        Category.owner_id == owner_id,
                        func.lower(Category.name) == func.lower(name),
                    )
                )
            if existing is None:
                raise ValidationError(
                    message=f"Category '{name}' does not exist",
                    field="category",
                )
            name = existing.name

        note.category = name
        note.touch()

        async with storage_errors(db, "set note category"):
            await db.commit()

        self._emit(EventKind.UPDATE, note, updated_fields=["category"])
        return note
