"""
NoteSync Backend — Consistency Coordinator
===========================================

What:  Keeps notes and categories consistent with each other:
         - rename cascade (notes follow their category's new name)
         - delete cascade (a category's notes are deleted with it)
         - idempotent "ensure category exists" for generated notes
How:   Cascades run in two committed phases, dependents first. There is no
       transaction spanning both phases: if the second phase fails the first
       stays applied, and the raised error reports how many notes it touched.

Notes reference categories by name (a soft foreign key); the coordinator is
the only component that rewrites that reference in bulk.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, func, insert as generic_insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.database import storage_errors
from notesync.exceptions import InternalError, ValidationError
from notesync.models.category import CATEGORY_UNIQUE_INDEX, Category
from notesync.models.note import Note, utcnow
from notesync.services.events import DomainEvent, EventBus, EventKind

logger = logging.getLogger(__name__)


class ConsistencyCoordinator:
    def __init__(self, event_bus: Optional[EventBus] = None):
        self.event_bus = event_bus

    async def rename_category(self, db: AsyncSession, category: Category, new_name: str) -> int:
        """
        Move the owner's notes from the old name to `new_name`, then rename
        the category. Returns the number of notes moved.
        """
        old_name = category.name
        owner_id = category.owner_id

        # Phase 1: dependents
        async with storage_errors(db, "rename cascade (notes)"):
            result = await db.execute(
                update(Note)
                .where(Note.owner_id == owner_id, Note.category == old_name)
                .values(category=new_name, updated_at=utcnow())
            )
            await db.commit()
        notes_updated = result.rowcount or 0
        logger.info(
            "Rename cascade phase 1: %d notes moved '%s' → '%s' (owner=%s)",
            notes_updated, old_name, new_name, owner_id,
        )

        # Phase 2: the category itself
        async with storage_errors(
            db,
            "rename cascade (category)",
            conflict_message=f"Category '{new_name}' already exists",
            constraint=CATEGORY_UNIQUE_INDEX,
            context={"notes_updated": notes_updated},
        ):
            category.name = new_name
            await db.commit()
        logger.info("Rename cascade phase 2: category %s renamed", category.id)

        return notes_updated

    async def delete_category(self, db: AsyncSession, category: Category) -> int:
        """Delete the category's notes, then the category. Returns notes deleted."""
        owner_id = category.owner_id
        name = category.name

        async with storage_errors(db, "delete cascade (notes)"):
            result = await db.execute(
                delete(Note).where(Note.owner_id == owner_id, Note.category == name)
            )
            await db.commit()
        notes_deleted = result.rowcount or 0
        logger.info(
            "Delete cascade phase 1: %d notes deleted from '%s' (owner=%s)",
            notes_deleted, name, owner_id,
        )

        async with storage_errors(
            db, "delete cascade (category)", context={"notes_deleted": notes_deleted}
        ):
            await db.delete(category)
            await db.commit()
        logger.info("Delete cascade phase 2: category %s deleted", category.id)

        return notes_deleted

    async def ensure_category_exists(self, db: AsyncSession, owner_id: str, name: str) -> Category:
        """
        Return the owner's category named `name` (case-insensitively),
        creating it if needed.

        Safe under concurrency: the insert is ON CONFLICT DO NOTHING against
        the case-insensitive unique index, and the row is re-read afterwards,
        so every concurrent caller ends up with the same category.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError(message="Category name is required", field="name")

        now = utcnow()
        values = dict(id=uuid.uuid4(), owner_id=owner_id, name=name, created_at=now, updated_at=now)
        dialect = db.get_bind().dialect.name

        async with storage_errors(db, "ensure category"):
            if dialect in ("postgresql", "sqlite"):
                insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
                result = await db.execute(insert(Category.__table__).values(**values).on_conflict_do_nothing())
                created = bool(result.rowcount)
            else:
                created = await self._insert_if_absent(db, values)
            await db.commit()

            category = await db.scalar(
                select(Category).where(
                    Category.owner_id == owner_id,
                    func.lower(Category.name) == func.lower(name),
                )
            )

        if category is None:
            raise InternalError(context={"operation": "ensure category", "name": name})

        if created:
            logger.info("Category ensured (created): '%s' owner=%s", category.name, owner_id)
            if self.event_bus is not None:
                self.event_bus.notify(
                    DomainEvent(
                        kind=EventKind.CREATE,
                        entity="category",
                        owner_id=owner_id,
                        payload={"id": str(category.id), "name": category.name},
                    )
                )
        return category

    async def _insert_if_absent(self, db: AsyncSession, values: dict) -> bool:
        # Dialects without ON CONFLICT: insert in a savepoint, tolerate the race
        try:
            async with db.begin_nested():
                await db.execute(generic_insert(Category.__table__).values(**values))
        except IntegrityError:
            return False
        return True
