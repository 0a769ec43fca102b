"""
NoteSync Backend — Category Store
==================================

What:  List, create, rename and delete an owner's categories.
How:   Names are trimmed and compared case-insensitively. The pre-checks
       here give friendly errors; the unique index on (owner_id, lower(name))
       is the authority when two requests race. Rename and delete hand the
       cascades to the ConsistencyCoordinator.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.database import storage_errors
from notesync.exceptions import ConflictError, NotFoundError, ValidationError
from notesync.models.category import CATEGORY_UNIQUE_INDEX, Category
from notesync.services.consistency import ConsistencyCoordinator
from notesync.services.events import DomainEvent, EventBus, EventKind

logger = logging.getLogger(__name__)


def _clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError(message="Category name is required", field="name")
    return name


class CategoryStore:
    def __init__(self, event_bus: EventBus, coordinator: ConsistencyCoordinator):
        self.event_bus = event_bus
        self.coordinator = coordinator

    def _emit(self, kind: EventKind, category: Category, **extra) -> None:
        payload = {"id": str(category.id), "name": category.name}
        payload.update(extra)
        self.event_bus.notify(
            DomainEvent(kind=kind, entity="category", owner_id=category.owner_id, payload=payload)
        )

    async def _find_by_name(
        self,
        db: AsyncSession,
        owner_id: str,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[Category]:
        query = select(Category).where(
            Category.owner_id == owner_id,
            func.lower(Category.name) == func.lower(name),
        )
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        async with storage_errors(db, "lookup category"):
            return await db.scalar(query)

    async def _get_owned(self, db: AsyncSession, category_id: uuid.UUID, owner_id: str) -> Category:
        async with storage_errors(db, "get category"):
            category = await db.get(Category, category_id)
        if category is None or category.owner_id != owner_id:
            raise NotFoundError(resource="category", resource_id=str(category_id))
        return category

    async def list(self, db: AsyncSession, owner_id: str) -> List[Category]:
        async with storage_errors(db, "list categories"):
            result = await db.execute(
                select(Category)
                .where(Category.owner_id == owner_id)
                .order_by(func.lower(Category.name))
            )
            return list(result.scalars().all())

    async def create(self, db: AsyncSession, owner_id: str, name: Optional[str]) -> Category:
        name = _clean_name(name)
        conflict = f"Category '{name}' already exists"

        if await self._find_by_name(db, owner_id, name) is not None:
            raise ConflictError(message=conflict, constraint=CATEGORY_UNIQUE_INDEX)

        category = Category(owner_id=owner_id, name=name)
        async with storage_errors(
            db, "create category", conflict_message=conflict, constraint=CATEGORY_UNIQUE_INDEX
        ):
            db.add(category)
            await db.commit()

        logger.info("Category created: '%s' owner=%s", name, owner_id)
        self._emit(EventKind.CREATE, category)
        return category

    async def rename(
        self,
        db: AsyncSession,
        category_id: uuid.UUID,
        owner_id: str,
        new_name: Optional[str],
    ) -> Tuple[Category, int]:
        """Rename and move the category's notes. Returns (category, notes_updated)."""
        new_name = _clean_name(new_name)
        category = await self._get_owned(db, category_id, owner_id)

        if await self._find_by_name(db, owner_id, new_name, exclude_id=category.id) is not None:
            raise ConflictError(
                message=f"Category '{new_name}' already exists",
                constraint=CATEGORY_UNIQUE_INDEX,
            )

        previous_name = category.name
        notes_updated = await self.coordinator.rename_category(db, category, new_name)

        self._emit(
            EventKind.UPDATE,
            category,
            updated_fields=["name"],
            previous_name=previous_name,
            notes_updated=notes_updated,
        )
        return category, notes_updated

    async def delete(self, db: AsyncSession, category_id: uuid.UUID, owner_id: str) -> int:
        """Delete the category and its notes. Returns notes deleted."""
        category = await self._get_owned(db, category_id, owner_id)
        notes_deleted = await self.coordinator.delete_category(db, category)

        self._emit(EventKind.DELETE, category, reason="User initiated", notes_deleted=notes_deleted)
        return notes_deleted
