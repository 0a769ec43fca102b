"""
NoteSync Backend — Category SQLAlchemy Model
=============================================

What:  ORM model for the `categories` table.

Uniqueness:
    `uq_categories_owner_lower_name` is a unique expression index on
    (owner_id, lower(name)). It is the authoritative case-insensitive
    uniqueness check: "Work" and "work" cannot coexist for one owner even when
    two requests race past the application-level pre-check.

    Lookups fold case with the same SQL `lower()` on both sides so they agree
    with the index. SQLite only folds ASCII there; PostgreSQL folds Unicode.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from notesync.database import Base
from notesync.models.note import utcnow

CATEGORY_UNIQUE_INDEX = "uq_categories_owner_lower_name"


class Category(Base):
    """A user-owned category; notes reference it by `name`."""

    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, owner_id='{self.owner_id}', name='{self.name}')>"


Index(CATEGORY_UNIQUE_INDEX, Category.owner_id, func.lower(Category.name), unique=True)
