"""
NoteSync Backend — Note SQLAlchemy Model
=========================================

What:  ORM model for the `notes` table.
Who:   Used by NoteStore, the consistency coordinator and the generation
       pipeline; read by Alembic for migrations.

Table notes:
    - id:        storage identifier (UUID), used by delete and the toggles
    - doc_id:    client-visible identifier used for routing, unique
    - category:  name of a Category of the same owner (not its id); rename
                 and delete cascades match on it
    - tags:      JSON list with set semantics
    - updated_at: rewritten on every mutation
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from notesync.database import Base

DEFAULT_PREVIEW = "No preview available."


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Note(Base):
    """
    A user's note.

    Lifecycle:
        created  — direct creation, PDF import, summary or quiz pipeline
        mutated  — content edit, category rename cascade, archive/star toggle
        deleted  — explicitly, or by a category delete cascade
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    doc_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
        comment="Client-visible identifier, unique across all notes",
    )

    owner_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Opaque identifier supplied by the identity collaborator",
    )

    title: Mapped[str] = mapped_column(String(512), nullable=False)

    # Ordered block tree: [{id, type, props, content, children}, ...]
    content: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    preview: Mapped[str] = mapped_column(Text, nullable=False, default=DEFAULT_PREVIEW)

    category: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None)

    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # text | pdf | summary | quiz
    provenance: Mapped[str] = mapped_column(String(32), nullable=False, default="text")

    source_doc_id: Mapped[Optional[str]] = mapped_column(
        String(128),
        nullable=True,
        default=None,
        comment="doc_id of the note a summary or quiz was generated from",
    )

    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_starred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="Created-or-updated timestamp (UTC), rewritten on every mutation",
    )

    def touch(self) -> None:
        self.updated_at = utcnow()

    def __repr__(self) -> str:
        return (
            f"<Note(doc_id='{self.doc_id}', owner_id='{self.owner_id}', "
            f"category={self.category!r})>"
        )


Index("idx_notes_owner_category", Note.owner_id, Note.category)
Index("idx_notes_owner_updated_at", Note.owner_id, Note.updated_at.desc())
