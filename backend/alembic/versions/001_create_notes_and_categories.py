"""Create notes and categories tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema: `notes` (block-content documents) and `categories`
       (per-owner names, unique case-insensitively).
How:   Generic column types so the same revision runs on PostgreSQL and on
       SQLite (dev). The case-insensitive uniqueness is an expression index
       on (owner_id, lower(name)).

Rollback: downgrade() drops both tables (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("doc_id", sa.String(128), nullable=False, comment="Client-visible identifier"),
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("content", sa.JSON(), nullable=False, comment="Block tree"),
        sa.Column(
            "preview",
            sa.Text(),
            nullable=False,
            server_default=sa.text("'No preview available.'"),
        ),
        sa.Column("category", sa.String(255), nullable=True, comment="Category name (soft reference)"),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column(
            "provenance",
            sa.String(32),
            nullable=False,
            server_default=sa.text("'text'"),
            comment="text, pdf, summary or quiz",
        ),
        sa.Column("source_doc_id", sa.String(128), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_starred", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("doc_id", name="uq_notes_doc_id"),
    )
    op.create_index("idx_notes_owner_category", "notes", ["owner_id", "category"])
    op.create_index("idx_notes_owner_updated_at", "notes", ["owner_id", sa.text("updated_at DESC")])

    op.create_table(
        "categories",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_categories_owner_id", "categories", ["owner_id"])
    op.create_index(
        "uq_categories_owner_lower_name",
        "categories",
        ["owner_id", sa.text("lower(name)")],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_categories_owner_lower_name", table_name="categories")
    op.drop_index("ix_categories_owner_id", table_name="categories")
    op.drop_table("categories")

    op.drop_index("idx_notes_owner_updated_at", table_name="notes")
    op.drop_index("idx_notes_owner_category", table_name="notes")
    op.drop_table("notes")
