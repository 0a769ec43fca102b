"""
NoteSync Backend — Category Request/Response Schemas
=====================================================
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):
    name: Optional[str] = Field(default=None, description="Category name (trimmed)")


class CategoryRename(BaseModel):
    name: Optional[str] = Field(default=None, description="New category name")


class CategoryResponse(BaseModel):
    id: uuid.UUID
    owner_id: str
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CategoryRenameResponse(CategoryResponse):
    """The renamed category plus the number of notes the cascade touched."""
    notes_updated: int = Field(description="Notes moved from the old name to the new one")


class CategoryDeleteResponse(BaseModel):
    message: str = "Category deleted successfully"
    notes_deleted: int = Field(description="Notes removed by the cascade")
