"""
NoteSync Backend — Note Request/Response Schemas
=================================================

What:  Pydantic models for the note and generation endpoints.
How:   Input models leave the required note fields optional so that the
       stores (not FastAPI's 422 handler) decide what is missing and answer
       with a ValidationError naming the field.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

Block = Dict[str, Any]


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteCreate(BaseModel):
    """
    Payload for creating a note.

    `owner_id` is normally filled from the X-User-ID header by the route;
    `provenance` and `source_doc_id` are set by the note factory.
    """
    doc_id: Optional[str] = Field(default=None, description="Client-chosen unique identifier")
    owner_id: Optional[str] = Field(default=None, description="Owner identifier")
    title: Optional[str] = Field(default=None, description="Note title")
    content: Optional[List[Block]] = Field(default=None, description="Block tree")
    category: Optional[str] = Field(default=None, description="Category name")
    tags: List[str] = Field(default_factory=list)
    preview: Optional[str] = Field(default=None, description="Short preview text")
    provenance: str = Field(default="text", description="text, pdf, summary or quiz")
    source_doc_id: Optional[str] = Field(default=None)


class NoteUpdate(BaseModel):
    """Full-content update addressed by doc_id; title and content are required."""
    title: Optional[str] = None
    content: Optional[List[Block]] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    preview: Optional[str] = None


class NoteFilter(BaseModel):
    """Optional filters for listing an owner's notes. `None` means "any"."""
    is_archived: Optional[bool] = None
    is_starred: Optional[bool] = None
    category: Optional[str] = None


class NoteCategoryUpdate(BaseModel):
    """Assign a note to a category (`null` clears it)."""
    category: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    id: uuid.UUID = Field(description="Storage identifier")
    doc_id: str = Field(description="Client-visible identifier")
    owner_id: str
    title: str
    content: List[Block]
    preview: str
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    provenance: str
    source_doc_id: Optional[str] = None
    is_archived: bool
    is_starred: bool
    updated_at: datetime = Field(description="Created-or-updated timestamp (UTC)")

    model_config = {"from_attributes": True}


class ToggleResponse(BaseModel):
    message: str
    note: NoteResponse


class NoteDeleteResponse(BaseModel):
    message: str = "Note deleted successfully"


class GenerationResponse(BaseModel):
    """Returned by the PDF import, summary and quiz pipelines (HTTP 201)."""
    message: str = Field(description="Human-readable success message")
    doc_id: str = Field(description="doc_id of the generated note")
    note: NoteResponse
