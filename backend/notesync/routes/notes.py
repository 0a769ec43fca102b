"""
NoteSync Backend — Notes Route Handlers
========================================

What:  Note CRUD, flag toggles and category assignment for the caller.
How:   Identity from X-User-ID; the work is done by NoteStore. Reads and
       updates address notes by `doc_id`, deletes and toggles by storage `id`.

Toggles ignore any body a client sends: the endpoint always flips the
stored value, so two calls restore the original state.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from notesync.dependencies import DbSession, NoteStoreDep, OwnerId
from notesync.schemas.common import ErrorResponse
from notesync.schemas.note import (
    NoteCategoryUpdate,
    NoteCreate,
    NoteDeleteResponse,
    NoteFilter,
    NoteResponse,
    NoteUpdate,
    ToggleResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])


def _many(notes) -> List[NoteResponse]:
    return [NoteResponse.model_validate(n) for n in notes]


@router.post(
    "",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Missing required field", "model": ErrorResponse},
        409: {"description": "doc_id already used", "model": ErrorResponse},
    },
    summary="Create a note",
)
async def create_note(
    body: NoteCreate, store: NoteStoreDep, db: DbSession, owner_id: OwnerId
) -> NoteResponse:
    # Provenance is assigned by the generation pipeline, never by clients
    data = body.model_copy(update={"owner_id": owner_id, "provenance": "text", "source_doc_id": None})
    note = await store.create(db, data)
    return NoteResponse.model_validate(note)


@router.get(
    "",
    response_model=List[NoteResponse],
    summary="List the caller's notes, most recently updated first",
)
async def list_notes(
    store: NoteStoreDep,
    db: DbSession,
    owner_id: OwnerId,
    archived: Optional[bool] = Query(default=None, description="Only archived (true) or active (false) notes"),
    starred: Optional[bool] = Query(default=None, description="Only starred (true) or unstarred (false) notes"),
    category: Optional[str] = Query(default=None, description="Exact category name"),
) -> List[NoteResponse]:
    notes = await store.get_by_owner(
        db,
        owner_id,
        NoteFilter(is_archived=archived, is_starred=starred, category=category),
    )
    return _many(notes)


@router.get("/archived", response_model=List[NoteResponse], summary="List archived notes")
async def list_archived(store: NoteStoreDep, db: DbSession, owner_id: OwnerId) -> List[NoteResponse]:
    return _many(await store.list_archived(db, owner_id))


@router.get("/starred", response_model=List[NoteResponse], summary="List starred notes")
async def list_starred(store: NoteStoreDep, db: DbSession, owner_id: OwnerId) -> List[NoteResponse]:
    return _many(await store.list_starred(db, owner_id))


@router.get(
    "/doc/{doc_id}",
    response_model=NoteResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Get a note by doc_id",
)
async def get_note(doc_id: str, store: NoteStoreDep, db: DbSession, owner_id: OwnerId) -> NoteResponse:
    note = await store.get_by_doc_id(db, doc_id, owner_id=owner_id)
    return NoteResponse.model_validate(note)


@router.put(
    "/doc/{doc_id}",
    response_model=NoteResponse,
    responses={
        400: {"description": "title or content missing", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Update a note by doc_id",
)
async def update_note(
    doc_id: str, body: NoteUpdate, store: NoteStoreDep, db: DbSession, owner_id: OwnerId
) -> NoteResponse:
    note = await store.update(db, doc_id, body, owner_id=owner_id)
    return NoteResponse.model_validate(note)


@router.delete(
    "/{note_id}",
    response_model=NoteDeleteResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Delete a note by storage id",
)
async def delete_note(
    note_id: UUID, store: NoteStoreDep, db: DbSession, owner_id: OwnerId
) -> NoteDeleteResponse:
    await store.delete(db, note_id, owner_id=owner_id)
    return NoteDeleteResponse()


@router.patch(
    "/{note_id}/toggle-archive",
    response_model=ToggleResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Flip the archived flag",
)
async def toggle_archive(
    note_id: UUID, store: NoteStoreDep, db: DbSession, owner_id: OwnerId
) -> ToggleResponse:
    note = await store.toggle_archive(db, note_id, owner_id=owner_id)
    message = "Note archived" if note.is_archived else "Note unarchived"
    return ToggleResponse(message=message, note=NoteResponse.model_validate(note))


@router.patch(
    "/{note_id}/toggle-star",
    response_model=ToggleResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Flip the starred flag",
)
async def toggle_star(
    note_id: UUID, store: NoteStoreDep, db: DbSession, owner_id: OwnerId
) -> ToggleResponse:
    note = await store.toggle_star(db, note_id, owner_id=owner_id)
    message = "Note starred" if note.is_starred else "Note unstarred"
    return ToggleResponse(message=message, note=NoteResponse.model_validate(note))


@router.patch(
    "/{note_id}/category",
    response_model=NoteResponse,
    responses={
        400: {"description": "Category does not exist", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Assign the note to one of the caller's categories",
)
async def set_note_category(
    note_id: UUID,
    body: NoteCategoryUpdate,
    store: NoteStoreDep,
    db: DbSession,
    owner_id: OwnerId,
) -> NoteResponse:
    note = await store.set_category(db, note_id, owner_id, body.category)
    return NoteResponse.model_validate(note)
