"""
NoteSync Backend — Category Route Handlers
===========================================

What:  CRUD for the caller's categories.
How:   Thin handlers: identity from X-User-ID, everything else delegated to
       CategoryStore. Rename and delete report how many notes the cascade
       touched.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, status

from notesync.dependencies import CategoryStoreDep, DbSession, OwnerId
from notesync.schemas.category import (
    CategoryCreate,
    CategoryDeleteResponse,
    CategoryRename,
    CategoryRenameResponse,
    CategoryResponse,
)
from notesync.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/categories", tags=["Categories"])


@router.get(
    "",
    response_model=List[CategoryResponse],
    summary="List the caller's categories",
)
async def list_categories(
    store: CategoryStoreDep, db: DbSession, owner_id: OwnerId
) -> List[CategoryResponse]:
    categories = await store.list(db, owner_id)
    return [CategoryResponse.model_validate(c) for c in categories]


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Blank name", "model": ErrorResponse},
        409: {"description": "Name already used (case-insensitive)", "model": ErrorResponse},
    },
    summary="Create a category",
)
async def create_category(
    body: CategoryCreate, store: CategoryStoreDep, db: DbSession, owner_id: OwnerId
) -> CategoryResponse:
    category = await store.create(db, owner_id, body.name)
    return CategoryResponse.model_validate(category)


@router.put(
    "/{category_id}",
    response_model=CategoryRenameResponse,
    responses={
        400: {"description": "Blank name", "model": ErrorResponse},
        404: {"description": "Category not found", "model": ErrorResponse},
        409: {"description": "Name already used (case-insensitive)", "model": ErrorResponse},
    },
    summary="Rename a category and move its notes",
)
async def rename_category(
    category_id: UUID,
    body: CategoryRename,
    store: CategoryStoreDep,
    db: DbSession,
    owner_id: OwnerId,
) -> CategoryRenameResponse:
    """
    Notes filed under the old name are moved to the new one first; the
    response's `notes_updated` is the number of notes moved.
    """
    category, notes_updated = await store.rename(db, category_id, owner_id, body.name)
    return CategoryRenameResponse(
        **CategoryResponse.model_validate(category).model_dump(),
        notes_updated=notes_updated,
    )


@router.delete(
    "/{category_id}",
    response_model=CategoryDeleteResponse,
    responses={404: {"description": "Category not found", "model": ErrorResponse}},
    summary="Delete a category and all of its notes",
)
async def delete_category(
    category_id: UUID, store: CategoryStoreDep, db: DbSession, owner_id: OwnerId
) -> CategoryDeleteResponse:
    notes_deleted = await store.delete(db, category_id, owner_id)
    return CategoryDeleteResponse(notes_deleted=notes_deleted)
