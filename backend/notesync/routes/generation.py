"""
NoteSync Backend — Generation Route Handlers
=============================================

What:  Entry points of the generation pipeline:
         POST /api/notes/from-pdf                 PDF → note
         POST /api/notes/doc/{doc_id}/summarize   note → summary note
         POST /api/notes/doc/{doc_id}/quiz        note → quiz note
How:   Each handler calls GenerationPipeline and returns the created note
       with HTTP 201. Provider failures arrive as ExternalServiceError
       (503, or 400 for content blocked by safety filters).
"""

import logging

from fastapi import APIRouter, File, UploadFile, status

from notesync.dependencies import DbSession, OwnerId, PipelineDep
from notesync.schemas.common import ErrorResponse
from notesync.schemas.note import GenerationResponse, NoteResponse
from notesync.services.generation_pipeline import GenerationResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Generation"])

GENERATION_ERRORS = {
    400: {"description": "Invalid input or content blocked by safety filters", "model": ErrorResponse},
    404: {"description": "Source note not found", "model": ErrorResponse},
    503: {"description": "Content generation unavailable", "model": ErrorResponse},
}


def _response(result: GenerationResult) -> GenerationResponse:
    return GenerationResponse(
        message=result.message,
        doc_id=result.doc_id,
        note=NoteResponse.model_validate(result.note),
    )


@router.post(
    "/from-pdf",
    response_model=GenerationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=GENERATION_ERRORS,
    summary="Create a note from an uploaded PDF",
    description=(
        "Upload a PDF (multipart field `file`). Its text is extracted by Gemini "
        "and stored as a note in the 'Generated' category. Without provider "
        "credentials a placeholder note is created instead."
    ),
)
async def import_pdf(
    pipeline: PipelineDep,
    db: DbSession,
    owner_id: OwnerId,
    file: UploadFile = File(..., description="PDF document"),
) -> GenerationResponse:
    try:
        content = await file.read()
        logger.info(
            "Received PDF import: filename=%s, size=%d bytes, owner=%s",
            file.filename or "unknown",
            len(content),
            owner_id,
        )
        result = await pipeline.import_pdf(
            db,
            owner_id=owner_id,
            filename=file.filename,
            content=content,
            content_type=file.content_type,
            content_length=file.size,
        )
    finally:
        await file.close()
    return _response(result)


@router.post(
    "/doc/{doc_id}/summarize",
    response_model=GenerationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=GENERATION_ERRORS,
    summary="Summarize a note into a new note",
)
async def summarize_note(
    doc_id: str, pipeline: PipelineDep, db: DbSession, owner_id: OwnerId
) -> GenerationResponse:
    return _response(await pipeline.summarize(db, doc_id, owner_id=owner_id))


@router.post(
    "/doc/{doc_id}/quiz",
    response_model=GenerationResponse,
    status_code=status.HTTP_201_CREATED,
    responses=GENERATION_ERRORS,
    summary="Generate quiz questions from a note",
)
async def generate_quiz(
    doc_id: str, pipeline: PipelineDep, db: DbSession, owner_id: OwnerId
) -> GenerationResponse:
    return _response(await pipeline.generate_quiz(db, doc_id, owner_id=owner_id))
