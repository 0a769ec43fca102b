"""
NoteSync Backend — Generation Pipeline
=======================================

What:  Turns a source (an uploaded PDF or an existing note) into a new,
       generated note: PDF import, summary and quiz.
How:   Each run walks a fixed sequence of states and logs every transition:

         FETCHING → DECODING → GENERATING → ENCODING → PERSISTING → DONE
                                                        ↘ FAILED(reason)

       FETCHING    validate the PDF / load the source note by doc_id
       DECODING    block tree → plain text (no-op for PDFs)
       GENERATING  run the configured strategy (the only step that leaves
                   the process; no store lock is held while it runs)
       ENCODING    plain text → block tree under a heading
       PERSISTING  ensure the target category, create the note, commit
       DONE        hand back doc_id, message and the created note

Placeholder path:
    When the external strategy has no usable credentials the provider is not
    called at all. A PDF becomes a "PDF Upload: <name>" placeholder note and
    summaries/quizzes are produced by the local reducer, tagged
    `processing-unavailable`. Provider errors on a configured strategy are
    never softened this way; they surface as ExternalServiceError.

Cancellation:
    PERSISTING runs under asyncio.shield: once the generated content is
    being saved, a disconnecting client does not leave a half-written note.
    The write is awaited to completion and the run still ends in DONE before
    the cancellation propagates.

Each call builds its own PipelineRun and hands it back on the result; the
pipeline object itself is shared between requests and holds no run state.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from notesync.exceptions import NoteSyncError
from notesync.models.note import Note
from notesync.schemas.note import NoteCreate
from notesync.services.block_codec import decode_to_plain_text, encode_from_plain_text
from notesync.services.consistency import ConsistencyCoordinator
from notesync.services.file_service import FileService
from notesync.services.note_factory import (
    GENERATED_CATEGORY,
    PROCESSING_UNAVAILABLE_TAG,
    QUIZ_CATEGORY,
    SUMMARY_CATEGORY,
    NoteFactory,
)
from notesync.services.note_store import NoteStore
from notesync.services.strategies import (
    FALLBACK_STRATEGY,
    GenerationStrategy,
    basic_quiz,
    basic_summary,
)

logger = logging.getLogger(__name__)

PDF_HEADING = "Note from PDF"
SUMMARY_HEADING = "Summary"
QUIZ_HEADING = "Quiz Questions"

PLACEHOLDER_TEXT = (
    "This PDF was uploaded but its text could not be extracted because "
    "document processing is currently unavailable.\n"
    "Original file: {filename}\n"
    "Upload it again once processing is configured to generate a full note."
)


class PipelineState(str, Enum):
    FETCHING = "fetching"
    DECODING = "decoding"
    GENERATING = "generating"
    ENCODING = "encoding"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({PipelineState.DONE, PipelineState.FAILED})


class PipelineRun:
    """State tracker for a single pipeline execution."""

    def __init__(self, kind: str, subject: str):
        self.kind = kind
        self.subject = subject
        self.state: Optional[PipelineState] = None
        self.history: List[PipelineState] = []
        self.failure_reason: Optional[str] = None

    def advance(self, state: PipelineState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"{self.kind} pipeline already finished in state {self.state.value}")
        logger.info(
            "%s pipeline [%s]: %s → %s",
            self.kind,
            self.subject,
            self.state.value if self.state else "start",
            state.value,
        )
        self.state = state
        self.history.append(state)

    def fail(self, reason: str) -> None:
        if self.state in TERMINAL_STATES:
            return
        logger.warning(
            "%s pipeline [%s]: %s → failed (%s)",
            self.kind,
            self.subject,
            self.state.value if self.state else "start",
            reason,
        )
        self.failure_reason = reason
        self.state = PipelineState.FAILED
        self.history.append(PipelineState.FAILED)


@dataclass
class GenerationResult:
    doc_id: str
    message: str
    note: Note
    run: PipelineRun


def _failure_reason(error: BaseException) -> str:
    if isinstance(error, NoteSyncError):
        return getattr(error, "reason", None) or error.error_code
    if isinstance(error, asyncio.CancelledError):
        return "cancelled"
    return type(error).__name__


class GenerationPipeline:
    def __init__(
        self,
        note_store: NoteStore,
        coordinator: ConsistencyCoordinator,
        strategy: GenerationStrategy,
        file_service: FileService,
    ):
        self.note_store = note_store
        self.coordinator = coordinator
        self.strategy = strategy
        self.file_service = file_service

    @property
    def uses_placeholder(self) -> bool:
        """True when the provider will not be called (missing credentials)."""
        return not self.strategy.is_ready

    # ── Entry points ──────────────────────────────────────────────────────

    async def import_pdf(
        self,
        db: AsyncSession,
        owner_id: str,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
        content_length: Optional[int] = None,
    ) -> GenerationResult:
        run = PipelineRun("pdf-import", filename or "<unnamed>")
        try:
            run.advance(PipelineState.FETCHING)
            document = self.file_service.validate_pdf(filename, content, content_type, content_length)

            run.advance(PipelineState.DECODING)

            run.advance(PipelineState.GENERATING)
            if self.uses_placeholder or not self.strategy.is_external:
                logger.warning(
                    "PDF processing unavailable (strategy=%s); creating placeholder for %s",
                    self.strategy.name,
                    document.filename,
                )
                text = PLACEHOLDER_TEXT.format(filename=document.filename)
                run.advance(PipelineState.ENCODING)
                blocks = encode_from_plain_text(text, PDF_HEADING)
                data = NoteFactory.pdf_placeholder(owner_id, document.stem, blocks)
                message = "PDF uploaded; text extraction is currently unavailable"
            else:
                text = await self.strategy.extract_document(document.data, document.mime_type)
                run.advance(PipelineState.ENCODING)
                blocks = encode_from_plain_text(text, PDF_HEADING)
                data = NoteFactory.pdf_note(owner_id, document.stem, blocks, text, generator_tag="gemini")
                message = "PDF processed and note created successfully"

            run.advance(PipelineState.PERSISTING)
            note = await self._persist(run, db, GENERATED_CATEGORY, data)
        except BaseException as e:
            run.fail(_failure_reason(e))
            raise

        run.advance(PipelineState.DONE)
        return GenerationResult(doc_id=note.doc_id, message=message, note=note, run=run)

    async def summarize(
        self, db: AsyncSession, doc_id: str, owner_id: Optional[str] = None
    ) -> GenerationResult:
        return await self._from_note(
            db,
            doc_id,
            owner_id,
            kind="summary",
            heading=SUMMARY_HEADING,
            category=SUMMARY_CATEGORY,
            generate=self.strategy.summarize,
            fallback=basic_summary,
            build=NoteFactory.summary_note,
            message="Summary generated successfully",
        )

    async def generate_quiz(
        self, db: AsyncSession, doc_id: str, owner_id: Optional[str] = None
    ) -> GenerationResult:
        return await self._from_note(
            db,
            doc_id,
            owner_id,
            kind="quiz",
            heading=QUIZ_HEADING,
            category=QUIZ_CATEGORY,
            generate=self.strategy.generate_quiz,
            fallback=basic_quiz,
            build=NoteFactory.quiz_note,
            message="Quiz questions generated successfully",
        )

    # ── Internals ─────────────────────────────────────────────────────────

    def _generator_tag(self) -> str:
        if not self.strategy.is_external or self.uses_placeholder:
            return FALLBACK_STRATEGY.name
        return "llm"

    async def _from_note(
        self,
        db: AsyncSession,
        doc_id: str,
        owner_id: Optional[str],
        kind: str,
        heading: str,
        category: str,
        generate: Callable[[str], Awaitable[str]],
        fallback: Callable[[str], str],
        build: Callable[..., NoteCreate],
        message: str,
    ) -> GenerationResult:
        run = PipelineRun(kind, doc_id)
        try:
            run.advance(PipelineState.FETCHING)
            source = await self.note_store.get_by_doc_id(db, doc_id, owner_id=owner_id)
            # Plain values only from here on: the provider call must not hold ORM state
            source_title, source_owner = source.title, source.owner_id

            run.advance(PipelineState.DECODING)
            text = decode_to_plain_text(source.content).join("\n")

            run.advance(PipelineState.GENERATING)
            extra_tags = []
            if self.uses_placeholder:
                logger.warning(
                    "%s for %s: provider credentials missing; using the local reducer",
                    kind,
                    doc_id,
                )
                generated = fallback(text)
                extra_tags.append(PROCESSING_UNAVAILABLE_TAG)
            else:
                generated = await generate(text)

            run.advance(PipelineState.ENCODING)
            blocks = encode_from_plain_text(generated, heading)
            data = build(
                owner_id=source_owner,
                source_title=source_title,
                source_doc_id=doc_id,
                content=blocks,
                text=generated,
                generator_tag=self._generator_tag(),
                extra_tags=extra_tags,
            )

            run.advance(PipelineState.PERSISTING)
            note = await self._persist(run, db, category, data)
        except BaseException as e:
            run.fail(_failure_reason(e))
            raise

        run.advance(PipelineState.DONE)
        return GenerationResult(doc_id=note.doc_id, message=message, note=note, run=run)

    async def _persist(self, run: PipelineRun, db: AsyncSession, category: str, data: NoteCreate) -> Note:
        async def persist() -> Note:
            target = await self.coordinator.ensure_category_exists(db, data.owner_id, category)
            data.category = target.name
            return await self.note_store.create(db, data)

        task = asyncio.ensure_future(persist())
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            note = await task
            logger.warning(
                "%s pipeline [%s]: caller cancelled while persisting; note %s was saved",
                run.kind,
                run.subject,
                note.doc_id,
            )
            run.advance(PipelineState.DONE)
            raise
