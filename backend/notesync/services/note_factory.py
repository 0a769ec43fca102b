"""
NoteSync Backend — Note Factory
================================

What:  Builds NoteCreate payloads for each provenance: plain text, PDF import,
       PDF placeholder, summary and quiz. Titles, default categories and tags
       live here so the pipeline and routes never spell them out.
"""

import secrets
import string
import time
from typing import Iterable, List, Optional

from notesync.models.note import DEFAULT_PREVIEW
from notesync.schemas.note import Block, NoteCreate

PREVIEW_LENGTH = 150

GENERATED_CATEGORY = "Generated"
SUMMARY_CATEGORY = "Generated Summary"
QUIZ_CATEGORY = "Generated Quiz"

PROCESSING_UNAVAILABLE_TAG = "processing-unavailable"

PLACEHOLDER_PREVIEW = (
    "PDF processing unavailable. The document was received but its text "
    "could not be extracted."
)

_BASE36 = string.digits + string.ascii_lowercase


def generate_doc_id() -> str:
    """Millisecond timestamp followed by a random base-36 suffix."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{int(time.time() * 1000)}{suffix}"


def make_preview(text: str) -> str:
    text = (text or "").strip()
    if not text:
        return DEFAULT_PREVIEW
    if len(text) > PREVIEW_LENGTH:
        return text[:PREVIEW_LENGTH] + "..."
    return text


def unique_tags(tags: Iterable[str]) -> List[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen = []
    for tag in tags:
        tag = (tag or "").strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class NoteFactory:
    @staticmethod
    def text_note(
        owner_id: str,
        title: str,
        content: List[Block],
        doc_id: Optional[str] = None,
        category: Optional[str] = None,
        tags: Iterable[str] = (),
        preview: Optional[str] = None,
    ) -> NoteCreate:
        return NoteCreate(
            doc_id=doc_id or generate_doc_id(),
            owner_id=owner_id,
            title=title,
            content=content,
            category=category,
            tags=unique_tags(tags),
            preview=preview or DEFAULT_PREVIEW,
            provenance="text",
        )

    @staticmethod
    def pdf_note(
        owner_id: str, stem: str, content: List[Block], text: str, generator_tag: str
    ) -> NoteCreate:
        return NoteCreate(
            doc_id=generate_doc_id(),
            owner_id=owner_id,
            title=f"Note from PDF: {stem}",
            content=content,
            category=GENERATED_CATEGORY,
            tags=unique_tags(["pdf-import", generator_tag]),
            preview=make_preview(text),
            provenance="pdf",
        )

    @staticmethod
    def pdf_placeholder(owner_id: str, stem: str, content: List[Block]) -> NoteCreate:
        """Stands in for a PDF whose text could not be extracted."""
        return NoteCreate(
            doc_id=generate_doc_id(),
            owner_id=owner_id,
            title=f"PDF Upload: {stem}",
            content=content,
            category=GENERATED_CATEGORY,
            tags=unique_tags(["pdf-upload", PROCESSING_UNAVAILABLE_TAG]),
            preview=PLACEHOLDER_PREVIEW,
            provenance="pdf",
        )

    @staticmethod
    def summary_note(
        owner_id: str,
        source_title: str,
        source_doc_id: str,
        content: List[Block],
        text: str,
        generator_tag: str,
        extra_tags: Iterable[str] = (),
    ) -> NoteCreate:
        return NoteCreate(
            doc_id=generate_doc_id(),
            owner_id=owner_id,
            title=f"Summary of {source_title}",
            content=content,
            category=SUMMARY_CATEGORY,
            tags=unique_tags([generator_tag, "summary", *extra_tags]),
            preview=make_preview(text),
            provenance="summary",
            source_doc_id=source_doc_id,
        )

    @staticmethod
    def quiz_note(
        owner_id: str,
        source_title: str,
        source_doc_id: str,
        content: List[Block],
        text: str,
        generator_tag: str,
        extra_tags: Iterable[str] = (),
    ) -> NoteCreate:
        return NoteCreate(
            doc_id=generate_doc_id(),
            owner_id=owner_id,
            title=f"Quiz Questions of {source_title}",
            content=content,
            category=QUIZ_CATEGORY,
            tags=unique_tags([generator_tag, "quiz", *extra_tags]),
            preview=make_preview(text),
            provenance="quiz",
            source_doc_id=source_doc_id,
        )
