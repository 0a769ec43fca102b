"""
NoteSync Backend — Uploaded Document Validation
================================================

What:  Validates uploaded PDF documents before they enter the generation
       pipeline. Nothing is written to disk; the bytes are sent inline to
       the provider.
How:   Checks run cheapest first:
         1. Extension      (.pdf only, no file reading)
         2. Declared MIME  (application/pdf, from the multipart part)
         3. Size           (Content-Length first, then the actual byte count)
         4. Content type   (libmagic sniffs the header bytes)

Why both extension AND content sniffing:
    Renaming a file is trivial; python-magic reads the magic numbers at the
    start of the file and reports what the bytes actually are.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import magic

from notesync.config import Settings, settings as default_settings
from notesync.exceptions import InternalError, ValidationError

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
PDF_EXTENSION = ".pdf"


@dataclass(frozen=True)
class ValidatedDocument:
    filename: str
    stem: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class FileService:
    """Stateless validator for uploaded documents."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings

    @property
    def max_size(self) -> int:
        return self.config.max_pdf_size

    def validate_extension(self, filename: Optional[str]) -> str:
        ext = Path(filename or "").suffix.lower()
        if ext != PDF_EXTENSION:
            raise ValidationError(
                message=f"File type '{ext or 'unknown'}' is not supported. Only PDF documents are accepted.",
                field="file",
                context={"extension": ext, "allowed": [PDF_EXTENSION]},
            )
        return ext

    def validate_mime_type(self, content_type: Optional[str]) -> str:
        # Multipart parts may carry parameters, e.g. "application/pdf; name=x"
        mime_type = (content_type or "").split(";", 1)[0].strip().lower()
        if mime_type != PDF_MIME_TYPE:
            raise ValidationError(
                message=f"Content type '{mime_type or 'unknown'}' is not supported. Only PDF documents are accepted.",
                field="file",
                context={"content_type": mime_type, "allowed": [PDF_MIME_TYPE]},
            )
        return mime_type

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Reject empty and oversized documents.

        Content-Length is checked before the body is trusted; the actual size
        catches clients that under-report.
        """
        max_mb = self.max_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(
                message="The uploaded document is empty.",
                field="file",
                context={"actual_size": 0},
            )

        if content_length and content_length > self.max_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller document.",
                field="file",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > self.max_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_content_type(self, data: bytes) -> str:
        """
        Detect the real type from the file header with libmagic.

        A renamed JPEG sent as "notes.pdf" with a PDF content type passes the
        first two checks; this one reads the bytes themselves.
        """
        try:
            detected = magic.from_buffer(data, mime=True)
        except Exception as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise InternalError(
                message="Could not verify file type. Please try again.",
                context={"operation": "detect_mime_type", "error": str(e)},
            ) from e

        if detected != PDF_MIME_TYPE:
            raise ValidationError(
                message="The uploaded file is not a valid PDF document.",
                field="file",
                context={"detected_type": detected, "allowed": [PDF_MIME_TYPE]},
            )
        return detected

    def validate_pdf(
        self,
        filename: Optional[str],
        data: bytes,
        content_type: Optional[str],
        content_length: Optional[int] = None,
    ) -> ValidatedDocument:
        """Run every check and return the document with its display stem."""
        self.validate_extension(filename)
        mime_type = self.validate_mime_type(content_type)
        self.validate_size(content_length, len(data))
        self.validate_content_type(data)

        name = Path(filename).name
        logger.info("PDF accepted: %s (%d bytes)", name, len(data))
        return ValidatedDocument(filename=name, stem=Path(name).stem, mime_type=mime_type, data=data)
