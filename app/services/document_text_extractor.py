"""Plain-text extraction from uploaded PDF, DOCX and text documents."""

import asyncio
import io
from typing import Callable, Dict, Optional

import pdfplumber
from docx import Document as DocxDocument

from app.core.config import settings
from app.core.exceptions import DocumentExtractionError, ValidationError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MEDIA_TYPE = "text/plain"

SUPPORTED_MEDIA_TYPES = (PDF_MEDIA_TYPE, DOCX_MEDIA_TYPE, TEXT_MEDIA_TYPE)


def _extract_pdf(data: bytes) -> str:
    pages = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text() or "")
    return "\n\n".join(pages)


def _extract_docx(data: bytes) -> str:
    doc = DocxDocument(io.BytesIO(data))
    return "\n".join(paragraph.text for paragraph in doc.paragraphs)


def _extract_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class DocumentTextExtractor:
    """Turns uploaded bytes into plain text by media type."""

    def __init__(self, max_upload_bytes: Optional[int] = None):
        self.max_upload_bytes = max_upload_bytes or settings.launchpad.max_upload_bytes
        self._extractors: Dict[str, Callable[[bytes], str]] = {
            PDF_MEDIA_TYPE: _extract_pdf,
            DOCX_MEDIA_TYPE: _extract_docx,
            TEXT_MEDIA_TYPE: _extract_text,
        }

    def validate(self, data: bytes, media_type: Optional[str]) -> str:
        """Check type and size; returns the media type without parameters."""
        base_type = (media_type or "").split(";")[0].strip().lower()
        if base_type not in self._extractors:
            raise ValidationError(
                f"Unsupported file type '{media_type}'. Please upload a PDF, DOCX, or TXT file."
            )
        if not data:
            raise ValidationError("Uploaded document is empty")
        if len(data) > self.max_upload_bytes:
            raise ValidationError(
                f"Uploaded document exceeds the {self.max_upload_bytes // (1024 * 1024)}MB limit"
            )
        return base_type

    async def extract(self, data: bytes, media_type: Optional[str], filename: Optional[str] = None) -> str:
        """Extract plain text from a document.

        Args:
            data: Raw file bytes
            media_type: Declared content type of the upload
            filename: Original filename, for logging

        Returns:
            Extracted text

        Raises:
            ValidationError: Unsupported type, empty or oversized upload
            DocumentExtractionError: The file could not be parsed
        """
        base_type = self.validate(data, media_type)

        try:
            text = await asyncio.to_thread(self._extractors[base_type], data)
        except Exception as e:
            LOGGER.warning(
                f"Text extraction failed for {filename or 'upload'}: {e}",
                extra={"media_type": base_type, "size": len(data)}
            )
            raise DocumentExtractionError(
                "Could not read the uploaded document", original_error=e
            ) from e

        LOGGER.info(
            f"Extracted {len(text)} characters from {filename or 'upload'}",
            extra={"media_type": base_type, "size": len(data)}
        )
        return text
