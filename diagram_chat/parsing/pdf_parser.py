"""PDF attachment checks using pypdf.

The model receives PDFs as raw bytes, so a broken upload would only fail deep
inside the provider call. inspect_pdf opens the document once up front and
turns any problem into a PDFParseError the API can report as a 400.
"""

import io
import logging

from pydantic import BaseModel, Field
from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)

# Shared attachment size ceiling, also enforced by the client encoder
MAX_FILE_SIZE = 10 * 1024 * 1024
PDF_MAGIC_BYTES = b"%PDF"


class PDFInfo(BaseModel):
    """What the server learned from a readable PDF attachment."""

    pages: int = Field(ge=1)
    title: str | None = None


class PDFParseError(Exception):
    """Raised when a PDF attachment is unreadable."""

    pass


def _check_header(content: bytes) -> None:
    if not content:
        raise PDFParseError("Empty file provided")

    if len(content) > MAX_FILE_SIZE:
        size_mb = len(content) / (1024 * 1024)
        raise PDFParseError(f"PDF is {size_mb:.1f}MB, which exceeds maximum allowed (10MB)")

    # Some generators emit leading whitespace before the header
    if not content.lstrip()[:10].startswith(PDF_MAGIC_BYTES):
        raise PDFParseError("Invalid PDF: missing %PDF header")


def _document_title(reader: PdfReader) -> str | None:
    try:
        metadata = reader.metadata
    except PdfReadError as e:
        logger.debug(f"Ignoring unreadable PDF metadata: {e}")
        return None
    title = metadata.get("/Title") if metadata else None
    return str(title) if title else None


def inspect_pdf(content: bytes) -> PDFInfo:
    """Open a PDF attachment and report its page count and title.

    Args:
        content: Decoded bytes of the attachment.

    Raises:
        PDFParseError: If the bytes are empty, too large, not a PDF, corrupt,
            or describe a document without pages.
    """
    _check_header(content)

    try:
        reader = PdfReader(io.BytesIO(content))
        pages = len(reader.pages)
    except PdfReadError as e:
        raise PDFParseError(f"Corrupt or invalid PDF: {e}") from e
    except Exception as e:
        # pypdf surfaces some structural damage as plain Python errors
        raise PDFParseError(f"Failed to read PDF: {e}") from e

    if pages == 0:
        raise PDFParseError("PDF contains no pages")

    return PDFInfo(pages=pages, title=_document_title(reader))
