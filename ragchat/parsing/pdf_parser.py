"""PDF parsing module using pypdf.

Extracts per-page text content and metadata from PDF files with validation.
"""

import io
import logging

from pydantic import BaseModel, Field
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ragchat.errors import ExtractionError

logger = logging.getLogger(__name__)

# Constants
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
PDF_MAGIC_BYTES = b"%PDF"


class PDFPage(BaseModel):
    """Text of a single PDF page.

    Attributes:
        number: 1-based page number.
        text: Raw extracted text (may be empty for image-only pages).
    """

    number: int = Field(ge=1)
    text: str


class PDFContent(BaseModel):
    """Extracted content from a PDF file.

    Attributes:
        pages: Per-page text in document order.
        metadata: Document metadata (title, author, etc.).
    """

    pages: list[PDFPage]
    metadata: dict[str, str | None]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def text(self) -> str:
        """Combined text of all non-empty pages."""
        return "\n\n".join(page.text for page in self.pages if page.text)


class PDFParseError(ExtractionError):
    """Raised when PDF parsing fails."""


def is_pdf(file_content: bytes) -> bool:
    """Check whether the bytes carry a PDF header."""
    return file_content.lstrip()[:10].startswith(PDF_MAGIC_BYTES)


def _validate_pdf_bytes(file_content: bytes) -> None:
    """Validate PDF file content before parsing.

    Args:
        file_content: Raw bytes of the PDF file.

    Raises:
        PDFParseError: If validation fails.
    """
    if not file_content:
        raise PDFParseError("Empty file provided")

    if len(file_content) > MAX_FILE_SIZE:
        size_mb = len(file_content) / (1024 * 1024)
        raise PDFParseError(f"File size ({size_mb:.1f}MB) exceeds maximum allowed (10MB)")

    if not is_pdf(file_content):
        raise PDFParseError("Invalid PDF: file does not start with PDF header")


def _extract_metadata(reader: PdfReader) -> dict[str, str | None]:
    """Extract metadata from PDF reader.

    Args:
        reader: Initialized PdfReader instance.

    Returns:
        Dictionary of metadata fields.
    """
    metadata: dict[str, str | None] = {}

    try:
        if reader.metadata:
            metadata["title"] = reader.metadata.get("/Title")
            metadata["author"] = reader.metadata.get("/Author")
            metadata["subject"] = reader.metadata.get("/Subject")
    except Exception as e:
        logger.warning(f"Failed to extract some metadata: {e}")

    return {k: str(v) for k, v in metadata.items() if v is not None}


def parse_pdf(file_content: bytes) -> PDFContent:
    """Parse a PDF file and extract the text of every page.

    Args:
        file_content: Raw bytes of the PDF file.

    Returns:
        PDFContent with per-page text and metadata.

    Raises:
        PDFParseError: If the file is invalid, too large, empty, or corrupt.
    """
    _validate_pdf_bytes(file_content)

    try:
        reader = PdfReader(io.BytesIO(file_content))
        page_objects = list(reader.pages)
    except PdfReadError as e:
        raise PDFParseError(f"Corrupt or invalid PDF: {e}") from e
    except Exception as e:
        raise PDFParseError(f"Failed to read PDF: {e}") from e

    if not page_objects:
        raise PDFParseError("PDF contains no pages")

    pages: list[PDFPage] = []
    for i, page in enumerate(page_objects):
        try:
            page_text = page.extract_text() or ""
        except Exception as e:
            logger.warning(f"Failed to extract text from page {i + 1}: {e}")
            page_text = ""
        pages.append(PDFPage(number=i + 1, text=page_text))

    content = PDFContent(pages=pages, metadata=_extract_metadata(reader))

    if not content.text.strip():
        logger.warning("PDF contains no extractable text (may be scanned/image-based)")

    return content
