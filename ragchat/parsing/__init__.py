"""Document parsing utilities for ingestion.

Transforms documents into clean text chunks through extraction,
normalization and overlapping chunking.

Responsibilities:
    - PDF text extraction with pypdf, per page
    - HTML page text extraction with lxml
    - Text cleaning and normalization
    - Document chunking with overlap for context preservation
"""

from ragchat.parsing.chunker import TextChunker, split_text
from ragchat.parsing.html_parser import HTMLContent, parse_html
from ragchat.parsing.normalize import normalize_text
from ragchat.parsing.pdf_parser import PDFContent, PDFParseError, parse_pdf

__all__ = [
    "HTMLContent",
    "PDFContent",
    "PDFParseError",
    "TextChunker",
    "normalize_text",
    "parse_html",
    "parse_pdf",
    "split_text",
]
