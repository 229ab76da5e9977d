"""Turning uploads and URLs into raw page text."""

import logging
from dataclasses import dataclass, field

import httpx
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from ragchat.errors import ExtractionError, FetchError
from ragchat.models.schemas import UploadSource
from ragchat.parsing.html_parser import HTMLContent, parse_html
from ragchat.parsing.pdf_parser import is_pdf, parse_pdf

logger = logging.getLogger(__name__)

_HTML_EXTENSIONS = (".html", ".htm", ".xhtml")
_URL_ADAPTER = TypeAdapter(AnyHttpUrl)


@dataclass
class ExtractedPage:
    """Raw text of one page; ``number`` is None for unpaged sources."""

    text: str
    number: int | None = None


@dataclass
class ExtractedDocument:
    """Everything pulled out of one source before normalization."""

    pages: list[ExtractedPage] = field(default_factory=list)
    title: str | None = None


def validate_url(raw: object) -> str | None:
    """Return the normalized URL when it is a valid http(s) URL, else None.

    Any other scheme (file, ftp, data, javascript, ...) is rejected before
    a request is ever made.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        url = _URL_ADAPTER.validate_python(raw.strip())
    except ValidationError:
        return None
    if url.scheme not in ("http", "https"):
        return None
    return str(url)


def extract_upload(upload: UploadSource) -> ExtractedDocument:
    """Extract text from an uploaded file.

    PDFs (by magic bytes or extension) are read page by page, HTML files are
    reduced to readable text, anything else is decoded as UTF-8.

    Raises:
        ExtractionError: If the file cannot be parsed.
    """
    name = upload.name.lower()

    if is_pdf(upload.data) or name.endswith(".pdf"):
        pdf = parse_pdf(upload.data)
        return ExtractedDocument(
            pages=[ExtractedPage(text=p.text, number=p.number) for p in pdf.pages],
            title=pdf.metadata.get("title"),
        )

    if name.endswith(_HTML_EXTENSIONS):
        page = parse_html(upload.data)
        return ExtractedDocument(pages=[ExtractedPage(text=page.text)], title=page.title or None)

    try:
        text = upload.data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ExtractionError(f"Unsupported file type: {upload.name}") from e
    return ExtractedDocument(pages=[ExtractedPage(text=text)])


async def fetch_page(client: httpx.AsyncClient, url: str) -> HTMLContent:
    """Download a web page and extract its readable text.

    Raises:
        FetchError: On transport failure or non-2xx status.
        ExtractionError: If the HTML cannot be parsed.
    """
    try:
        response = await client.get(url, follow_redirects=True)
    except httpx.HTTPError as e:
        raise FetchError(f"Fetch failed: {e}") from e

    if not response.is_success:
        raise FetchError(f"Fetch failed {response.status_code}")

    return parse_html(response.content, url=url)
