"""HTML page text extraction using lxml.

Reduces a page to its title, meta description and visible body text.
"""

import logging

from lxml import html
from lxml.etree import ParserError
from pydantic import BaseModel

from ragchat.errors import ExtractionError
from ragchat.parsing.normalize import normalize_text

logger = logging.getLogger(__name__)

_STRIPPED_TAGS = ("script", "style", "noscript", "iframe", "svg", "canvas")


class HTMLContent(BaseModel):
    """Text extracted from a web page.

    Attributes:
        text: Title, description and body joined by blank lines.
        title: Contents of the ``<title>`` element.
        description: Contents of ``<meta name="description">``.
        url: Page URL when known.
    """

    text: str
    title: str = ""
    description: str = ""
    url: str | None = None


def parse_html(payload: str | bytes, url: str | None = None) -> HTMLContent:
    """Extract readable text from an HTML document.

    Args:
        payload: Raw HTML.
        url: Source URL, carried into the result.

    Returns:
        HTMLContent. ``text`` is empty when the page has no readable text.

    Raises:
        ExtractionError: If lxml cannot build a document tree.
    """
    if not payload or not payload.strip():
        return HTMLContent(text="", url=url)

    try:
        tree = html.document_fromstring(payload)
    except (ParserError, ValueError) as e:
        raise ExtractionError(f"Unparseable HTML: {e}") from e

    for element in tree.xpath("//" + " | //".join(_STRIPPED_TAGS)):
        element.drop_tree()

    title = " ".join(tree.xpath("string(//title)").split())
    description = tree.xpath('string(//meta[@name="description"]/@content)').strip()

    body = tree.find("body")
    body_text = normalize_text(body.text_content() if body is not None else "")

    parts = [part.strip() for part in (title, description, body_text)]
    text = "\n\n".join(part for part in parts if part)

    logger.debug(f"Extracted {len(text)} characters from {url or 'HTML payload'}")
    return HTMLContent(text=text, title=title, description=description, url=url)
