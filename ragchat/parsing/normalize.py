"""Cleanup applied to extracted text before chunking."""

import re

_MULTI_SPACE = re.compile(r" {2,}")
_DOT_BULLET = re.compile(r"(\S)\s+•\s*")
_DASH_BULLET = re.compile(r"(\S)\s+-\s+")


def normalize_text(text: str) -> str:
    """Normalize raw extracted text.

    Unifies line endings, collapses runs of spaces and moves inline
    bullets (``•`` and `` - ``) onto their own lines.

    Args:
        text: Raw text from a PDF page, web page or plain-text upload.

    Returns:
        The normalized text. Empty input returns an empty string.
    """
    text = text.replace("\r\n", "\n")
    text = _MULTI_SPACE.sub(" ", text)
    text = _DOT_BULLET.sub("\\1\n• ", text)
    return _DASH_BULLET.sub("\\1\n- ", text)
