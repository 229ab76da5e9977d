"""Overlapping fixed-size text chunking.

Splits normalized text into chunks of at most ``chunk_size`` characters
where consecutive chunks share exactly ``chunk_overlap`` characters, so the
source is recoverable as ``chunks[0] + "".join(c[overlap:] for c in chunks[1:])``.

Cut points prefer paragraph breaks, then line breaks, then sentence ends,
then spaces. A hard character cut is used only when the window holds none.
"""

DEFAULT_CHUNK_SIZE = 500
DEFAULT_CHUNK_OVERLAP = 80

# Boundary tiers, strongest first. Within a tier the latest match wins.
_SEPARATOR_TIERS: tuple[tuple[str, ...], ...] = (
    ("\n\n",),
    ("\n",),
    (". ", "! ", "? "),
    (" ",),
)


def _find_cut(text: str, start: int, limit: int, overlap: int) -> int:
    """Return the end offset (exclusive) of the chunk starting at ``start``."""
    # Search only the back half of the window so chunks stay close to full
    # size, and never at or before the overlap so the next start advances.
    lower = max(start + overlap + 1, start + (limit - start) // 2)
    window = text[lower:limit]

    for tier in _SEPARATOR_TIERS:
        best = -1
        for sep in tier:
            idx = window.rfind(sep)
            if idx != -1:
                best = max(best, idx + len(sep))
        if best > 0:
            return lower + best

    return limit


def split_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[str]:
    """Split text into overlapping chunks.

    Args:
        text: Normalized source text.
        chunk_size: Maximum characters per chunk.
        chunk_overlap: Characters shared by consecutive chunks.

    Returns:
        Ordered chunk texts. Empty text yields an empty list, text no longer
        than ``chunk_size`` yields a single chunk.

    Raises:
        ValueError: If the size/overlap combination cannot make progress.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if chunk_overlap < 0:
        raise ValueError("chunk_overlap must be non-negative")
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")

    if not text:
        return []

    chunks: list[str] = []
    start = 0
    length = len(text)

    while length - start > chunk_size:
        end = _find_cut(text, start, start + chunk_size, chunk_overlap)
        chunks.append(text[start:end])
        start = end - chunk_overlap

    chunks.append(text[start:])
    return chunks


class TextChunker:
    """Chunker bound to one size/overlap configuration."""

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        # Validate eagerly rather than on first use.
        split_text("", chunk_size, chunk_overlap)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def split(self, text: str) -> list[str]:
        return split_text(text, self.chunk_size, self.chunk_overlap)
