"""Word-safe coalescing of a raw generation token stream.

The backend emits tokens of arbitrary size. The coalescer accumulates them
and releases text only at whitespace boundaries, once enough words have
built up, so clients never receive half a word. A buffer that grows past
``max_buffer`` characters without any whitespace is released whole.

Concatenating every emitted segment reproduces the token stream exactly.
"""

import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum

DEFAULT_MAX_BUFFER = 200

_LAST_WHITESPACE = re.compile(r"\s(?=\S*\Z)")


class StreamState(str, Enum):
    """Lifecycle of one coalesced stream."""

    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    CLOSED = "closed"


@dataclass(frozen=True)
class StreamSegment:
    """A piece of generated text ready to send.

    Attributes:
        text: Text to deliver; empty only for a bare terminal segment.
        is_last: True for the final segment of the stream.
        word_aligned: True when ``text`` ends on whitespace.
    """

    text: str
    is_last: bool = False
    word_aligned: bool = True


class StreamCoalescer:
    """Groups tokens into word-aligned segments.

    Args:
        min_words: Words a whitespace-terminated prefix needs before it is
            released.
        max_buffer: Length past which a whitespace-free buffer is released.
    """

    def __init__(self, min_words: int, max_buffer: int = DEFAULT_MAX_BUFFER) -> None:
        if min_words < 1:
            raise ValueError("min_words must be at least 1")
        if max_buffer < 1:
            raise ValueError("max_buffer must be at least 1")
        self.min_words = min_words
        self.max_buffer = max_buffer
        self.state = StreamState.ACCUMULATING
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def push(self, token: str) -> StreamSegment | None:
        """Add a token and return a segment if one is ready."""
        if self.state is StreamState.CLOSED:
            raise RuntimeError("push() after the stream was closed")
        if not token:
            return None

        self._buffer += token
        match = _LAST_WHITESPACE.search(self._buffer)

        if match is not None:
            complete = self._buffer[: match.end()]
            if len(complete.split()) < self.min_words:
                return None
            return self._flush(len(complete), word_aligned=True)

        if len(self._buffer) > self.max_buffer:
            return self._flush(len(self._buffer), word_aligned=False)

        return None

    def finish(self) -> StreamSegment:
        """Release whatever is buffered as the terminal segment."""
        if self.state is StreamState.CLOSED:
            raise RuntimeError("finish() called twice")
        text = self._buffer
        self._buffer = ""
        self.state = StreamState.CLOSED
        return StreamSegment(
            text=text,
            is_last=True,
            word_aligned=not text or text[-1].isspace(),
        )

    def abort(self) -> None:
        """Close without emitting, dropping any buffered text."""
        self._buffer = ""
        self.state = StreamState.CLOSED

    def _flush(self, size: int, word_aligned: bool) -> StreamSegment:
        self.state = StreamState.FLUSHING
        text, self._buffer = self._buffer[:size], self._buffer[size:]
        self.state = StreamState.ACCUMULATING
        return StreamSegment(text=text, word_aligned=word_aligned)

    async def coalesce(self, tokens: AsyncIterator[str]) -> AsyncIterator[StreamSegment]:
        """Drive the coalescer over an async token stream.

        Yields every ready segment and finally the terminal one. If ``tokens``
        fails, buffered text is yielded as a non-terminal segment and the
        error propagates.
        """
        try:
            async for token in tokens:
                segment = self.push(token)
                if segment is not None:
                    yield segment
        except Exception:
            # Hand over what was generated before the failure.
            pending = self._buffer
            self.abort()
            if pending:
                yield StreamSegment(text=pending, word_aligned=False)
            raise
        except BaseException:
            self.abort()
            raise
        yield self.finish()
