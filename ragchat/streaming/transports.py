"""Wire framings for coalesced generation streams.

Both framings share one coalescer; a ``GenerationTransport`` only decides
how a segment, the end of the stream, and a failure look on the wire.

NDJSON (``application/x-ndjson``), one envelope per line::

    {"text": "The quick brown fox jumps over ", "lastWord": "over"}
    {"text": "over the lazy dog.", "isLast": true}

A word-aligned envelope names its final word in ``lastWord`` and the next
envelope starts by repeating that word and the whitespace after it. The
client strips the repeated word from its message before appending, which
keeps a word split across two reads from being rendered twice.

SSE (``text/event-stream``)::

    data: {"choices": [{"delta": {"content": "The quick brown fox "}}]}

    data: [DONE]

"""

import json
import logging
import os
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from ragchat.streaming.coalescer import StreamCoalescer, StreamSegment

logger = logging.getLogger(__name__)

GENERATION_FAILED = "Generation failed"


class GenerationTransport(Protocol):
    """Frames coalesced segments for one wire format."""

    media_type: str

    def frame(self, segment: StreamSegment) -> list[str]:
        """Frames for one segment (the terminal segment included)."""
        ...

    def error(self, exc: BaseException) -> str:
        """The single frame sent when generation fails."""
        ...


def last_word(text: str) -> str | None:
    """Final whitespace-delimited word of ``text``, if any."""
    words = text.split()
    return words[-1] if words else None


class NdjsonTransport:
    """Line-delimited JSON envelopes with repeated-word overlap."""

    media_type = "application/x-ndjson"

    def __init__(self) -> None:
        self._overlap = ""

    @staticmethod
    def _line(payload: dict) -> str:
        return json.dumps(payload, ensure_ascii=False) + "\n"

    def frame(self, segment: StreamSegment) -> list[str]:
        text = self._overlap + segment.text
        payload: dict = {"text": text}

        word = last_word(segment.text) if segment.word_aligned else None
        if word is not None:
            payload["lastWord"] = word
            stripped = segment.text.rstrip()
            self._overlap = segment.text[len(stripped) - len(word):]
        else:
            self._overlap = ""

        if segment.is_last:
            payload["isLast"] = True
        return [self._line(payload)]

    def error(self, exc: BaseException) -> str:
        return self._line({"error": GENERATION_FAILED, "detail": str(exc), "isLast": True})


class SseTransport:
    """OpenAI-style ``choices[].delta`` events with a ``[DONE]`` sentinel."""

    media_type = "text/event-stream"

    @staticmethod
    def _event(data: str) -> str:
        return f"data: {data}\n\n"

    def frame(self, segment: StreamSegment) -> list[str]:
        frames = []
        if segment.text:
            payload = {"choices": [{"delta": {"content": segment.text}}]}
            frames.append(self._event(json.dumps(payload, ensure_ascii=False)))
        if segment.is_last:
            frames.append(self._event("[DONE]"))
        return frames

    def error(self, exc: BaseException) -> str:
        payload = {"error": GENERATION_FAILED, "detail": str(exc)}
        return self._event(json.dumps(payload, ensure_ascii=False))


TRANSPORTS: dict[str, type[NdjsonTransport] | type[SseTransport]] = {
    "ndjson": NdjsonTransport,
    "sse": SseTransport,
}


@dataclass(frozen=True)
class StreamPolicy:
    """Per-endpoint streaming and retrieval knobs.

    Attributes:
        transport: Key into ``TRANSPORTS``.
        min_words: Coalescer word threshold.
        top_k: Chunks retrieved for the context.
        max_context_chars: Context budget in characters.
        max_buffer: Coalescer force-flush length.
    """

    transport: str
    min_words: int
    top_k: int
    max_context_chars: int
    max_buffer: int = 200

    def new_transport(self) -> GenerationTransport:
        return TRANSPORTS[self.transport]()

    def new_coalescer(self) -> StreamCoalescer:
        return StreamCoalescer(min_words=self.min_words, max_buffer=self.max_buffer)


def get_chat_policy() -> StreamPolicy:
    """Policy of the lightweight NDJSON chat flow."""
    return StreamPolicy(
        transport=os.getenv("CHAT_TRANSPORT", "ndjson"),
        min_words=int(os.getenv("CHAT_MIN_WORDS", "6")),
        top_k=3,
        max_context_chars=1500,
    )


def get_stream_policy() -> StreamPolicy:
    """Policy of the richer SSE chat flow."""
    return StreamPolicy(
        transport=os.getenv("STREAM_TRANSPORT", "sse"),
        min_words=int(os.getenv("STREAM_MIN_WORDS", "15")),
        top_k=5,
        max_context_chars=4000,
    )


class ClientDisconnected(Exception):
    """The consumer of a stream went away."""


async def _until_disconnected(
    tokens: AsyncIterator[str],
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[str]:
    async for token in tokens:
        if await is_disconnected():
            raise ClientDisconnected()
        yield token


async def stream_generation(
    tokens: AsyncIterator[str],
    coalescer: StreamCoalescer,
    transport: GenerationTransport,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """Coalesce a token stream and frame it for the wire.

    Frames are yielded in strict order. A backend failure yields one error
    frame and ends the stream; nothing is retried. If ``is_disconnected``
    reports the client is gone, reading from the backend stops and its
    iterator is closed.
    """
    started = time.monotonic()
    chars = 0
    source = tokens if is_disconnected is None else _until_disconnected(tokens, is_disconnected)
    segments = coalescer.coalesce(source)
    try:
        async for segment in segments:
            chars += len(segment.text)
            for frame in transport.frame(segment):
                yield frame
    except ClientDisconnected:
        logger.info(f"Client disconnected after {chars} chars, stopping generation")
    except Exception as e:
        logger.error(f"Generation failed mid-stream: {e}")
        yield transport.error(e)
    finally:
        await segments.aclose()
        aclose = getattr(tokens, "aclose", None)
        if aclose is not None:
            await aclose()
        logger.info(
            f"Generation finished: ms={int((time.monotonic() - started) * 1000)} chars={chars}"
        )
