"""Client side of the answer streams.

Parses SSE and NDJSON bodies incrementally and feeds the text into a
``Typewriter``. NDJSON envelopes repeat the previous envelope's ``lastWord``
at the start of their text; ``MessageAssembler`` removes that word from the
message tail before appending, so the rendered answer matches the generated
one exactly.
"""

import json
import logging
from collections.abc import Callable
from typing import Any

import httpx

from ragchat.ui.typewriter import Typewriter

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class StreamError(Exception):
    """The server reported a failure inside the stream."""

    def __init__(self, error: str, detail: str | None = None) -> None:
        super().__init__(f"{error}: {detail}" if detail else error)
        self.error = error
        self.detail = detail


def delta_text(payload: str) -> str:
    """Text carried by one SSE ``data:`` payload.

    Reads ``choices[0].delta.content`` (or ``choices[0].message.content``).
    A payload that is not JSON is taken as literal text.

    Raises:
        StreamError: If the payload is an ``{"error": ...}`` object.
    """
    try:
        data = json.loads(payload)
    except ValueError:
        return payload

    if isinstance(data, str):
        return data
    if not isinstance(data, dict):
        return ""
    if data.get("error"):
        raise StreamError(str(data["error"]), data.get("detail"))

    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("delta") or choices[0].get("message") or {}
    content = message.get("content")
    return content if isinstance(content, str) else ""


class SseStreamParser:
    """Incremental parser for ``text/event-stream`` bodies."""

    def __init__(self) -> None:
        self._buffer = ""
        self.done = False

    def feed(self, chunk: str) -> list[str]:
        """Add a network chunk and return the complete ``data:`` payloads.

        An incomplete trailing event stays buffered. ``[DONE]`` sets
        ``done``; anything after it is ignored.
        """
        if self.done:
            return []
        self._buffer = (self._buffer + chunk).replace("\r\n", "\n")
        *events, self._buffer = self._buffer.split("\n\n")

        payloads = []
        for event in events:
            lines = [line[5:] for line in event.split("\n") if line.startswith("data:")]
            if not lines:
                continue
            payload = "\n".join(line[1:] if line.startswith(" ") else line for line in lines)
            if payload.strip() == DONE_SENTINEL:
                self.done = True
                self._buffer = ""
                break
            payloads.append(payload)
        return payloads


class NdjsonStreamParser:
    """Incremental parser for newline-delimited JSON bodies."""

    def __init__(self) -> None:
        self._buffer = ""

    @staticmethod
    def _decode(line: str) -> dict[str, Any] | None:
        if not line.strip():
            return None
        try:
            envelope = json.loads(line)
        except ValueError as e:
            raise StreamError("Malformed stream line", line[:200]) from e
        return envelope if isinstance(envelope, dict) else None

    def feed(self, chunk: str) -> list[dict[str, Any]]:
        """Add a network chunk and return every complete envelope."""
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return [e for e in map(self._decode, lines) if e is not None]

    def finish(self) -> list[dict[str, Any]]:
        """Envelopes from a final line that had no trailing newline."""
        tail, self._buffer = self._buffer, ""
        envelope = self._decode(tail)
        return [envelope] if envelope is not None else []


class MessageAssembler:
    """Applies stream content to the message being typed out."""

    def __init__(self, typewriter: Typewriter) -> None:
        self.typewriter = typewriter
        self.finished = False
        self._last_word: str | None = None

    def apply_envelope(self, envelope: dict[str, Any]) -> None:
        """Apply one NDJSON envelope.

        Raises:
            StreamError: If the envelope reports a generation failure.
        """
        if envelope.get("error"):
            self.finished = True
            raise StreamError(str(envelope["error"]), envelope.get("detail"))

        text = envelope.get("text") or ""
        if self._last_word and text.startswith(self._last_word):
            self._drop_repeated_word(self._last_word)
        self.typewriter.push(text)

        self._last_word = envelope.get("lastWord") or None
        if envelope.get("isLast"):
            self.finished = True

    def apply_delta(self, text: str) -> None:
        """Apply one SSE delta; deltas never overlap."""
        self.typewriter.push(text)

    def _drop_repeated_word(self, word: str) -> None:
        message = self.typewriter.target
        body = message.rstrip()
        if not body.endswith(word):
            return
        self.typewriter.truncate_tail(len(message) - len(body) + len(word))


async def consume_chat_stream(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, Any],
    assembler: MessageAssembler,
    on_error: Callable[[str], None],
) -> bool:
    """POST a question and type the streamed answer out.

    The wire format is picked from the response content type: SSE for
    ``text/event-stream``, NDJSON otherwise. Reading stops as soon as the
    assembler's typewriter is cancelled, which closes the response.

    Returns:
        True if the stream ended normally, False after ``on_error`` was called
        or once the message was cancelled.
    """
    typewriter = assembler.typewriter
    try:
        async with client.stream("POST", url, json=payload) as response:
            response.raise_for_status()
            if response.headers.get("content-type", "").startswith("text/event-stream"):
                sse = SseStreamParser()
                async for chunk in response.aiter_text():
                    for data in sse.feed(chunk):
                        assembler.apply_delta(delta_text(data))
                    if sse.done or typewriter.cancelled:
                        break
                if typewriter.cancelled:
                    return False
                assembler.finished = sse.done
                if not sse.done:
                    on_error("Stream ended before completion")
                    return False
            else:
                ndjson = NdjsonStreamParser()
                async for chunk in response.aiter_text():
                    for envelope in ndjson.feed(chunk):
                        assembler.apply_envelope(envelope)
                    if typewriter.cancelled:
                        return False
                for envelope in ndjson.finish():
                    assembler.apply_envelope(envelope)
    except httpx.HTTPStatusError as e:
        on_error(f"HTTP {e.response.status_code}")
        return False
    except httpx.RequestError as e:
        on_error(f"Connection failed: {e}")
        return False
    except StreamError as e:
        logger.warning(f"Stream reported an error: {e}")
        on_error(str(e))
        return False
    return True
