"""Unit tests for the client-side stream parsers and message assembly."""

import asyncio
import json

import httpx
import pytest
import pytest_check as check

from ragchat.streaming.coalescer import StreamCoalescer
from ragchat.streaming.transports import NdjsonTransport, SseTransport, stream_generation
from ragchat.ui.stream_consumer import (
    MessageAssembler,
    NdjsonStreamParser,
    SseStreamParser,
    StreamError,
    consume_chat_stream,
    delta_text,
)
from ragchat.ui.typewriter import Typewriter
from tests.doubles import drain, token_stream

CHAT_URL = "http://api.test/chat"


def _assembler() -> MessageAssembler:
    return MessageAssembler(Typewriter(lambda text: None, interval=0))


class TestDeltaText:
    def test_delta_content(self) -> None:
        assert delta_text('{"choices":[{"delta":{"content":"Hi "}}]}') == "Hi "

    def test_message_content(self) -> None:
        assert delta_text('{"choices":[{"message":{"content":"Full"}}]}') == "Full"

    def test_plain_text_payload(self) -> None:
        check.equal(delta_text("not json at all"), "not json at all")
        check.equal(delta_text('"quoted"'), "quoted")

    def test_payloads_without_text(self) -> None:
        check.equal(delta_text('{"choices":[]}'), "")
        check.equal(delta_text('{"choices":[{"delta":{}}]}'), "")
        check.equal(delta_text("[1, 2]"), "")

    def test_error_payload_raises(self) -> None:
        with pytest.raises(StreamError) as exc_info:
            delta_text('{"error":"Generation failed","detail":"boom"}')

        check.equal(exc_info.value.error, "Generation failed")
        check.equal(exc_info.value.detail, "boom")


class TestSseStreamParser:
    def test_events_split_across_chunks(self) -> None:
        parser = SseStreamParser()

        check.equal(parser.feed("data: one\n"), [])
        check.equal(parser.feed("\ndata: tw"), ["one"])
        check.equal(parser.feed("o\n\ndata: [DONE]\n\ndata: ignored\n\n"), ["two"])
        check.is_true(parser.done)
        check.equal(parser.feed("data: late\n\n"), [])

    def test_crlf_and_multiline_data(self) -> None:
        parser = SseStreamParser()

        payloads = parser.feed("data: first\r\ndata: second\r\n\r\n")

        assert payloads == ["first\nsecond"]

    def test_comments_are_skipped(self) -> None:
        assert SseStreamParser().feed(": keep-alive\n\ndata: x\n\n") == ["x"]


class TestNdjsonStreamParser:
    def test_lines_split_across_chunks(self) -> None:
        parser = NdjsonStreamParser()

        check.equal(parser.feed('{"text": "a'), [])
        check.equal(parser.feed('b"}\n\n{"text": "c"}\n'), [{"text": "ab"}, {"text": "c"}])
        check.equal(parser.finish(), [])

    def test_finish_returns_unterminated_line(self) -> None:
        parser = NdjsonStreamParser()
        parser.feed('{"text": "end", "isLast": true}')

        assert parser.finish() == [{"text": "end", "isLast": True}]

    def test_malformed_line_raises(self) -> None:
        with pytest.raises(StreamError, match="Malformed stream line"):
            NdjsonStreamParser().feed("{broken\n")


class TestMessageAssembler:
    async def test_repeated_word_is_not_duplicated(self) -> None:
        assembler = _assembler()

        assembler.apply_envelope({"text": "The quick brown fox jumps over ", "lastWord": "over"})
        assembler.apply_envelope({"text": "over the lazy dog.", "isLast": True})
        await assembler.typewriter.wait_drained()

        check.equal(assembler.typewriter.rendered, "The quick brown fox jumps over the lazy dog.")
        check.is_true(assembler.finished)

    async def test_overlap_after_rendering(self) -> None:
        assembler = _assembler()

        assembler.apply_envelope({"text": "first line\n", "lastWord": "line"})
        await assembler.typewriter.wait_drained()
        assembler.apply_envelope({"text": "line\nnext", "isLast": True})
        await assembler.typewriter.wait_drained()

        assert assembler.typewriter.rendered == "first line\nnext"

    async def test_text_without_overlap_is_appended(self) -> None:
        assembler = _assembler()

        assembler.apply_envelope({"text": "x" * 20})
        assembler.apply_envelope({"text": "tail", "isLast": True})
        await assembler.typewriter.wait_drained()

        assert assembler.typewriter.rendered == "x" * 20 + "tail"

    def test_error_envelope_raises(self) -> None:
        assembler = _assembler()

        with pytest.raises(StreamError, match="Generation failed"):
            assembler.apply_envelope(
                {"error": "Generation failed", "detail": "boom", "isLast": True}
            )
        assert assembler.finished

    async def test_ndjson_stream_renders_generated_text(self) -> None:
        tokens = [
            "The quick ", "brown fox ", "jumps over ", "the lazy ", "dog.\nNew ", "line here."
        ]
        frames = await drain(
            stream_generation(token_stream(tokens), StreamCoalescer(2), NdjsonTransport())
        )
        parser = NdjsonStreamParser()
        assembler = _assembler()

        for envelope in parser.feed("".join(frames)):
            assembler.apply_envelope(envelope)
        await assembler.typewriter.wait_drained()

        check.equal(assembler.typewriter.rendered, "".join(tokens))
        check.is_true(assembler.finished)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestConsumeChatStream:
    async def test_ndjson_response(self) -> None:
        body = (
            json.dumps({"text": "Alpha is ", "lastWord": "is"}) + "\n"
            + json.dumps({"text": "is first.", "isLast": True}) + "\n"
        )
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(
                200, text=body, headers={"content-type": "application/x-ndjson"}
            )

        assembler = _assembler()
        errors: list[str] = []
        async with _client(handler) as client:
            ok = await consume_chat_stream(
                client, CHAT_URL, {"question": "alpha?"}, assembler, errors.append
            )
        await assembler.typewriter.wait_drained()

        check.is_true(ok)
        check.equal(errors, [])
        check.equal(seen, [{"question": "alpha?"}])
        check.equal(assembler.typewriter.rendered, "Alpha is first.")

    async def test_sse_response(self) -> None:
        frames = await drain(
            stream_generation(
                token_stream(["Hello ", "there ", "friend."]), StreamCoalescer(1), SseTransport()
            )
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                text="".join(frames),
                headers={"content-type": "text/event-stream; charset=utf-8"},
            )

        assembler = _assembler()
        async with _client(handler) as client:
            ok = await consume_chat_stream(client, CHAT_URL, {}, assembler, lambda e: None)
        await assembler.typewriter.wait_drained()

        check.is_true(ok)
        check.is_true(assembler.finished)
        check.equal(assembler.typewriter.rendered, "Hello there friend.")

    async def test_error_envelope_reported(self) -> None:
        body = json.dumps({"error": "Generation failed", "detail": "boom", "isLast": True}) + "\n"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=body, headers={"content-type": "application/x-ndjson"})

        errors: list[str] = []
        async with _client(handler) as client:
            ok = await consume_chat_stream(client, CHAT_URL, {}, _assembler(), errors.append)

        check.is_false(ok)
        check.equal(errors, ["Generation failed: boom"])

    async def test_http_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "Internal Server Error"})

        errors: list[str] = []
        async with _client(handler) as client:
            ok = await consume_chat_stream(client, CHAT_URL, {}, _assembler(), errors.append)

        check.is_false(ok)
        check.equal(errors, ["HTTP 500"])

    async def test_connection_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        errors: list[str] = []
        async with _client(handler) as client:
            ok = await consume_chat_stream(client, CHAT_URL, {}, _assembler(), errors.append)

        check.is_false(ok)
        check.equal(len(errors), 1)
        check.is_true(errors[0].startswith("Connection failed"))

    async def test_sse_without_done_is_incomplete(self) -> None:
        body = 'data: {"choices":[{"delta":{"content":"Cut "}}]}\n\n'

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, text=body, headers={"content-type": "text/event-stream"}
            )

        assembler = _assembler()
        errors: list[str] = []
        async with _client(handler) as client:
            ok = await consume_chat_stream(client, CHAT_URL, {}, assembler, errors.append)

        check.is_false(ok)
        check.is_false(assembler.finished)
        check.equal(errors, ["Stream ended before completion"])


def _envelope(text: str, **extra) -> bytes:
    return (json.dumps({"text": text, **extra}) + "\n").encode()


class TestStreamCancellation:
    """Cancelling the message stops rendering and reading."""

    async def test_cancel_mid_stream_freezes_message(self) -> None:
        assembler = _assembler()
        frozen: list[str] = []
        sent: list[bytes] = []

        async def body():
            for chunk in (_envelope("Alpha is "), _envelope("the first "), _envelope("letter.")):
                if sent and not assembler.typewriter.cancelled:
                    await asyncio.sleep(0.01)
                    assembler.typewriter.cancel()
                    frozen.append(assembler.typewriter.rendered)
                sent.append(chunk)
                yield chunk

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=body(), headers={"content-type": "application/x-ndjson"}
            )

        errors: list[str] = []
        async with _client(handler) as client:
            ok = await consume_chat_stream(client, CHAT_URL, {}, assembler, errors.append)
        await asyncio.sleep(0.05)

        check.is_false(ok)
        check.equal(errors, [])
        check.equal(len(sent), 2)
        check.equal(assembler.typewriter.rendered, frozen[0])
        check.is_false(assembler.finished)

    async def test_cancelling_the_task_closes_the_stream(self) -> None:
        assembler = _assembler()
        first_sent = asyncio.Event()
        closed = asyncio.Event()

        async def body():
            try:
                yield _envelope("Partial ")
                first_sent.set()
                await asyncio.Event().wait()
                yield _envelope("never", isLast=True)
            finally:
                closed.set()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=body(), headers={"content-type": "application/x-ndjson"}
            )

        async with _client(handler) as client:
            task = asyncio.create_task(
                consume_chat_stream(client, CHAT_URL, {}, assembler, lambda e: None)
            )
            await asyncio.wait_for(first_sent.wait(), timeout=1)
            assembler.typewriter.cancel()
            task.cancel()
            await asyncio.wait({task})

        check.is_true(task.cancelled())
        check.is_true(closed.is_set())
        check.is_false(assembler.finished)
