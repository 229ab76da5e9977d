"""Question answering endpoints.

Retrieval runs inside the handler, holding the vector store only while it
searches. Generation is streamed afterwards through the coalescer and the
transport selected by the endpoint's ``StreamPolicy``.

Endpoints:
    - POST /chat: NDJSON stream for a single question plus optional history
    - POST /chat/stream: SSE stream for a question or a message transcript
    - POST /rag: Non-streaming answer with the retrieved chunks
"""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ragchat.agent.chat_agent import TextGenerator
from ragchat.agent.prompts import (
    build_answer_prompt,
    build_conversation_prompt,
    build_rag_prompt,
)
from ragchat.api.deps import (
    EmbedderFactory,
    IndexFactory,
    chat_policy,
    get_embedder_factory,
    get_generator,
    get_index_factory,
    stream_policy,
)
from ragchat.models.schemas import (
    AnswerRequest,
    AnswerResponse,
    ChatStreamRequest,
    ChatTurn,
    QueryRequest,
    RetrievedDoc,
    ScoredChunk,
)
from ragchat.retrieval.engine import RetrievalEngine
from ragchat.streaming.transports import StreamPolicy, stream_generation

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

ANSWER_CONTEXT_CHARS = 4000

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


async def _retrieve(
    question: str,
    k: int,
    max_chars: int,
    index_factory: IndexFactory,
    embedder_factory: EmbedderFactory,
) -> tuple[str, list[ScoredChunk]]:
    async with index_factory() as index, embedder_factory() as embedder:
        return await RetrievalEngine(embedder, index).build_context(question, k, max_chars)


def _stream(
    request: Request, tokens: AsyncIterator[str], policy: StreamPolicy
) -> StreamingResponse:
    transport = policy.new_transport()
    return StreamingResponse(
        stream_generation(
            tokens,
            policy.new_coalescer(),
            transport,
            is_disconnected=request.is_disconnected,
        ),
        media_type=transport.media_type,
        headers=STREAM_HEADERS,
    )


@router.post("/chat")
async def chat(
    body: QueryRequest,
    request: Request,
    index_factory: IndexFactory = Depends(get_index_factory),
    embedder_factory: EmbedderFactory = Depends(get_embedder_factory),
    generator: TextGenerator = Depends(get_generator),
    policy: StreamPolicy = Depends(chat_policy),
) -> StreamingResponse:
    """Answer a question from the document corpus as an NDJSON stream.

    Each line is ``{"text", "lastWord"?, "isLast"?}``; a failure mid-stream
    ends with ``{"error": "Generation failed", "detail", "isLast": true}``.
    """
    context, _ = await _retrieve(
        body.question, policy.top_k, policy.max_context_chars, index_factory, embedder_factory
    )
    prompt = build_rag_prompt(body.question, context, body.history)
    logger.info(f"Chat: questionChars={len(body.question)} history={len(body.history)}")
    return _stream(request, generator.stream_response(prompt), policy)


@router.post("/chat/stream")
async def chat_stream(
    body: ChatStreamRequest,
    request: Request,
    index_factory: IndexFactory = Depends(get_index_factory),
    embedder_factory: EmbedderFactory = Depends(get_embedder_factory),
    generator: TextGenerator = Depends(get_generator),
    policy: StreamPolicy = Depends(stream_policy),
) -> StreamingResponse:
    """Answer the latest user turn as Server-Sent Events.

    Events carry ``{"choices": [{"delta": {"content"}}]}`` and the stream
    ends with ``data: [DONE]``, or with a single error event on failure.
    """
    question = body.question or ""
    turns = list(body.messages)
    if not turns or turns[-1].role != "user":
        turns.append(ChatTurn(role="user", content=question))

    context, _ = await _retrieve(
        question, policy.top_k, policy.max_context_chars, index_factory, embedder_factory
    )
    prompt = build_conversation_prompt(turns, context)
    logger.info(f"Chat stream: turns={len(turns)}")
    return _stream(request, generator.stream_response(prompt), policy)


@router.post("/rag", response_model=AnswerResponse)
async def answer(
    body: AnswerRequest,
    index_factory: IndexFactory = Depends(get_index_factory),
    embedder_factory: EmbedderFactory = Depends(get_embedder_factory),
    generator: TextGenerator = Depends(get_generator),
) -> AnswerResponse:
    """Answer a question in one response, returning the chunks used."""
    context, results = await _retrieve(
        body.question, body.k, ANSWER_CONTEXT_CHARS, index_factory, embedder_factory
    )
    text = await generator.get_response(build_answer_prompt(body.question, context))

    return AnswerResponse(
        retrieved_docs=[
            RetrievedDoc(
                id=item.record.id,
                text=item.record.text,
                score=item.score,
                metadata=item.record.metadata,
            )
            for item in results
        ],
        answer=text,
    )
