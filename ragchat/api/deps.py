"""Dependency providers for the API routes.

Stores and clients are handed out as factories so a route opens them for
exactly as long as it needs them. Streaming routes finish retrieval, and
release the vector store, before the response body starts.
Tests swap these out through ``app.dependency_overrides``.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager

import httpx

from ragchat.agent.chat_agent import TextGenerator, get_agent_service
from ragchat.ingestion.embedder import Embedder, EmbeddingClient
from ragchat.retrieval.vector_index import VectorIndex, open_vector_index
from ragchat.streaming.transports import StreamPolicy, get_chat_policy, get_stream_policy

IndexFactory = Callable[[], AbstractAsyncContextManager[VectorIndex]]
EmbedderFactory = Callable[[], AbstractAsyncContextManager[Embedder]]

FETCH_TIMEOUT = 20.0
FETCH_HEADERS = {"User-Agent": "ragchat-ingest/0.1 (+https://github.com/ragchat)"}


def get_index_factory() -> IndexFactory:
    """Opens the configured LanceDB table per request."""
    return open_vector_index


def get_embedder_factory() -> EmbedderFactory:
    """Creates an embedding client per request."""
    return EmbeddingClient


def get_generator() -> TextGenerator:
    """Shared generation backend."""
    return get_agent_service()


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client used to fetch pages for URL ingestion."""
    async with httpx.AsyncClient(timeout=FETCH_TIMEOUT, headers=FETCH_HEADERS) as client:
        yield client


def chat_policy() -> StreamPolicy:
    return get_chat_policy()


def stream_policy() -> StreamPolicy:
    return get_stream_policy()
