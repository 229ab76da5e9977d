"""Pytest fixtures and shared test configuration.

Provides test doubles for the external services and an API client wired
to them through ``app.dependency_overrides``.

Fixtures:
    - embedder: Deterministic bag-of-words embedder
    - index: Shared in-memory vector index
    - generator: Scripted token generator
    - app / async_client: FastAPI app with the doubles installed
    - page_client: Canned web pages for URL ingestion
    - make_pdf: Builder for small text PDFs
"""

from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import asynccontextmanager

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from ragchat.api.app import create_app
from ragchat.api.deps import (
    chat_policy,
    get_embedder_factory,
    get_generator,
    get_http_client,
    get_index_factory,
    stream_policy,
)
from ragchat.retrieval.vector_index import InMemoryVectorIndex
from ragchat.streaming.transports import StreamPolicy
from tests.doubles import FakeEmbedder, FakeGenerator, build_pdf


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def app(
    embedder: FakeEmbedder, index: InMemoryVectorIndex, generator: FakeGenerator
) -> FastAPI:
    """FastAPI app whose store, embedder and backend are test doubles."""
    application = create_app()

    @asynccontextmanager
    async def shared_index() -> AsyncIterator[InMemoryVectorIndex]:
        yield index

    application.dependency_overrides[get_index_factory] = lambda: shared_index
    application.dependency_overrides[get_embedder_factory] = lambda: lambda: embedder
    application.dependency_overrides[get_generator] = lambda: generator
    application.dependency_overrides[chat_policy] = lambda: StreamPolicy(
        transport="ndjson", min_words=2, top_k=3, max_context_chars=1500
    )
    application.dependency_overrides[stream_policy] = lambda: StreamPolicy(
        transport="sse", min_words=2, top_k=5, max_context_chars=4000
    )
    return application


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def page_client(app: FastAPI) -> Callable[[dict[str, tuple[int, str]]], None]:
    """Serve canned pages to URL ingestion.

    Returns:
        A function taking ``{url: (status, html)}``; unknown URLs get 404.
    """

    def install(pages: dict[str, tuple[int, str]]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            status, body = pages.get(str(request.url), (404, "not found"))
            return httpx.Response(status, text=body, headers={"content-type": "text/html"})

        async def client() -> AsyncIterator[httpx.AsyncClient]:
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as c:
                yield c

        app.dependency_overrides[get_http_client] = client

    return install


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    return build_pdf
