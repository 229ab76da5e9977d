"""Embedding service client.

Talks to any OpenAI-compatible ``/embeddings`` endpoint (OpenAI itself, or
Ollama's ``/v1`` API serving ``nomic-embed-text``) over httpx.
"""

import logging
import os
from typing import Protocol

import httpx
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from ragchat.errors import ConfigurationError, EmbeddingError

load_dotenv()

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    """Anything that turns text into fixed-dimension vectors."""

    async def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    async def embed_query(self, text: str) -> list[float]: ...


class EmbeddingConfig(BaseModel):
    """Connection settings for the embedding service.

    Attributes:
        base_url: API base URL; ``/embeddings`` is appended.
        model: Embedding model identifier.
        api_key: Bearer token, optional for local servers.
        timeout: Request timeout in seconds.
    """

    base_url: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_BASE_URL", "http://localhost:11434/v1"),
        description="OpenAI-compatible embeddings API base URL",
    )
    model: str = Field(
        default_factory=lambda: os.getenv("EMBEDDING_MODEL", "nomic-embed-text"),
        description="Embedding model",
    )
    api_key: str | None = Field(
        default_factory=lambda: os.getenv("EMBEDDING_API_KEY") or None,
        description="API key (None for unauthenticated local servers)",
    )
    timeout: float = Field(default=60.0, gt=0)

    @field_validator("base_url", "model")
    @classmethod
    def validate_required(cls, v: str) -> str:
        """Reject blank connection parameters."""
        if not v or not v.strip():
            raise ValueError("Set EMBEDDING_BASE_URL and EMBEDDING_MODEL in .env")
        return v.strip()


def get_embedding_config() -> EmbeddingConfig:
    """Create embedding configuration from environment.

    Raises:
        ConfigurationError: If a required setting is blank.
    """
    try:
        return EmbeddingConfig()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid embedding config: {e}") from e


class EmbeddingClient:
    """Async client for the embedding service.

    Use as an async context manager so the underlying connection pool is
    released when the request finishes.
    """

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_embedding_config()
        headers = {}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        self._client = client or httpx.AsyncClient(
            base_url=self._config.base_url.rstrip("/"),
            headers=headers,
            timeout=self._config.timeout,
        )

    async def __aenter__(self) -> "EmbeddingClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts in one request.

        Args:
            texts: Chunk texts to embed.

        Returns:
            One vector per input text, in input order.

        Raises:
            EmbeddingError: On transport failure, non-2xx status or a
                malformed response.
        """
        if not texts:
            return []

        try:
            response = await self._client.post(
                "/embeddings",
                json={"model": self._config.model, "input": texts},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise EmbeddingError(
                f"Embedding service returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Embedding service unreachable: {e}") from e
        except ValueError as e:
            raise EmbeddingError("Embedding service returned invalid JSON") from e

        try:
            items = sorted(payload["data"], key=lambda item: item.get("index", 0))
            vectors = [[float(x) for x in item["embedding"]] for item in items]
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingError("Malformed embedding response") from e

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, received {len(vectors)}"
            )

        logger.debug(f"Embedded {len(texts)} texts with {self._config.model}")
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        vectors = await self.embed_documents([text])
        return vectors[0]
