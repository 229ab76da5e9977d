"""Document ingestion into the vector store.

Responsibilities:
    - Upload and URL extraction (PDF, HTML, plain text)
    - Chunk id assignment
    - Embedding service calls
    - Per-source upsert with independent failure reporting
"""

from ragchat.ingestion.embedder import (
    Embedder,
    EmbeddingClient,
    EmbeddingConfig,
    get_embedding_config,
)
from ragchat.ingestion.engine import DEFAULT_URL_NAMESPACE, IngestionEngine
from ragchat.ingestion.ids import build_ids
from ragchat.ingestion.sources import validate_url

__all__ = [
    "DEFAULT_URL_NAMESPACE",
    "Embedder",
    "EmbeddingClient",
    "EmbeddingConfig",
    "IngestionEngine",
    "build_ids",
    "get_embedding_config",
    "validate_url",
]
