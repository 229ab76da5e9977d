"""Similarity search over the chunk store and context assembly.

Responsibilities:
    - Cosine similarity scoring
    - The VectorIndex capability with in-memory and LanceDB implementations
    - Top-k retrieval and length-bounded context rendering
"""

from ragchat.retrieval.engine import NO_CONTEXT, RetrievalEngine, build_context
from ragchat.retrieval.similarity import cosine_similarity
from ragchat.retrieval.vector_index import (
    InMemoryVectorIndex,
    LanceVectorIndex,
    VectorIndex,
    VectorStoreConfig,
    get_vector_store_config,
    open_vector_index,
)

__all__ = [
    "NO_CONTEXT",
    "InMemoryVectorIndex",
    "LanceVectorIndex",
    "RetrievalEngine",
    "VectorIndex",
    "VectorStoreConfig",
    "build_context",
    "cosine_similarity",
    "get_vector_store_config",
    "open_vector_index",
]
