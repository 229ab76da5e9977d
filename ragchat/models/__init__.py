"""Pydantic models for stored chunks, API requests and responses.

Provides type safety, validation, and automatic OpenAPI documentation.
"""

from ragchat.models.schemas import (
    AnswerRequest,
    AnswerResponse,
    ChatStreamRequest,
    ChatTurn,
    ChunkMetadata,
    ChunkRecord,
    EmbedRequest,
    IngestionReport,
    NamespaceDeleteResponse,
    QueryRequest,
    RetrievedDoc,
    ScoredChunk,
    UploadResult,
    UploadSource,
    UrlEmbedRequest,
    UrlResult,
)

__all__ = [
    "AnswerRequest",
    "AnswerResponse",
    "ChatStreamRequest",
    "ChatTurn",
    "ChunkMetadata",
    "ChunkRecord",
    "EmbedRequest",
    "IngestionReport",
    "NamespaceDeleteResponse",
    "QueryRequest",
    "RetrievedDoc",
    "ScoredChunk",
    "UploadResult",
    "UploadSource",
    "UrlEmbedRequest",
    "UrlResult",
]
