"""Typed failures raised below the HTTP layer.

The API layer is the only place these become wire responses.
"""


class RagChatError(Exception):
    """Base class for application errors."""


class ConfigurationError(RagChatError):
    """Raised when required external-service settings are missing."""


class SourceError(RagChatError):
    """Raised when a single ingestion source cannot be processed."""


class FetchError(SourceError):
    """Raised when a URL cannot be fetched."""


class ExtractionError(SourceError):
    """Raised when text cannot be extracted from a source."""


class EmptyTextError(SourceError):
    """Raised when a source yields no text after extraction."""


class EmbeddingError(RagChatError):
    """Raised when the embedding service fails or answers malformed data."""


class GenerationError(RagChatError):
    """Raised when the text-generation backend fails mid-stream."""
