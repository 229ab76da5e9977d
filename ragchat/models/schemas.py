from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _strip(v: object) -> object:
    if isinstance(v, str):
        return v.strip()
    return v


class ChunkMetadata(BaseModel):
    """Provenance stored next to every chunk.

    Attributes:
        source: File name or URL the chunk came from.
        namespace: Logical partition (tenant or document collection).
        page: 1-based page number when the source is paged.
        title: Document or page title when known.
        url: Source URL for web pages.
    """

    source: str
    namespace: str
    page: int | None = None
    title: str | None = None
    url: str | None = None


class ChunkRecord(BaseModel):
    """A chunk as persisted in the vector store."""

    id: str
    text: str
    embedding: list[float]
    metadata: ChunkMetadata


class ScoredChunk(BaseModel):
    """A stored chunk paired with its similarity to a query."""

    record: ChunkRecord
    score: float


class ChatTurn(BaseModel):
    """A single message of the conversation, passed per request.

    Attributes:
        role: The speaker, 'user' or 'assistant'.
        content: The message text.
    """

    role: Literal["user", "assistant"]
    content: str


class QueryRequest(BaseModel):
    """Request payload for the RAG chat endpoint.

    Attributes:
        question: The user's question.
        history: Earlier turns of this conversation, oldest first.
    """

    question: str = Field(..., min_length=1)
    history: list[ChatTurn] = Field(default_factory=list)

    @field_validator("question", mode="before")
    @classmethod
    def strip_question(cls, v: str) -> str:
        """Strip whitespace from question before validation."""
        return _strip(v)


class ChatStreamRequest(BaseModel):
    """Request payload for the SSE chat endpoint.

    Either ``question`` or a ``messages`` transcript ending in a user turn
    must be present; a bare question is treated as a one-turn transcript.
    """

    question: str | None = None
    messages: list[ChatTurn] = Field(default_factory=list)

    @field_validator("question", mode="before")
    @classmethod
    def strip_question(cls, v: str | None) -> str | None:
        return _strip(v) or None

    @model_validator(mode="after")
    def require_question(self) -> "ChatStreamRequest":
        if self.question is None:
            user_turns = [t for t in self.messages if t.role == "user" and t.content.strip()]
            if not user_turns:
                raise ValueError("Missing `question` or `messages` in request body.")
            self.question = user_turns[-1].content.strip()
        return self


class AnswerRequest(BaseModel):
    """Request payload for the non-streaming answer endpoint."""

    question: str = Field(..., min_length=1)
    k: int = Field(default=15, ge=1, le=50)

    @field_validator("question", mode="before")
    @classmethod
    def strip_question(cls, v: str) -> str:
        return _strip(v)


class UploadSource(BaseModel):
    """A file handed to ingestion as raw bytes."""

    name: str = Field(..., min_length=1)
    data: bytes
    namespace: str | None = None

    @field_validator("name", "namespace", mode="before")
    @classmethod
    def strip_names(cls, v: str | None) -> str | None:
        return _strip(v)


class EmbedRequest(BaseModel):
    """Validated file ingestion request."""

    namespace: str = Field(..., min_length=1)
    uploads: list[UploadSource] = Field(..., min_length=1)
    replace: bool = False

    @field_validator("namespace", mode="before")
    @classmethod
    def strip_namespace(cls, v: str) -> str:
        return _strip(v)


class UrlEmbedRequest(BaseModel):
    """URL ingestion request; ``url`` and ``urls`` may both be given."""

    url: str | None = None
    urls: list[str] | None = None
    namespace: str | None = None
    replace: bool = False

    def requested_urls(self) -> list[str]:
        """All URLs in request order, ``urls`` before ``url``."""
        requested = list(self.urls or [])
        if self.url:
            requested.append(self.url)
        return requested


class UploadResult(BaseModel):
    """Outcome of ingesting one uploaded file."""

    source: str
    namespace: str
    added: int = 0
    pages: int | None = None
    uploaded: bool | None = None
    error: str | None = None


class UrlResult(BaseModel):
    """Outcome of ingesting one web page."""

    url: str
    namespace: str
    added: int = 0
    chunks: int | None = None
    title: str | None = None
    error: str | None = None


class IngestionReport(BaseModel):
    """Aggregate result of an ingestion request."""

    model_config = ConfigDict(populate_by_name=True)

    total_added: int = Field(0, alias="totalAdded")
    chunk_size: int = Field(..., alias="chunkSize")
    chunk_overlap: int = Field(..., alias="chunkOverlap")
    results: list[UploadResult | UrlResult] = Field(default_factory=list)


class NamespaceDeleteResponse(BaseModel):
    """Result of dropping every chunk of a namespace."""

    namespace: str
    deleted: int


class RetrievedDoc(BaseModel):
    """A retrieved chunk as returned by the answer endpoint."""

    id: str
    text: str
    score: float
    metadata: ChunkMetadata


class AnswerResponse(BaseModel):
    """Non-streaming answer with the chunks it was grounded on."""

    model_config = ConfigDict(populate_by_name=True)

    retrieved_docs: list[RetrievedDoc] = Field(default_factory=list, alias="retrievedDocs")
    answer: str
