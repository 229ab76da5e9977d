"""Vector storage behind a small capability interface.

``VectorIndex`` is what the ingestion and retrieval engines depend on.
Search is exact: one bulk fetch, then an O(n) cosine scan in a worker
thread. That scan is the scalability ceiling of this module; an
approximate-nearest-neighbour index only has to provide its own
``search`` to replace it.
"""

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Protocol

import lancedb
import pyarrow as pa
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from ragchat.errors import ConfigurationError
from ragchat.models.schemas import ChunkMetadata, ChunkRecord, ScoredChunk
from ragchat.retrieval.similarity import cosine_similarity

load_dotenv()

logger = logging.getLogger(__name__)


class VectorStoreConfig(BaseModel):
    """Connection settings for the LanceDB vector store.

    Attributes:
        uri: Database location (local directory or remote URI).
        table: Table holding chunk records.
    """

    uri: str = Field(default_factory=lambda: os.getenv("VECTOR_STORE_URI", ""))
    table: str = Field(default_factory=lambda: os.getenv("VECTOR_STORE_TABLE", ""))

    @field_validator("uri", "table")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("required")
        return v.strip()


def get_vector_store_config() -> VectorStoreConfig:
    """Create vector store configuration from environment.

    Raises:
        ConfigurationError: If VECTOR_STORE_URI or VECTOR_STORE_TABLE is unset.
    """
    try:
        return VectorStoreConfig()
    except ValidationError as e:
        raise ConfigurationError(
            "Missing vector store config. Set VECTOR_STORE_URI, VECTOR_STORE_TABLE."
        ) from e


class VectorIndex(Protocol):
    """Storage and nearest-neighbour search over chunk records."""

    async def add(self, records: Sequence[ChunkRecord]) -> None:
        """Upsert records keyed by id."""
        ...

    async def search(
        self, vector: Sequence[float], k: int, namespace: str | None = None
    ) -> list[ScoredChunk]:
        """Return the k best matches, descending by score."""
        ...

    async def delete_namespace(self, namespace: str) -> int:
        """Drop every record of a namespace, returning how many went."""
        ...

    async def count(self) -> int: ...

    async def close(self) -> None: ...


def rank_records(
    records: Sequence[ChunkRecord], vector: Sequence[float], k: int
) -> list[ScoredChunk]:
    """Score every record against ``vector`` and keep the top ``k``.

    The sort is stable, so ties keep storage order across repeated calls.
    """
    scored = [
        ScoredChunk(record=record, score=cosine_similarity(record.embedding, vector))
        for record in records
    ]
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[: max(k, 0)]


class BruteForceSearch:
    """Exact search for indexes that can hand back all their records."""

    async def fetch_all(self, namespace: str | None = None) -> list[ChunkRecord]:
        raise NotImplementedError

    async def search(
        self, vector: Sequence[float], k: int, namespace: str | None = None
    ) -> list[ScoredChunk]:
        records = await self.fetch_all(namespace)
        if not records:
            return []
        # The scan is CPU-bound with no suspension point; keep it off the loop.
        return await asyncio.to_thread(rank_records, records, vector, k)


class InMemoryVectorIndex(BruteForceSearch):
    """Process-local index, ordered by first insertion."""

    def __init__(self) -> None:
        self._records: dict[str, ChunkRecord] = {}

    async def add(self, records: Sequence[ChunkRecord]) -> None:
        for record in records:
            self._records[record.id] = record

    async def fetch_all(self, namespace: str | None = None) -> list[ChunkRecord]:
        return [
            record
            for record in self._records.values()
            if namespace is None or record.metadata.namespace == namespace
        ]

    async def delete_namespace(self, namespace: str) -> int:
        doomed = [rid for rid, r in self._records.items() if r.metadata.namespace == namespace]
        for rid in doomed:
            del self._records[rid]
        return len(doomed)

    async def count(self) -> int:
        return len(self._records)

    async def close(self) -> None:
        return None


CHUNK_SCHEMA = pa.schema(
    [
        pa.field("id", pa.string(), nullable=False),
        pa.field("text", pa.string()),
        pa.field("vector", pa.list_(pa.float32())),
        pa.field("source", pa.string()),
        pa.field("namespace", pa.string()),
        pa.field("page", pa.int32(), nullable=True),
        pa.field("title", pa.string(), nullable=True),
        pa.field("url", pa.string(), nullable=True),
    ]
)


def _to_row(record: ChunkRecord) -> dict:
    meta = record.metadata
    return {
        "id": record.id,
        "text": record.text,
        "vector": record.embedding,
        "source": meta.source,
        "namespace": meta.namespace,
        "page": meta.page,
        "title": meta.title,
        "url": meta.url,
    }


def _from_row(row: dict) -> ChunkRecord:
    return ChunkRecord(
        id=row["id"],
        text=row["text"] or "",
        embedding=row["vector"] or [],
        metadata=ChunkMetadata(
            source=row["source"] or "",
            namespace=row["namespace"] or "",
            page=row.get("page"),
            title=row.get("title"),
            url=row.get("url"),
        ),
    )


def _namespace_filter(namespace: str) -> str:
    escaped = namespace.replace("'", "''")
    return f"namespace = '{escaped}'"


class LanceVectorIndex(BruteForceSearch):
    """Chunk records in a LanceDB table.

    LanceDB's synchronous API is used from worker threads.
    """

    def __init__(self, config: VectorStoreConfig) -> None:
        self._config = config
        self._db = None
        self._table = None

    async def open(self) -> "LanceVectorIndex":
        def _open():
            db = lancedb.connect(self._config.uri)
            table = db.create_table(self._config.table, schema=CHUNK_SCHEMA, exist_ok=True)
            return db, table

        self._db, self._table = await asyncio.to_thread(_open)
        logger.debug(f"Opened vector table {self._config.table} at {self._config.uri}")
        return self

    def _require_table(self):
        if self._table is None:
            raise RuntimeError("LanceVectorIndex is not open")
        return self._table

    async def add(self, records: Sequence[ChunkRecord]) -> None:
        if not records:
            return
        table = self._require_table()
        rows = [_to_row(record) for record in records]

        def _upsert() -> None:
            (
                table.merge_insert("id")
                .when_matched_update_all()
                .when_not_matched_insert_all()
                .execute(rows)
            )

        await asyncio.to_thread(_upsert)

    async def fetch_all(self, namespace: str | None = None) -> list[ChunkRecord]:
        table = self._require_table()
        rows = await asyncio.to_thread(lambda: table.to_arrow().to_pylist())
        return [
            _from_row(row)
            for row in rows
            if namespace is None or row["namespace"] == namespace
        ]

    async def delete_namespace(self, namespace: str) -> int:
        table = self._require_table()
        predicate = _namespace_filter(namespace)

        def _delete() -> int:
            doomed = table.count_rows(predicate)
            if doomed:
                table.delete(predicate)
            return doomed

        return await asyncio.to_thread(_delete)

    async def count(self) -> int:
        table = self._require_table()
        return await asyncio.to_thread(table.count_rows)

    async def close(self) -> None:
        self._table = None
        self._db = None


@asynccontextmanager
async def open_vector_index(
    config: VectorStoreConfig | None = None,
) -> AsyncIterator[VectorIndex]:
    """Open the configured vector store for the duration of one request.

    The index is closed on every exit path, including errors.

    Raises:
        ConfigurationError: Before any I/O, if the store is not configured.
    """
    config = config or get_vector_store_config()
    index = LanceVectorIndex(config)
    await index.open()
    try:
        yield index
    finally:
        await index.close()
