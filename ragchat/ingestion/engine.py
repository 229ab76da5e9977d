"""Ingestion pipeline: extract, normalize, chunk, embed, upsert.

Every source is processed independently. A failing source is recorded in
the report with ``added: 0`` and its error; it never aborts its siblings.
Sources run one after another so ``results`` follows input order.
"""

import logging

import httpx

from ragchat.errors import EmptyTextError
from ragchat.ingestion.embedder import Embedder
from ragchat.ingestion.ids import build_ids
from ragchat.ingestion.sources import (
    ExtractedDocument,
    ExtractedPage,
    extract_upload,
    fetch_page,
)
from ragchat.models.schemas import (
    ChunkMetadata,
    ChunkRecord,
    IngestionReport,
    UploadResult,
    UploadSource,
    UrlResult,
)
from ragchat.parsing.chunker import TextChunker
from ragchat.parsing.normalize import normalize_text
from ragchat.retrieval.vector_index import VectorIndex

logger = logging.getLogger(__name__)

DEFAULT_URL_NAMESPACE = "website"


class IngestionEngine:
    """Loads documents into the vector index.

    Args:
        embedder: Embedding service client.
        index: Target vector index.
        chunker: Chunking configuration; defaults to 500/80.
    """

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        chunker: TextChunker | None = None,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self._chunker = chunker or TextChunker()

    def _report(self) -> IngestionReport:
        return IngestionReport(
            chunk_size=self._chunker.chunk_size,
            chunk_overlap=self._chunker.chunk_overlap,
        )

    async def _store(
        self,
        document: ExtractedDocument,
        source: str,
        namespace: str,
        url: str | None = None,
    ) -> int:
        """Chunk, embed and upsert one extracted document.

        Returns:
            Number of chunks written.

        Raises:
            EmptyTextError: If normalization leaves nothing to chunk.
            EmbeddingError: If the embedding service fails.
        """
        pieces: list[tuple[str, int | None]] = []
        for page in document.pages:
            for text in self._chunker.split(normalize_text(page.text)):
                if text.strip():
                    pieces.append((text, page.number))

        if not pieces:
            raise EmptyTextError("No extractable text")

        ids = build_ids(len(pieces), namespace)
        vectors = await self._embedder.embed_documents([text for text, _ in pieces])

        records = [
            ChunkRecord(
                id=chunk_id,
                text=text,
                embedding=vector,
                metadata=ChunkMetadata(
                    source=source,
                    namespace=namespace,
                    page=page,
                    title=document.title,
                    url=url,
                ),
            )
            for chunk_id, (text, page), vector in zip(ids, pieces, vectors)
        ]
        await self._index.add(records)
        return len(records)

    async def ingest_uploads(
        self,
        uploads: list[UploadSource],
        namespace: str,
        replace: bool = False,
    ) -> IngestionReport:
        """Ingest uploaded files.

        Args:
            uploads: Files to ingest; a per-file namespace overrides ``namespace``.
            namespace: Default target namespace.
            replace: Drop the namespace first instead of appending to it.

        Returns:
            Aggregate report with one result per upload, in order.
        """
        report = self._report()
        if replace:
            await self._replace({u.namespace or namespace for u in uploads})

        for upload in uploads:
            ns = upload.namespace or namespace
            try:
                document = extract_upload(upload)
                added = await self._store(document, source=upload.name, namespace=ns)
            except Exception as e:
                logger.error(f"Embedding error for source {upload.name}: {e}")
                report.results.append(
                    UploadResult(
                        source=upload.name,
                        namespace=ns,
                        added=0,
                        error=_reason(e, "Failed to embed source"),
                    )
                )
                continue

            report.total_added += added
            report.results.append(
                UploadResult(
                    source=upload.name,
                    namespace=ns,
                    added=added,
                    pages=len(document.pages),
                    uploaded=True,
                )
            )
            logger.info(f"Ingested {upload.name} into {ns}: {added} chunks")

        return report

    async def ingest_urls(
        self,
        urls: list[str],
        client: httpx.AsyncClient,
        namespace: str = DEFAULT_URL_NAMESPACE,
        replace: bool = False,
    ) -> IngestionReport:
        """Fetch and ingest web pages.

        Args:
            urls: Already validated http(s) URLs.
            client: HTTP client used for fetching.
            namespace: Target namespace for every page.
            replace: Drop the namespace first instead of appending to it.

        Returns:
            Aggregate report with one result per URL, in order.
        """
        report = self._report()
        if replace:
            await self._replace({namespace})

        for url in urls:
            try:
                page = await fetch_page(client, url)
                if not page.text.strip():
                    report.results.append(
                        UrlResult(
                            url=url,
                            namespace=namespace,
                            added=0,
                            error="No extractable text from page",
                        )
                    )
                    continue
                document = ExtractedDocument(
                    pages=[ExtractedPage(text=page.text)], title=page.title or None
                )
                added = await self._store(document, source=url, namespace=namespace, url=url)
            except Exception as e:
                logger.error(f"Web embed error for {url}: {e}")
                report.results.append(
                    UrlResult(
                        url=url,
                        namespace=namespace,
                        added=0,
                        error=_reason(e, "Failed to embed URL"),
                    )
                )
                continue

            report.total_added += added
            report.results.append(
                UrlResult(
                    url=url,
                    namespace=namespace,
                    added=added,
                    chunks=added,
                    title=page.title or None,
                )
            )
            logger.info(f"Ingested {url} into {namespace}: {added} chunks")

        return report

    async def _replace(self, namespaces: set[str]) -> None:
        for ns in sorted(namespaces):
            deleted = await self._index.delete_namespace(ns)
            logger.info(f"Replaced namespace {ns}: dropped {deleted} chunks")


def _reason(error: Exception, fallback: str) -> str:
    return str(error) or fallback
