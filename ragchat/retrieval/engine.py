"""Query-time retrieval and context assembly."""

import logging

from ragchat.ingestion.embedder import Embedder
from ragchat.models.schemas import ScoredChunk
from ragchat.retrieval.vector_index import VectorIndex

logger = logging.getLogger(__name__)

NO_CONTEXT = "No relevant context found."


def build_context(results: list[ScoredChunk], max_chars: int) -> str:
    """Render retrieved chunks as bullet lines bounded by ``max_chars``.

    Each line reads ``- (p.<page>) <text>`` with ``?`` for unknown pages.
    Truncation is a plain substring cut and may end mid-sentence.
    """
    lines = []
    for item in results:
        page = item.record.metadata.page
        lines.append(f"- (p.{page if page is not None else '?'}) {item.record.text}")
    context = "\n".join(lines)
    return context[:max_chars] if len(context) > max_chars else context


class RetrievalEngine:
    """Embeds queries and ranks stored chunks against them.

    Args:
        embedder: Embedding service client.
        index: Vector index to search.
    """

    def __init__(self, embedder: Embedder, index: VectorIndex) -> None:
        self._embedder = embedder
        self._index = index

    async def retrieve(
        self, query: str, k: int, namespace: str | None = None
    ) -> list[ScoredChunk]:
        """Return up to ``k`` chunks with a non-zero score, best first."""
        vector = await self._embedder.embed_query(query)
        results = await self._index.search(vector, k, namespace=namespace)
        return [item for item in results if item.score != 0.0]

    async def build_context(
        self, query: str, k: int, max_chars: int, namespace: str | None = None
    ) -> tuple[str, list[ScoredChunk]]:
        """Retrieve and render the context window for a query.

        Returns:
            The context text (empty when nothing relevant was found) and the
            chunks it was built from.
        """
        results = await self.retrieve(query, k, namespace=namespace)
        context = build_context(results, max_chars)
        logger.info(
            f"RAG: chunks={len(results)} contextChars={len(context)} budget={max_chars}"
        )
        return context, results
