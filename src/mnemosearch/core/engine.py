"""
Hybrid retrieval over a project's memories.

Keyword (FTS5) and semantic (embedding) rankings are computed concurrently and
fused with Reciprocal Rank Fusion. Either side may be unavailable; the engine
then degrades to whichever ranking it has, and to an empty result when it has
neither. Failures never surface as exceptions from the search path.
"""

from __future__ import annotations

import asyncio
import logging
import time

from ..config import SearchConfig
from ..embeddings.codec import serialize, vector_from_blob
from ..embeddings.provider import EmbeddingProvider
from ..errors import MnemosearchError
from ..maintenance.backfill import EmbeddingBackfillJob
from ..store.lexical import SQLiteLexicalIndex
from ..store.logging import elapsed_ms, log_context
from ..store.protocols import MemoryRecordStore, WriteKind
from ._internal.embedding_queue import EmbeddingQueue, EmbeddingRequest
from .fusion import rrf_fuse
from .intent import classify_search_intent, get_intent_weights
from .models import BackfillReport, Memory, SearchResponse
from .scoring import extract_words, jaccard_similarity
from .vector_search import VectorSearch

logger = logging.getLogger(__name__)

_COMPONENT = "hybrid-search"


class HybridSearchEngine:
    def __init__(
        self,
        store: MemoryRecordStore,
        lexical_index: SQLiteLexicalIndex,
        provider: EmbeddingProvider,
        *,
        config: SearchConfig | None = None,
        vector_search: VectorSearch | None = None,
    ) -> None:
        self.config = config or SearchConfig()
        self.store = store
        self.lexical_index = lexical_index
        self.provider = provider
        self.vector_search = vector_search or VectorSearch(
            store, provider, similarity_floor=self.config.similarity_floor
        )
        self.backfill_job = EmbeddingBackfillJob(
            store,
            provider,
            limit=self.config.backfill_limit,
            batch_size=self.config.backfill_batch_size,
        )
        self.queue = EmbeddingQueue(self._embed_and_store, maxsize=self.config.queue_maxsize)

    async def start(self) -> None:
        """Create the lexical index and start the embedding worker."""
        await self.lexical_index.ensure_index()
        self.queue.start()

    async def close(self) -> None:
        await self.queue.shutdown(drain=True)
        await self.store.close()

    async def hybrid_search(self, project_id: str, query: str, limit: int = 10) -> SearchResponse:
        """Rank a project's memories for ``query``.

        Both rankers see a candidate pool of ``max(limit, candidate_pool)``
        so that fusion has depth to work with; the fused list is then cut to
        ``limit``.
        """
        start = time.perf_counter()
        classification = classify_search_intent(query)
        weights = get_intent_weights(classification.intent)
        pool = max(limit, self.config.candidate_pool)

        lexical, semantic = await asyncio.gather(
            self._safe_lexical(project_id, query, pool),
            self._safe_vector(project_id, query, pool),
        )
        available = [ranking for ranking in (lexical, semantic) if ranking is not None]
        memory_ids = rrf_fuse(available, limit, k=self.config.rrf_k) if available else []

        logger.info(
            "hybrid search intent=%s returned=%d",
            classification.intent.value,
            len(memory_ids),
            extra=log_context(
                _COMPONENT,
                project_id=project_id,
                duration_ms=elapsed_ms(start),
                lexical_available=lexical is not None,
                semantic_available=semantic is not None,
            ),
        )
        return SearchResponse(
            memory_ids=memory_ids,
            classification=classification,
            weights=weights,
            lexical_available=lexical is not None,
            semantic_available=semantic is not None,
        )

    async def _safe_lexical(self, project_id: str, query: str, limit: int) -> list[str] | None:
        try:
            return await self.lexical_index.search(project_id, query, limit)
        except Exception:
            logger.exception("Lexical search raised", extra=log_context(_COMPONENT, project_id=project_id))
            return None

    async def _safe_vector(self, project_id: str, query: str, limit: int) -> list[str] | None:
        try:
            return await self.vector_search.search(project_id, query, limit)
        except Exception:
            logger.exception("Vector search raised", extra=log_context(_COMPONENT, project_id=project_id))
            return None

    async def similar(self, memory_id: str, limit: int = 10) -> list[str]:
        """Memories resembling ``memory_id`` within its project.

        Uses the reference memory's own embedding when it has a usable one,
        otherwise word overlap (Jaccard) against every other memory in the
        project. Unknown memories yield an empty list.
        """
        try:
            reference = await self.store.get_memory(memory_id)
        except MnemosearchError:
            logger.warning(
                "Could not load memory for similarity",
                exc_info=True,
                extra=log_context(_COMPONENT, memory_id=memory_id),
            )
            return []
        if reference is None or limit <= 0:
            return []

        vector = vector_from_blob(
            reference.embedding, self.provider.dimension, memory_id=memory_id
        )
        if vector is not None:
            ranked = await self.vector_search.search_by_vector(
                reference.project_id, vector, limit, exclude_ids={memory_id}
            )
            if ranked is not None:
                return ranked
        return await self._similar_by_words(reference, limit)

    async def _similar_by_words(self, reference: Memory, limit: int) -> list[str]:
        try:
            candidates = await self.store.list_project_memories(reference.project_id)
        except MnemosearchError:
            logger.warning(
                "Could not list memories for similarity",
                exc_info=True,
                extra=log_context(_COMPONENT, project_id=reference.project_id),
            )
            return []

        reference_words = extract_words(reference.content)
        if not reference_words:
            return []
        scored: list[tuple[str, float]] = []
        for candidate in candidates:
            if candidate.memory_id == reference.memory_id:
                continue
            score = round(
                jaccard_similarity(reference_words, extract_words(candidate.content)), 2
            )
            if score >= self.config.similar_fallback_threshold:
                scored.append((candidate.memory_id, score))
        scored.sort(key=lambda item: item[1], reverse=True)
        return [memory_id for memory_id, _ in scored[:limit]]

    async def rebuild_lexical_index(self) -> bool:
        return await self.lexical_index.rebuild()

    async def run_embedding_backfill(self) -> BackfillReport:
        return await self.backfill_job.run()

    # Write path

    def handle_memory_written(self, memory: Memory, kind: WriteKind = "insert") -> None:
        """Commit listener: schedule embedding of a freshly written memory.

        Returns immediately; the write has already committed.
        """
        if memory.is_archived:
            return
        self.queue.submit(EmbeddingRequest(memory.memory_id, memory.embedding_text()))

    async def _embed_and_store(self, request: EmbeddingRequest) -> None:
        vector = await self.provider.embed(request.text)
        if vector is None:
            logger.debug(
                "Embedding unavailable, leaving memory for backfill",
                extra=log_context(_COMPONENT, memory_id=request.memory_id),
            )
            return
        try:
            await self.store.update_embedding(
                request.memory_id, serialize(vector), source_text=request.text
            )
        except MnemosearchError:
            logger.warning(
                "Failed to persist embedding",
                exc_info=True,
                extra=log_context(_COMPONENT, memory_id=request.memory_id),
            )
