from __future__ import annotations

import logging
import time
from collections.abc import Container

import numpy as np

from ..embeddings.codec import vector_from_blob
from ..embeddings.provider import EmbeddingProvider
from ..errors import StoreError
from ..store.logging import elapsed_ms, log_context
from ..store.protocols import MemoryRecordStore
from .scoring import cosine_similarity

logger = logging.getLogger(__name__)

_COMPONENT = "vector-search"


class VectorSearch:
    """Brute-force cosine scan over a project's stored embeddings.

    Args:
        store: Primary record store to read embeddings from.
        provider: Embeds the query text.
        similarity_floor: Only memories scoring strictly above this are kept.
    """

    def __init__(
        self,
        store: MemoryRecordStore,
        provider: EmbeddingProvider,
        *,
        similarity_floor: float = 0.3,
    ) -> None:
        self.store = store
        self.provider = provider
        self.similarity_floor = similarity_floor

    async def search(self, project_id: str, query: str, limit: int) -> list[str] | None:
        """Return memory ids ranked by similarity to ``query``, or None if
        the embedding model is unavailable."""
        query_vector = await self.provider.embed(query)
        if query_vector is None:
            return None
        return await self.search_by_vector(project_id, query_vector, limit)

    async def search_by_vector(
        self,
        project_id: str,
        vector: np.ndarray,
        limit: int,
        exclude_ids: Container[str] = (),
    ) -> list[str] | None:
        if limit <= 0:
            return []
        start = time.perf_counter()
        try:
            rows = await self.store.list_embedded(project_id)
        except StoreError:
            logger.warning(
                "Could not read embeddings",
                exc_info=True,
                extra=log_context(_COMPONENT, project_id=project_id),
            )
            return None

        scored: list[tuple[str, float]] = []
        skipped = 0
        for memory_id, blob in rows:
            if memory_id in exclude_ids:
                continue
            candidate = vector_from_blob(blob, self.provider.dimension, memory_id=memory_id)
            if candidate is None:
                skipped += 1
                continue
            similarity = cosine_similarity(vector, candidate)
            if similarity > self.similarity_floor:
                scored.append((memory_id, similarity))

        # Stable sort keeps table order among equal scores.
        scored.sort(key=lambda item: item[1], reverse=True)
        logger.debug(
            "vector scan done scanned=%d matched=%d skipped=%d",
            len(rows),
            len(scored),
            skipped,
            extra=log_context(_COMPONENT, project_id=project_id, duration_ms=elapsed_ms(start)),
        )
        return [memory_id for memory_id, _ in scored[:limit]]
