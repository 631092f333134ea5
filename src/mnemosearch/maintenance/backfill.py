"""
Periodic repair of missing embeddings.

Embeddings are computed off the write path and may fail or be dropped. This
job finds non-archived memories with no stored embedding and fills them in.
"""

from __future__ import annotations

import logging
import time

from ..core.models import BackfillReport, Memory
from ..embeddings.codec import serialize
from ..embeddings.provider import EmbeddingProvider
from ..errors import MnemosearchError
from ..store.logging import elapsed_ms, log_context
from ..store.protocols import MemoryRecordStore

logger = logging.getLogger(__name__)

_COMPONENT = "embedding-backfill"


class EmbeddingBackfillJob:
    def __init__(
        self,
        store: MemoryRecordStore,
        provider: EmbeddingProvider,
        *,
        limit: int = 100,
        batch_size: int = 50,
    ) -> None:
        self.store = store
        self.provider = provider
        self.limit = limit
        self.batch_size = batch_size

    async def run(self) -> BackfillReport:
        """Embed up to ``limit`` memories in sub-batches. Never raises."""
        start = time.perf_counter()
        try:
            memories = await self.store.list_missing_embeddings(self.limit)
        except MnemosearchError:
            logger.exception("Backfill could not list memories", extra=log_context(_COMPONENT))
            return BackfillReport(duration_ms=elapsed_ms(start))

        report = BackfillReport(total=len(memories))
        if not memories:
            report.duration_ms = elapsed_ms(start)
            logger.debug("Backfill found nothing to embed", extra=log_context(_COMPONENT))
            return report

        for offset in range(0, len(memories), self.batch_size):
            batch = memories[offset : offset + self.batch_size]
            try:
                embedded = await self._run_batch(batch)
            except Exception:
                logger.exception(
                    "Backfill batch failed",
                    extra=log_context(_COMPONENT, batch_offset=offset, batch_size=len(batch)),
                )
                embedded = 0
            report.embedded += embedded
            report.failed += len(batch) - embedded

        report.duration_ms = elapsed_ms(start)
        logger.info(
            "Embedding backfill: %d/%d embedded",
            report.embedded,
            report.total,
            extra=log_context(
                _COMPONENT,
                duration_ms=report.duration_ms,
                total=report.total,
                embedded=report.embedded,
                failed=report.failed,
            ),
        )
        return report

    async def _run_batch(self, batch: list[Memory]) -> int:
        vectors = await self.provider.embed_batch([memory.embedding_text() for memory in batch])
        embedded = 0
        for memory, vector in zip(batch, vectors):
            if vector is None:
                continue
            try:
                if await self.store.update_embedding(
                    memory.memory_id, serialize(vector), source_text=memory.embedding_text()
                ):
                    embedded += 1
            except MnemosearchError:
                logger.warning(
                    "Failed to persist embedding for memory %s",
                    memory.memory_id,
                    exc_info=True,
                    extra=log_context(
                        _COMPONENT, memory_id=memory.memory_id, project_id=memory.project_id
                    ),
                )
        return embedded
