"""
Embedding provider with lazy, single-flight model loading.

The provider is the boundary past which model failures never propagate:
every public method returns ``None`` (or a list containing ``None``) when the
model cannot be loaded or a call into it fails.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from functools import partial

import numpy as np
from langchain_core.embeddings.embeddings import Embeddings

from ..config import DEFAULT_EMBEDDING_DIM, DEFAULT_EMBEDDING_MODEL, SearchConfig
from ..store.logging import elapsed_ms, log_context
from .local import LocalSentenceTransformerEmbeddings

logger = logging.getLogger(__name__)

_COMPONENT = "embedding-provider"

EmbeddingsFactory = Callable[[], Embeddings]


class EmbeddingProvider:
    """Turns text into fixed-length float32 vectors.

    Args:
        factory: Zero-argument callable building the underlying
            ``Embeddings`` model. It runs at most once per successful load,
            in a worker thread.
        dimension: Fixed output dimension of the model. Vectors of any other
            length are treated as unavailable.
    """

    def __init__(
        self,
        factory: EmbeddingsFactory | None = None,
        *,
        dimension: int = DEFAULT_EMBEDDING_DIM,
        model_name: str = DEFAULT_EMBEDDING_MODEL,
        device: str = "cpu",
    ) -> None:
        self._factory: EmbeddingsFactory = factory or partial(
            LocalSentenceTransformerEmbeddings, model_name, device=device
        )
        self.dimension = dimension
        self._model: Embeddings | None = None
        self._loading: asyncio.Task[Embeddings | None] | None = None

    @classmethod
    def from_config(
        cls, config: SearchConfig, factory: EmbeddingsFactory | None = None
    ) -> EmbeddingProvider:
        return cls(
            factory,
            dimension=config.embedding_dim,
            model_name=config.embedding_model,
            device=config.device,
        )

    @property
    def available(self) -> bool:
        """True once a model has been loaded successfully."""
        return self._model is not None

    def reset(self) -> None:
        """Forget the loaded model so the next call loads it again."""
        self._model = None
        self._loading = None

    async def _get_model(self) -> Embeddings | None:
        if self._model is not None:
            return self._model
        if self._loading is None:
            self._loading = asyncio.create_task(self._load())
        return await asyncio.shield(self._loading)

    async def _load(self) -> Embeddings | None:
        start = time.perf_counter()
        try:
            model = await asyncio.to_thread(self._factory)
        except Exception:
            # Forget the attempt so that a later call may retry the load.
            self._loading = None
            logger.warning(
                "Failed to load embedding model",
                exc_info=True,
                extra=log_context(_COMPONENT, duration_ms=elapsed_ms(start)),
            )
            return None
        self._model = model
        logger.info(
            "Loaded embedding model",
            extra=log_context(_COMPONENT, duration_ms=elapsed_ms(start)),
        )
        return model

    async def embed(self, text: str) -> np.ndarray | None:
        model = await self._get_model()
        if model is None:
            return None
        try:
            raw = await model.aembed_query(text)
        except Exception:
            logger.warning(
                "Embedding generation failed", exc_info=True, extra=log_context(_COMPONENT)
            )
            return None
        return self._coerce(np.asarray(raw, dtype=np.float32).reshape(-1))

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray | None]:
        """Embed several texts with one model call when possible.

        The model output is flattened and sliced into ``dimension``-sized
        chunks; texts whose slice runs past the end of the output get None.
        If the batched call raises, each text is embedded on its own.
        """
        if not texts:
            return []
        if len(texts) == 1:
            return [await self.embed(texts[0])]

        model = await self._get_model()
        if model is None:
            return [None] * len(texts)

        try:
            raw = await model.aembed_documents(texts)
            flat = np.asarray(raw, dtype=np.float32).reshape(-1)
        except Exception:
            logger.warning(
                "Batch embedding failed, falling back to sequential",
                exc_info=True,
                extra=log_context(_COMPONENT, batch_size=len(texts)),
            )
            return [await self.embed(text) for text in texts]

        vectors: list[np.ndarray | None] = []
        for i in range(len(texts)):
            start = i * self.dimension
            end = start + self.dimension
            if end <= flat.shape[0]:
                vectors.append(self._coerce(flat[start:end].copy()))
            else:
                vectors.append(None)
        return vectors

    def _coerce(self, vector: np.ndarray) -> np.ndarray | None:
        if vector.shape[0] != self.dimension:
            logger.warning(
                "Embedding model returned %d dimensions, expected %d",
                vector.shape[0],
                self.dimension,
                extra=log_context(_COMPONENT),
            )
            return None
        if not np.all(np.isfinite(vector)):
            logger.warning("Embedding model returned non-finite values", extra=log_context(_COMPONENT))
            return None
        return vector
