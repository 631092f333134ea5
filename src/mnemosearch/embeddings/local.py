from __future__ import annotations

import asyncio

import numpy as np
from langchain_core.embeddings.embeddings import Embeddings

from ..config import DEFAULT_EMBEDDING_MODEL
from ..errors import DependencyError


class LocalSentenceTransformerEmbeddings(Embeddings):
    """Mean-pooled, L2-normalized sentence embeddings computed in-process."""

    def __init__(
        self,
        model_name: str = DEFAULT_EMBEDDING_MODEL,
        *,
        device: str = "cpu",
        normalize: bool = True,
        batch_size: int = 32,
    ) -> None:
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as exc:
            raise DependencyError(
                "sentence-transformers is required for local embeddings. "
                "Install mnemosearch with the 'local' extra.",
                dependency="sentence-transformers",
            ) from exc
        self.model_name = model_name
        self.model = SentenceTransformer(model_name, device=device)
        self.normalize = normalize
        self.batch_size = batch_size

    @property
    def dimension(self) -> int | None:
        getter = getattr(self.model, "get_sentence_embedding_dimension", None)
        return getter() if callable(getter) else None

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        embeddings = self._encode(texts)
        return [vector.tolist() for vector in embeddings]

    def embed_query(self, text: str) -> list[float]:
        embeddings = self.embed_documents([text])
        return embeddings[0] if embeddings else []

    async def aembed_query(self, text: str) -> list[float]:
        return await asyncio.to_thread(self.embed_query, text)

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        return await asyncio.to_thread(self.embed_documents, texts)

    def _encode(self, texts: list[str]) -> np.ndarray:
        embeddings = np.asarray(
            self.model.encode(
                texts,
                batch_size=self.batch_size,
                convert_to_numpy=True,
                show_progress_bar=False,
            ),
            dtype=np.float32,
        )
        if embeddings.ndim == 1:
            embeddings = embeddings.reshape(1, -1)
        if self.normalize:
            norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
            norms[norms == 0] = 1.0
            embeddings = embeddings / norms
        return embeddings
