"""
Runtime configuration for the retrieval engine.

Values default to the constants the engine was tuned with and can be
overridden through ``MNEMOSEARCH_*`` environment variables.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from .errors import ConfigurationError

_T = TypeVar("_T")

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_EMBEDDING_DIM = 384


@dataclass(frozen=True)
class SearchConfig:
    """Complete configuration for a search engine instance."""

    # Storage
    db_path: str = ".mnemosearch/memories.sqlite"

    # Embeddings
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dim: int = DEFAULT_EMBEDDING_DIM
    device: str = "cpu"

    # Retrieval
    similarity_floor: float = 0.3
    rrf_k: int = 60
    candidate_pool: int = 50
    similar_fallback_threshold: float = 0.6

    # Maintenance
    backfill_limit: int = 100
    backfill_batch_size: int = 50
    backfill_cron: str = "0 */6 * * *"
    queue_maxsize: int = 100

    def __post_init__(self) -> None:
        if self.embedding_dim <= 0:
            raise ConfigurationError("embedding_dim must be positive")
        if not -1.0 <= self.similarity_floor < 1.0:
            raise ConfigurationError("similarity_floor must be in [-1, 1)")
        if self.rrf_k < 0:
            raise ConfigurationError("rrf_k must be non-negative")
        if self.candidate_pool <= 0:
            raise ConfigurationError("candidate_pool must be positive")
        if self.backfill_limit <= 0 or self.backfill_batch_size <= 0:
            raise ConfigurationError("backfill sizes must be positive")
        if len(self.backfill_cron.split()) != 5:
            raise ConfigurationError(
                f"backfill_cron must have five fields, got {self.backfill_cron!r}"
            )
        if self.queue_maxsize < 0:
            raise ConfigurationError("queue_maxsize must be non-negative")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SearchConfig:
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            db_path=env.get("MNEMOSEARCH_DB_PATH") or defaults.db_path,
            embedding_model=env.get("MNEMOSEARCH_EMBEDDING_MODEL") or defaults.embedding_model,
            embedding_dim=_read(env, "MNEMOSEARCH_EMBEDDING_DIM", int, defaults.embedding_dim),
            device=env.get("MNEMOSEARCH_DEVICE") or defaults.device,
            similarity_floor=_read(
                env, "MNEMOSEARCH_SIMILARITY_FLOOR", float, defaults.similarity_floor
            ),
            rrf_k=_read(env, "MNEMOSEARCH_RRF_K", int, defaults.rrf_k),
            candidate_pool=_read(env, "MNEMOSEARCH_CANDIDATE_POOL", int, defaults.candidate_pool),
            backfill_limit=_read(env, "MNEMOSEARCH_BACKFILL_LIMIT", int, defaults.backfill_limit),
            backfill_batch_size=_read(
                env, "MNEMOSEARCH_BACKFILL_BATCH_SIZE", int, defaults.backfill_batch_size
            ),
            backfill_cron=env.get("MNEMOSEARCH_BACKFILL_CRON") or defaults.backfill_cron,
            queue_maxsize=_read(env, "MNEMOSEARCH_QUEUE_MAXSIZE", int, defaults.queue_maxsize),
        )


def _read(env: Mapping[str, str], name: str, cast: Callable[[str], _T], default: _T) -> _T:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from exc
