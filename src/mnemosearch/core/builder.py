from __future__ import annotations

from ..config import SearchConfig
from ..embeddings.provider import EmbeddingProvider, EmbeddingsFactory
from ..store.lexical import SQLiteLexicalIndex
from ..store.sqlite_store import SQLiteMemoryStore
from .engine import HybridSearchEngine


def build_engine(
    config: SearchConfig | None = None,
    *,
    embeddings_factory: EmbeddingsFactory | None = None,
    store: SQLiteMemoryStore | None = None,
) -> HybridSearchEngine:
    """Wire a store, its lexical index and an embedding provider together.

    The lexical index is registered as a write hook on the store and the
    engine as a commit listener, so writes through ``engine.store`` keep both
    indexes current. Call ``await engine.start()`` before use.
    """
    config = config or SearchConfig()
    store = store or SQLiteMemoryStore(config.db_path)
    lexical_index = SQLiteLexicalIndex(store)
    provider = EmbeddingProvider.from_config(config, embeddings_factory)
    engine = HybridSearchEngine(store, lexical_index, provider, config=config)
    store.add_commit_listener(engine.handle_memory_written)
    return engine
