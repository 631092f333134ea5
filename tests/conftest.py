import sqlite3

import pytest

from mnemosearch.config import SearchConfig
from mnemosearch.core.models import Memory

from .fakes import DIM, HashingEmbeddings


def _fts5_available() -> bool:
    conn = sqlite3.connect(":memory:")
    try:
        conn.execute("CREATE VIRTUAL TABLE probe USING fts5(body)")
    except sqlite3.OperationalError:
        return False
    finally:
        conn.close()
    return True


FTS5_AVAILABLE = _fts5_available()


def _raise_on_load():
    raise RuntimeError("cannot load model")


@pytest.fixture
def requires_fts5():
    if not FTS5_AVAILABLE:
        pytest.skip("SQLite build lacks FTS5")


@pytest.fixture
def hashing_embeddings():
    return HashingEmbeddings()


@pytest.fixture
def unloadable_factory():
    return _raise_on_load


@pytest.fixture
def search_config(tmp_path):
    return SearchConfig(db_path=str(tmp_path / "memories.sqlite"), embedding_dim=DIM)


@pytest.fixture
def make_memory():
    def _make(key, content, *, project_id="proj", tags=None, **kwargs):
        return Memory(project_id=project_id, key=key, content=content, tags=tags or [], **kwargs)

    return _make
