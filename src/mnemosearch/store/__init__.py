from __future__ import annotations

from .lexical import SQLiteLexicalIndex, build_match_query
from .protocols import CommitListener, MemoryRecordStore, WriteHook
from .sqlite_store import SQLiteMemoryStore

__all__ = [
    "CommitListener",
    "MemoryRecordStore",
    "SQLiteLexicalIndex",
    "SQLiteMemoryStore",
    "WriteHook",
    "build_match_query",
]
