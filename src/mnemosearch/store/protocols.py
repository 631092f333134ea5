from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from typing import Any, Literal, Protocol, runtime_checkable

from ..core.models import Memory

WriteKind = Literal["insert", "update"]


@runtime_checkable
class SupportsClose(Protocol):
    async def close(self) -> None: ...


@runtime_checkable
class MemoryRecordStore(SupportsClose, Protocol):
    """What the retrieval core needs from the primary record store."""

    async def get_memory(self, memory_id: str) -> Memory | None: ...

    async def list_project_memories(self, project_id: str) -> list[Memory]: ...

    async def list_embedded(self, project_id: str) -> list[tuple[str, str]]: ...

    async def list_missing_embeddings(self, limit: int) -> list[Memory]: ...

    async def update_embedding(
        self, memory_id: str, embedding: str | None, *, source_text: str | None = None
    ) -> bool: ...


@runtime_checkable
class WriteHook(Protocol):
    """Synchronous write-path hook run inside the store's write transaction.

    ``record`` / ``old`` / ``new`` hold the column values exactly as stored,
    keyed by column name.
    """

    def on_insert(self, conn: sqlite3.Connection, row_id: int, record: Mapping[str, Any]) -> None: ...

    def on_update(
        self,
        conn: sqlite3.Connection,
        row_id: int,
        old: Mapping[str, Any],
        new: Mapping[str, Any],
    ) -> None: ...

    def on_delete(self, conn: sqlite3.Connection, row_id: int, old: Mapping[str, Any]) -> None: ...


@runtime_checkable
class CommitListener(Protocol):
    """Called after a write commits; must return promptly and never raise."""

    def __call__(self, memory: Memory, kind: WriteKind) -> None: ...
