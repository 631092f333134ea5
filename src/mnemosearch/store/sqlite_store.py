from __future__ import annotations

import logging
import re
import sqlite3
import time
from asyncio import Lock
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from ..core.models import Memory
from ..errors import MemoryNotFoundError, StoreError
from ._records import sqlite_memory_from_row, sqlite_record_from_memory
from ._schema import create_sqlite_schema
from .logging import elapsed_ms, log_context
from .protocols import CommitListener, WriteHook, WriteKind

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_]\w*$", re.ASCII)
_UNSET = object()


class SQLiteMemoryStore:
    """Primary record store for memories backed by a single SQLite file.

    Write hooks (the lexical index) run inside each write transaction, so the
    shadow index and the table commit or roll back together. Commit listeners
    (the embedding queue) run after the transaction commits and can never fail
    the write.
    """

    store_type = "sqlite"

    def __init__(
        self,
        db_path: str | Path = ".mnemosearch/memories.sqlite",
        *,
        collection_name: str = "memories",
    ) -> None:
        if not _IDENTIFIER_RE.match(collection_name):
            raise ValueError(
                "collection_name must be a valid SQLite identifier (letters, numbers, underscore)."
            )
        self.db_path = Path(db_path)
        self.collection_name = collection_name
        self._conn: sqlite3.Connection | None = None
        self._initialized = False
        self._init_lock = Lock()
        self._lock = Lock()
        self._write_hooks: list[WriteHook] = []
        self._commit_listeners: list[CommitListener] = []

    def add_write_hook(self, hook: WriteHook) -> None:
        if hook not in self._write_hooks:
            self._write_hooks.append(hook)

    def add_commit_listener(self, listener: CommitListener) -> None:
        if listener not in self._commit_listeners:
            self._commit_listeners.append(listener)

    async def initialize(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            start = time.perf_counter()
            if self.db_path != Path(":memory:"):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                self._conn = sqlite3.connect(self.db_path)
                self._conn.row_factory = sqlite3.Row
                self._conn.execute("PRAGMA journal_mode=WAL")
                self._conn.execute("PRAGMA synchronous=NORMAL")
                create_sqlite_schema(self._conn, collection_name=self.collection_name)
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(
                    "Failed to initialize store", self.store_type, original_error=exc
                ) from exc
            self._initialized = True
            logger.info(
                "Initialized SQLite memory store at %s",
                self.db_path,
                extra=log_context(self.store_type, duration_ms=elapsed_ms(start)),
            )

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SQLiteMemoryStore is not initialized.")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[sqlite3.Connection]:
        """Serialized access to the connection; commits on success."""
        await self.initialize()
        async with self._lock:
            conn = self._require_conn()
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                raise StoreError(
                    f"SQLite operation failed: {exc}", self.store_type, original_error=exc
                ) from exc
            except BaseException:
                conn.rollback()
                raise

    def _fetch_row(self, conn: sqlite3.Connection, memory_id: str) -> sqlite3.Row | None:
        return conn.execute(
            f'SELECT * FROM "{self.collection_name}" WHERE memory_id = ?',
            (memory_id,),
        ).fetchone()

    def _notify(self, memory: Memory, kind: WriteKind) -> None:
        for listener in self._commit_listeners:
            try:
                listener(memory, kind)
            except Exception:
                logger.exception(
                    "Commit listener failed for memory %s",
                    memory.memory_id,
                    extra=log_context(self.store_type, memory_id=memory.memory_id),
                )

    async def create_memory(self, memory: Memory) -> Memory:
        start = time.perf_counter()
        record = sqlite_record_from_memory(memory)
        columns = list(record.keys())
        placeholders = ", ".join("?" for _ in columns)
        try:
            async with self.transaction() as conn:
                cursor = conn.execute(
                    f'INSERT INTO "{self.collection_name}" ({", ".join(columns)}) '
                    f"VALUES ({placeholders})",
                    list(record.values()),
                )
                row_id = int(cursor.lastrowid or 0)
                for hook in self._write_hooks:
                    hook.on_insert(conn, row_id, record)
        except StoreError as exc:
            exc.memory_id = memory.memory_id
            logger.exception(
                "Failed to store memory %s",
                memory.memory_id,
                extra=log_context(
                    self.store_type,
                    memory_id=memory.memory_id,
                    project_id=memory.project_id,
                    duration_ms=elapsed_ms(start),
                ),
            )
            raise

        logger.info(
            "Stored memory %s",
            memory.memory_id,
            extra=log_context(
                self.store_type,
                memory_id=memory.memory_id,
                project_id=memory.project_id,
                duration_ms=elapsed_ms(start),
            ),
        )
        self._notify(memory, "insert")
        return memory

    async def update_memory(
        self,
        memory_id: str,
        *,
        key: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
        archived_at: datetime | None | object = _UNSET,
    ) -> Memory:
        """Update a memory in place.

        When key, content or tags change the stored embedding is cleared in
        the same transaction, so a failed re-embedding leaves the memory
        visible to the backfill job instead of keeping a stale vector.

        Raises:
            MemoryNotFoundError: if no memory has this id.
        """
        start = time.perf_counter()
        async with self.transaction() as conn:
            row = self._fetch_row(conn, memory_id)
            if row is None:
                raise MemoryNotFoundError(memory_id)
            current = sqlite_memory_from_row(row)
            changes: dict[str, object] = {"updated_at": datetime.now(timezone.utc)}
            if key is not None:
                changes["key"] = key
            if content is not None:
                changes["content"] = content
            if tags is not None:
                changes["tags"] = list(tags)
            if archived_at is not _UNSET:
                changes["archived_at"] = archived_at
            updated = Memory.model_validate({**current.model_dump(), **changes})
            reindex = updated.indexed_fields_differ(current)
            if reindex:
                updated.embedding = None

            record = sqlite_record_from_memory(updated)
            record.pop("memory_id")
            set_clause = ", ".join(f"{col} = ?" for col in record)
            conn.execute(
                f'UPDATE "{self.collection_name}" SET {set_clause} WHERE id = ?',
                [*record.values(), row["id"]],
            )
            if reindex:
                new_record = {**record, "memory_id": memory_id}
                for hook in self._write_hooks:
                    hook.on_update(conn, row["id"], row, new_record)

        logger.info(
            "Updated memory %s",
            memory_id,
            extra=log_context(
                self.store_type,
                memory_id=memory_id,
                project_id=updated.project_id,
                duration_ms=elapsed_ms(start),
                reindexed=reindex,
            ),
        )
        if reindex:
            self._notify(updated, "update")
        return updated

    async def archive_memory(self, memory_id: str) -> Memory:
        return await self.update_memory(memory_id, archived_at=datetime.now(timezone.utc))

    async def delete_memory(self, memory_id: str) -> bool:
        start = time.perf_counter()
        async with self.transaction() as conn:
            row = self._fetch_row(conn, memory_id)
            if row is None:
                return False
            for hook in self._write_hooks:
                hook.on_delete(conn, row["id"], row)
            conn.execute(
                f'DELETE FROM "{self.collection_name}" WHERE id = ?',
                (row["id"],),
            )
        logger.info(
            "Deleted memory %s",
            memory_id,
            extra=log_context(self.store_type, memory_id=memory_id, duration_ms=elapsed_ms(start)),
        )
        return True

    async def get_memory(self, memory_id: str) -> Memory | None:
        async with self.transaction() as conn:
            row = self._fetch_row(conn, memory_id)
        return sqlite_memory_from_row(row) if row else None

    async def list_project_memories(self, project_id: str) -> list[Memory]:
        async with self.transaction() as conn:
            rows = conn.execute(
                f'SELECT * FROM "{self.collection_name}" '
                "WHERE project_id = ? AND archived_at IS NULL ORDER BY id",
                (project_id,),
            ).fetchall()
        return [sqlite_memory_from_row(row) for row in rows]

    async def list_embedded(self, project_id: str) -> list[tuple[str, str]]:
        async with self.transaction() as conn:
            rows = conn.execute(
                f'SELECT memory_id, embedding FROM "{self.collection_name}" '
                "WHERE project_id = ? AND archived_at IS NULL AND embedding IS NOT NULL "
                "ORDER BY id",
                (project_id,),
            ).fetchall()
        return [(row["memory_id"], row["embedding"]) for row in rows]

    async def list_missing_embeddings(self, limit: int) -> list[Memory]:
        async with self.transaction() as conn:
            rows = conn.execute(
                f'SELECT * FROM "{self.collection_name}" '
                "WHERE embedding IS NULL AND archived_at IS NULL ORDER BY id LIMIT ?",
                (limit,),
            ).fetchall()
        return [sqlite_memory_from_row(row) for row in rows]

    async def update_embedding(
        self,
        memory_id: str,
        embedding: str | None,
        *,
        source_text: str | None = None,
    ) -> bool:
        """Store an embedding. Returns False if nothing was written.

        With ``source_text`` the write only happens while the memory still has
        no embedding and its current text is the one that was embedded. A
        vector computed before a concurrent update is discarded.
        """
        async with self.transaction() as conn:
            if source_text is not None:
                row = self._fetch_row(conn, memory_id)
                if row is None or row["embedding"] is not None:
                    return False
                if sqlite_memory_from_row(row).embedding_text() != source_text:
                    logger.debug(
                        "Discarding embedding of outdated text for memory %s",
                        memory_id,
                        extra=log_context(self.store_type, memory_id=memory_id),
                    )
                    return False
            cursor = conn.execute(
                f'UPDATE "{self.collection_name}" SET embedding = ? WHERE memory_id = ?',
                (embedding, memory_id),
            )
        return cursor.rowcount > 0

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
        self._conn = None
        self._initialized = False
