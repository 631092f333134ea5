"""
Keyword search over memories with SQLite FTS5.

The FTS table is an external-content shadow of the memories table's ``key``,
``content`` and ``tags`` columns. It is kept in step by the store's write
hooks rather than by database triggers and can be rebuilt from the memories
table at any time.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import time
from asyncio import Lock
from collections.abc import Mapping
from enum import Enum
from typing import Any

from ..errors import IndexUnavailableError, StoreError
from ._records import indexed_values
from ._schema import create_fts_table
from .logging import elapsed_ms, log_context
from .sqlite_store import SQLiteMemoryStore

logger = logging.getLogger(__name__)

# Characters with special meaning to the FTS5 query syntax.
_FTS_SPECIAL_RE = re.compile(r"""['"*(){}\[\]^~\\:]""")
_WORD_CHAR_RE = re.compile(r"\w")


def build_match_query(query: str) -> str | None:
    """Turn raw user text into an FTS5 expression matching any of its terms.

    Returns None when nothing searchable remains after sanitizing.
    """
    safe = _FTS_SPECIAL_RE.sub(" ", query).strip()
    if not safe:
        return None
    terms = [term for term in safe.split() if _WORD_CHAR_RE.search(term)]
    if not terms:
        return None
    return " OR ".join(f'"{term}"' for term in terms)


class IndexState(str, Enum):
    PENDING = "pending"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class SQLiteLexicalIndex:
    store_type = "sqlite-fts5"

    def __init__(self, store: SQLiteMemoryStore) -> None:
        self.store = store
        self.fts_table = f"{store.collection_name}_fts"
        self.state = IndexState.PENDING
        self._missed_writes = False
        self._init_lock = Lock()
        store.add_write_hook(self)

    @property
    def available(self) -> bool:
        return self.state is IndexState.READY

    async def ensure_index(self) -> bool:
        """Create the FTS table once per process. Returns availability.

        An SQLite build without FTS5 marks the index unavailable for the rest
        of the process lifetime. Any other store error leaves it pending so
        the next call tries again.
        """
        if self.state is not IndexState.PENDING:
            return self.available
        async with self._init_lock:
            if self.state is not IndexState.PENDING:
                return self.available
            start = time.perf_counter()
            try:
                async with self.store.transaction() as conn:
                    created = create_fts_table(
                        conn,
                        fts_table=self.fts_table,
                        collection_name=self.store.collection_name,
                    )
                    if created or self._missed_writes:
                        self._rebuild(conn)
            except IndexUnavailableError:
                self.state = IndexState.UNAVAILABLE
                logger.warning(
                    "Lexical index unavailable, keyword search disabled",
                    exc_info=True,
                    extra=log_context(self.store_type, duration_ms=elapsed_ms(start)),
                )
                return False
            except StoreError:
                logger.warning(
                    "Lexical index setup failed, will retry",
                    exc_info=True,
                    extra=log_context(self.store_type, duration_ms=elapsed_ms(start)),
                )
                return False
            self.state = IndexState.READY
            self._missed_writes = False
            logger.info(
                "Lexical index ready",
                extra=log_context(
                    self.store_type, duration_ms=elapsed_ms(start), created=created
                ),
            )
            return True

    # Write-path hooks, called by the store inside its write transaction.

    def _accepts_writes(self) -> bool:
        if self.state is IndexState.PENDING:
            # Picked up by the rebuild in ensure_index().
            self._missed_writes = True
        return self.available

    def on_insert(self, conn: sqlite3.Connection, row_id: int, record: Mapping[str, Any]) -> None:
        if not self._accepts_writes():
            return
        self._insert(conn, row_id, indexed_values(record))

    def on_update(
        self,
        conn: sqlite3.Connection,
        row_id: int,
        old: Mapping[str, Any],
        new: Mapping[str, Any],
    ) -> None:
        if not self._accepts_writes():
            return
        self._delete(conn, row_id, indexed_values(old))
        self._insert(conn, row_id, indexed_values(new))

    def on_delete(self, conn: sqlite3.Connection, row_id: int, old: Mapping[str, Any]) -> None:
        if not self._accepts_writes():
            return
        self._delete(conn, row_id, indexed_values(old))

    def _insert(self, conn: sqlite3.Connection, row_id: int, values: dict[str, Any]) -> None:
        conn.execute(
            f'INSERT INTO "{self.fts_table}" (rowid, key, content, tags) VALUES (?, ?, ?, ?)',
            (row_id, values["key"], values["content"], values["tags"] or ""),
        )

    def _delete(self, conn: sqlite3.Connection, row_id: int, values: dict[str, Any]) -> None:
        conn.execute(
            f'INSERT INTO "{self.fts_table}" ("{self.fts_table}", rowid, key, content, tags) '
            "VALUES ('delete', ?, ?, ?, ?)",
            (row_id, values["key"], values["content"], values["tags"] or ""),
        )

    def _rebuild(self, conn: sqlite3.Connection) -> None:
        conn.execute(f'INSERT INTO "{self.fts_table}" ("{self.fts_table}") VALUES (\'rebuild\')')

    async def search(self, project_id: str, query: str, limit: int) -> list[str] | None:
        """Rank a project's non-archived memories by keyword relevance.

        Returns None when the index is unavailable, the query has no
        searchable terms, or the engine rejects the query.
        """
        if not await self.ensure_index():
            return None
        match = build_match_query(query)
        if match is None:
            return None

        start = time.perf_counter()
        try:
            async with self.store.transaction() as conn:
                rows = conn.execute(
                    f'SELECT m.memory_id FROM "{self.fts_table}" '
                    f'JOIN "{self.store.collection_name}" m ON m.id = "{self.fts_table}".rowid '
                    f'WHERE "{self.fts_table}" MATCH ? '
                    "AND m.project_id = ? AND m.archived_at IS NULL "
                    f'ORDER BY bm25("{self.fts_table}") '
                    "LIMIT ?",
                    (match, project_id, limit),
                ).fetchall()
        except StoreError:
            logger.warning(
                "Lexical search failed",
                exc_info=True,
                extra=log_context(
                    self.store_type, project_id=project_id, duration_ms=elapsed_ms(start)
                ),
            )
            return None

        ids = [row["memory_id"] for row in rows]
        logger.debug(
            "lexical search done returned=%d",
            len(ids),
            extra=log_context(
                self.store_type, project_id=project_id, duration_ms=elapsed_ms(start)
            ),
        )
        return ids

    async def rebuild(self) -> bool:
        """Re-derive the whole index from the memories table."""
        if not await self.ensure_index():
            return False
        start = time.perf_counter()
        try:
            async with self.store.transaction() as conn:
                self._rebuild(conn)
        except StoreError:
            logger.exception(
                "Lexical index rebuild failed",
                extra=log_context(self.store_type, duration_ms=elapsed_ms(start)),
            )
            return False
        logger.info(
            "Lexical index rebuilt",
            extra=log_context(self.store_type, duration_ms=elapsed_ms(start)),
        )
        return True
