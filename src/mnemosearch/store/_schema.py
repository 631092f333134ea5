from __future__ import annotations

import sqlite3

from ..errors import IndexUnavailableError


def create_sqlite_schema(conn: sqlite3.Connection, *, collection_name: str) -> None:
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS "{collection_name}" (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            memory_id TEXT UNIQUE NOT NULL,
            project_id TEXT NOT NULL,
            key TEXT NOT NULL,
            content TEXT NOT NULL,
            tags TEXT NOT NULL DEFAULT '[]',
            embedding TEXT,
            archived_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (project_id, key)
        )
        """
    )
    conn.execute(
        f"""
        CREATE INDEX IF NOT EXISTS "{collection_name}_project_idx"
        ON "{collection_name}" (project_id, archived_at)
        """
    )
    conn.execute(
        f"""
        CREATE INDEX IF NOT EXISTS "{collection_name}_missing_embedding_idx"
        ON "{collection_name}" (id) WHERE embedding IS NULL
        """
    )


def table_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE name = ?",
        (name,),
    ).fetchone()
    return row is not None


def create_fts_table(
    conn: sqlite3.Connection,
    *,
    fts_table: str,
    collection_name: str,
) -> bool:
    """Create the external-content FTS5 table. Returns True if it was new.

    Raises:
        IndexUnavailableError: if this SQLite build has no FTS5 module.
        sqlite3.OperationalError: for any other failure, such as a locked
            database. These are worth retrying.
    """
    existed = table_exists(conn, fts_table)
    try:
        conn.execute(
            f"""
            CREATE VIRTUAL TABLE IF NOT EXISTS "{fts_table}" USING fts5(
                key,
                content,
                tags,
                content='{collection_name}',
                content_rowid='id'
            )
            """
        )
    except sqlite3.OperationalError as exc:
        if "no such module" not in str(exc):
            raise
        raise IndexUnavailableError(f"FTS5 is not available: {exc}") from exc
    return not existed
