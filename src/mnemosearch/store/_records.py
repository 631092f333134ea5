from __future__ import annotations

import sqlite3
from typing import Any

from ..core.models import Memory
from .serialization import dump_tags, load_tags, serialize_datetime

INDEXED_COLUMNS = ("key", "content", "tags")


def sqlite_record_from_memory(memory: Memory) -> dict[str, Any]:
    return {
        "memory_id": memory.memory_id,
        "project_id": memory.project_id,
        "key": memory.key,
        "content": memory.content,
        "tags": dump_tags(memory.tags),
        "embedding": memory.embedding,
        "archived_at": serialize_datetime(memory.archived_at),
        "created_at": serialize_datetime(memory.created_at),
        "updated_at": serialize_datetime(memory.updated_at),
    }


def sqlite_memory_from_row(row: sqlite3.Row) -> Memory:
    return Memory(
        memory_id=row["memory_id"],
        project_id=row["project_id"],
        key=row["key"],
        content=row["content"],
        tags=load_tags(row["tags"]),
        embedding=row["embedding"],
        archived_at=row["archived_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def indexed_values(row: sqlite3.Row | dict[str, Any]) -> dict[str, Any]:
    return {column: row[column] for column in INDEXED_COLUMNS}
