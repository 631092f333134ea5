"""Column encoding helpers for the SQLite record store."""

from __future__ import annotations

import json
import logging
from datetime import datetime

logger = logging.getLogger(__name__)


def serialize_datetime(value: datetime | str | None) -> str | None:
    """Serialize a datetime value to ISO format string.

    Args:
        value: A datetime object, string, or None

    Returns:
        ISO format string, or None if value is None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def dump_tags(tags: list[str]) -> str:
    return json.dumps(list(tags), ensure_ascii=False)


def load_tags(value: str | None) -> list[str]:
    """Parse a stored tags column.

    Older rows may hold a comma separated string instead of a JSON array;
    both are accepted. Unparseable values yield an empty list.
    """
    if not value:
        return []
    try:
        loaded = json.loads(value)
    except (json.JSONDecodeError, TypeError, ValueError):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(loaded, list):
        return [str(tag) for tag in loaded]
    logger.warning("Ignoring tags column with unexpected shape: %r", type(loaded).__name__)
    return []
