"""
Error taxonomy for mnemosearch.

The retrieval core recovers from most failures locally and reports a degraded
result ("unavailable" / empty) instead of raising. These exceptions are what
the lower layers raise so that the recovering layer can tell the failure kinds
apart.
"""

from __future__ import annotations


class MnemosearchError(Exception):
    """Base exception for all mnemosearch errors."""

    pass


class StoreError(MnemosearchError):
    """Primary record store operation failed.

    Attributes:
        message: Human-readable error description
        store_type: Type of store that failed (e.g., "sqlite")
        memory_id: Optional memory ID associated with the error
        original_error: Optional original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        store_type: str,
        memory_id: str | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.store_type = store_type
        self.memory_id = memory_id
        self.original_error = original_error

    def __str__(self) -> str:
        parts = [self.args[0]]
        if self.store_type:
            parts.append(f"store={self.store_type}")
        if self.memory_id:
            parts.append(f"memory_id={self.memory_id}")
        return f"{': '.join(parts)}"


class SerializationError(MnemosearchError):
    """A stored embedding could not be decoded.

    Raised by the vector codec for malformed JSON, unexpected shapes,
    non-numeric entries or non-finite quantization bounds. Callers scanning
    many records catch it per record and skip the offending one.
    """

    pass


class DependencyError(MnemosearchError):
    """Required dependency not available or failed to load.

    Example: sentence-transformers not installed.
    """

    def __init__(self, message: str, dependency: str):
        super().__init__(message)
        self.dependency = dependency

    def __str__(self) -> str:
        return f"{self.args[0]} (dependency: {self.dependency})"


class MemoryNotFoundError(MnemosearchError):
    """Requested memory does not exist.

    Note: get_memory() returns None instead of raising this exception.
    """

    def __init__(self, memory_id: str):
        super().__init__(f"Memory not found: {memory_id}")
        self.memory_id = memory_id


class ConfigurationError(MnemosearchError):
    """Invalid configuration or settings."""

    pass


class IndexUnavailableError(MnemosearchError):
    """The lexical search engine cannot be used in this process.

    Raised by index setup when the SQLite build lacks FTS5; the index catches
    it, marks itself unavailable and reports None from then on.
    """

    pass


# Error handling guidelines:
#
# 1. Search paths:
#    - Lexical and vector search return None for "unavailable"
#    - An empty list means "searched, nothing matched"
#    - Never raise out of hybrid_search()
#
# 2. Partial failures in batch operations:
#    - Continue processing remaining items
#    - Log warnings with context for each failure
#    - Track failure count and log summary at end
#
# 3. Store CRUD:
#    - get_memory() -> Return None for "not found"
#    - update_memory() -> Raise MemoryNotFoundError for unknown ids
#    - Wrap sqlite3.Error in StoreError with "raise ... from e"
#
# 4. Silent failures are forbidden:
#    - Never use bare "except: pass"
#    - Always log failures, even if continuing
