from __future__ import annotations

from .config import SearchConfig
from .core.builder import build_engine
from .core.engine import HybridSearchEngine
from .core.models import Memory, SearchIntent, SearchResponse
from .errors import (
    ConfigurationError,
    DependencyError,
    IndexUnavailableError,
    MemoryNotFoundError,
    MnemosearchError,
    SerializationError,
    StoreError,
)

__version__ = "0.1.0"

__all__ = [
    "HybridSearchEngine",
    "Memory",
    "SearchConfig",
    "SearchIntent",
    "SearchResponse",
    "build_engine",
    # Error types
    "MnemosearchError",
    "StoreError",
    "SerializationError",
    "DependencyError",
    "MemoryNotFoundError",
    "ConfigurationError",
    "IndexUnavailableError",
]
