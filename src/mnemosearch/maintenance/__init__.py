from __future__ import annotations

from .backfill import EmbeddingBackfillJob
from .scheduler import MaintenanceScheduler

__all__ = ["EmbeddingBackfillJob", "MaintenanceScheduler"]
