from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

BACKFILL_JOB_ID = "embedding_backfill"


class MaintenanceScheduler:
    """Runs the embedding backfill on a cron schedule inside the event loop.

    Overlapping runs are coalesced: if a run is still in progress when the
    next one is due, the new one is skipped.
    """

    def __init__(
        self,
        backfill: Callable[[], Awaitable[Any]],
        *,
        cron: str = "0 */6 * * *",
        timezone: str = "UTC",
    ) -> None:
        try:
            self._trigger = CronTrigger.from_crontab(cron, timezone=timezone)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid cron expression {cron!r}: {exc}") from exc
        self.cron = cron
        self._backfill = backfill
        self.scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def start(self) -> None:
        """Start the scheduler. Must be called with a running event loop."""
        if self.running:
            return
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._backfill,
            self._trigger,
            id=BACKFILL_JOB_ID,
            name="Backfill missing embeddings",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Maintenance scheduler started (backfill cron %r)", self.cron)

    def next_run_time(self):
        if not self.running:
            return None
        job = self.scheduler.get_job(BACKFILL_JOB_ID)
        return job.next_run_time if job else None

    def shutdown(self) -> None:
        if self.scheduler is None:
            return
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.scheduler = None
        logger.info("Maintenance scheduler stopped")
