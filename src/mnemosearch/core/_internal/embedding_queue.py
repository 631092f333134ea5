from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingRequest:
    memory_id: str
    text: str


class EmbeddingQueue:
    """Bounded fire-and-forget queue drained by a single worker task.

    ``submit`` never blocks the write path: when the queue is full or shutting
    down the request is dropped with a warning and left for the backfill job.
    """

    def __init__(
        self,
        handler: Callable[[EmbeddingRequest], Awaitable[None]],
        *,
        maxsize: int = 100,
    ) -> None:
        self._handler = handler
        self._queue: asyncio.Queue[EmbeddingRequest] = asyncio.Queue(maxsize=maxsize)
        self._shutdown = asyncio.Event()
        self._worker_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker_task is not None

    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._worker_task is not None:
            return
        self._shutdown.clear()
        self._worker_task = asyncio.create_task(self._worker_loop())

    def submit(self, request: EmbeddingRequest) -> bool:
        if self._shutdown.is_set():
            logger.warning(
                "Embedding queue is shutting down, dropping memory %s", request.memory_id
            )
            return False
        try:
            self._queue.put_nowait(request)
        except asyncio.QueueFull:
            logger.warning("Embedding queue full, dropping memory %s", request.memory_id)
            return False
        return True

    async def join(self) -> None:
        await self._queue.join()

    async def shutdown(self, *, drain: bool = True) -> None:
        self._shutdown.set()
        if drain and self._worker_task is not None:
            await self._queue.join()
        if self._worker_task:
            self._worker_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker_task
        self._worker_task = None

    async def _worker_loop(self) -> None:
        while True:
            request = await self._queue.get()
            try:
                await self._handler(request)
            except Exception:
                logger.exception("Embedding worker failed for memory %s", request.memory_id)
            finally:
                self._queue.task_done()
