"""
Per-kind ordered write queue.

Mutations return immediately; their persistence jobs run in the
background. Jobs for one entity kind run strictly in submission order
(single in-flight write per kind), while different kinds proceed
independently.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from opsdash.models.entities import EntityKind


Job = Callable[[], Awaitable[None]]

logger = structlog.get_logger(__name__)


class KindWriteQueue:
    """One asyncio worker and FIFO queue per entity kind."""

    def __init__(self):
        self._queues: dict[EntityKind, asyncio.Queue] = {}
        self._workers: dict[EntityKind, asyncio.Task] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def submit(self, kind: EntityKind, job: Job) -> bool:
        """
        Enqueue a job for a kind.

        Must be called from the event loop thread. Returns False when no
        loop is running; the job is then dropped and logged.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("write_queue_no_event_loop", kind=kind.value)
            return False

        if self._loop is not loop:
            # Queues are bound to the loop that created them
            self._queues.clear()
            self._workers.clear()
            self._loop = loop

        queue = self._queues.get(kind)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[kind] = queue
            self._workers[kind] = loop.create_task(
                self._worker(kind, queue),
                name=f"opsdash-sync-{kind.value}",
            )
        queue.put_nowait(job)
        return True

    async def _worker(self, kind: EntityKind, queue: asyncio.Queue) -> None:
        while True:
            job = await queue.get()
            try:
                await job()
            except Exception:
                logger.exception("write_job_failed", kind=kind.value)
            finally:
                queue.task_done()

    def pending(self, kind: EntityKind) -> int:
        queue = self._queues.get(kind)
        return queue.qsize() if queue else 0

    async def drain(self) -> None:
        """Wait until every submitted job has finished."""
        for queue in list(self._queues.values()):
            await queue.join()

    async def close(self) -> None:
        """Finish queued work, then stop the workers."""
        await self.drain()
        for task in self._workers.values():
            task.cancel()
        await asyncio.gather(*self._workers.values(), return_exceptions=True)
        self._workers.clear()
        self._queues.clear()
