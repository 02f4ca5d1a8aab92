"""Tests for the per-kind ordered write queue."""

import asyncio

import pytest

from opsdash.models.entities import EntityKind
from opsdash.sync.queue import KindWriteQueue


def recorder(log: list, label: str, delay: float = 0.0):
    async def job():
        await asyncio.sleep(delay)
        log.append(label)
    return job


class TestKindWriteQueue:
    """Ordering and isolation of queued persistence jobs."""

    @pytest.mark.asyncio
    async def test_jobs_run_in_submission_order(self):
        """A slow first write still completes before a fast second one."""
        queue = KindWriteQueue()
        log: list[str] = []
        queue.submit(EntityKind.CUSTOMERS, recorder(log, "first", delay=0.05))
        queue.submit(EntityKind.CUSTOMERS, recorder(log, "second"))

        await queue.drain()

        assert log == ["first", "second"]
        await queue.close()

    @pytest.mark.asyncio
    async def test_kinds_run_independently(self):
        queue = KindWriteQueue()
        log: list[str] = []
        queue.submit(EntityKind.CUSTOMERS, recorder(log, "customers", delay=0.05))
        queue.submit(EntityKind.NOTES, recorder(log, "notes"))

        await queue.drain()

        assert log == ["notes", "customers"]
        await queue.close()

    @pytest.mark.asyncio
    async def test_failing_job_does_not_stop_worker(self):
        queue = KindWriteQueue()
        log: list[str] = []

        async def boom():
            raise RuntimeError("write failed")

        queue.submit(EntityKind.BUDGETS, boom)
        queue.submit(EntityKind.BUDGETS, recorder(log, "after"))
        await queue.drain()

        assert log == ["after"]
        await queue.close()

    @pytest.mark.asyncio
    async def test_pending_count(self):
        queue = KindWriteQueue()
        gate = asyncio.Event()

        async def blocked():
            await gate.wait()

        queue.submit(EntityKind.EXPENSES, blocked)
        queue.submit(EntityKind.EXPENSES, blocked)
        await asyncio.sleep(0)
        assert queue.pending(EntityKind.EXPENSES) == 1
        assert queue.pending(EntityKind.NOTES) == 0

        gate.set()
        await queue.close()

    def test_submit_without_event_loop(self):
        queue = KindWriteQueue()

        async def job():
            pass

        assert queue.submit(EntityKind.NOTES, job) is False
