"""Tests for the periodic sync scheduler."""

import asyncio

import pytest

from votebot.workers.sync_scheduler import sync_loop
from votebot.workers.task_queue import SyncRequest, TaskQueue


@pytest.mark.asyncio
async def test_startup_sweep_only_when_interval_disabled() -> None:
    queue = TaskQueue(5)

    await asyncio.wait_for(sync_loop(queue, interval=0, on_startup=True), timeout=1)

    assert queue.qsize() == 1
    assert await queue.dequeue(asyncio.Event()) == SyncRequest()


@pytest.mark.asyncio
async def test_periodic_sweeps_until_cancelled() -> None:
    queue = TaskQueue(5)

    task = asyncio.create_task(sync_loop(queue, interval=0.01, on_startup=False))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert queue.qsize() >= 1
