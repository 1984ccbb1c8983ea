import asyncio

from votebot.logger import get_logger
from votebot.settings import SYNC_INTERVAL_SECONDS, SYNC_ON_STARTUP
from votebot.workers.task_queue import SyncRequest, TaskQueue

logger = get_logger("votebot.workers.sync")


async def sync_loop(
    queue: TaskQueue,
    interval: float = SYNC_INTERVAL_SECONDS,
    on_startup: bool = SYNC_ON_STARTUP,
):
    """
    Periodically queue a full sync sweep.

    The sweep itself runs on the consumer like any other work item.
    """
    if on_startup:
        await queue.enqueue(SyncRequest())
        logger.info("Startup sync sweep queued")

    if interval <= 0:
        return

    while True:
        try:
            await asyncio.sleep(interval)
            await queue.enqueue(SyncRequest())
            logger.info("Periodic sync sweep queued")
        except asyncio.CancelledError:
            logger.info("Sync scheduler cancelled")
            raise
