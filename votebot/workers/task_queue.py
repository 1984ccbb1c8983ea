import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Union

from votebot.logger import get_logger
from votebot.models import IssueSnapshot
from votebot.settings import QUEUE_CAPACITY

if TYPE_CHECKING:
    from votebot.github.events import CommentEvent, ReleaseEvent


logger = get_logger("votebot.workers.queue")


# =========================================================
# Work items
# =========================================================

@dataclass(frozen=True)
class ConnectRequest:
    repo_id: str
    issue_id: str
    issue: Optional[IssueSnapshot] = None
    force: bool = False


@dataclass(frozen=True)
class DisconnectRequest:
    repo_id: str
    issue_id: str


@dataclass(frozen=True)
class ProcessComment:
    event: "CommentEvent"


@dataclass(frozen=True)
class ProcessRelease:
    event: "ReleaseEvent"


@dataclass(frozen=True)
class MarkAwaitingRelease:
    repo_id: str
    issue_id: str
    state_reason: Optional[str] = None


@dataclass(frozen=True)
class SyncRequest:
    pass


WorkItem = Union[
    ConnectRequest,
    DisconnectRequest,
    ProcessComment,
    ProcessRelease,
    MarkAwaitingRelease,
    SyncRequest,
]


# =========================================================
# Bounded FIFO queue
# =========================================================

class TaskQueue:
    """
    Bounded FIFO of work items.

    enqueue() waits while the queue is full; nothing is ever dropped.
    """

    def __init__(self, capacity: int = QUEUE_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)

    def qsize(self) -> int:
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()

    async def enqueue(self, item: WorkItem) -> None:
        await self._queue.put(item)

    async def dequeue(self, stop: asyncio.Event) -> Optional[WorkItem]:
        """
        Wait for the next item, or return None once `stop` is set.
        """
        if stop.is_set():
            return None

        get_task = asyncio.ensure_future(self._queue.get())
        stop_task = asyncio.ensure_future(stop.wait())

        try:
            await asyncio.wait(
                {get_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            stop_task.cancel()

        if get_task.done() and not get_task.cancelled():
            return get_task.result()

        get_task.cancel()
        return None

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()


# =========================================================
# Consumer loop
# =========================================================

async def run_consumer(
    queue: TaskQueue,
    dispatch: Callable[[WorkItem], Awaitable[None]],
    stop: asyncio.Event,
) -> None:
    """
    Sole consumer: runs items one at a time until `stop` is set.

    The in-flight item always runs to completion; a failing item is
    logged and never stops the loop.
    """
    logger.info("Work queue consumer started (capacity=%s)", queue.capacity)

    while not stop.is_set():
        item = await queue.dequeue(stop)
        if item is None:
            break

        logger.debug("Dequeued work item %s", type(item).__name__)
        try:
            await dispatch(item)
        except Exception:
            logger.exception("Error occurred executing work item %r", item)
        finally:
            queue.task_done()

    logger.info("Work queue consumer stopped")
