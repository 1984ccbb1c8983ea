from votebot.commands.processor import CommandProcessor
from votebot.discussions.engine import ReconciliationEngine
from votebot.logger import get_logger
from votebot.releases.tracker import ReleaseTracker
from votebot.workers.task_queue import (
    ConnectRequest,
    DisconnectRequest,
    MarkAwaitingRelease,
    ProcessComment,
    ProcessRelease,
    SyncRequest,
    WorkItem,
)


logger = get_logger("votebot.workers.dispatcher")


class Dispatcher:
    """
    Routes each work item to the component that handles it.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        commands: CommandProcessor,
        releases: ReleaseTracker,
    ):
        self.engine = engine
        self.commands = commands
        self.releases = releases

    async def __call__(self, item: WorkItem) -> None:
        if isinstance(item, ConnectRequest):
            await self.engine.connect(item.repo_id, item.issue_id, item.issue, force=item.force)

        elif isinstance(item, DisconnectRequest):
            await self.engine.disconnect(item.repo_id, item.issue_id)

        elif isinstance(item, ProcessComment):
            await self.commands.process(item.event)

        elif isinstance(item, ProcessRelease):
            await self.releases.process_release(item.event)

        elif isinstance(item, MarkAwaitingRelease):
            await self.releases.mark_awaiting_release(item.repo_id, item.issue_id, item.state_reason)

        elif isinstance(item, SyncRequest):
            await self.engine.sync_unconnected_issues()

        else:
            raise TypeError(f"Unknown work item: {item!r}")
