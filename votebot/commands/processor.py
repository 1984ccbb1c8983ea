from typing import Iterable, Optional

from votebot.commands.parser import parse_command
from votebot.discussions.engine import ReconciliationEngine
from votebot.github.events import CommentEvent
from votebot.github.operations import RemoteOperations
from votebot.logger import get_logger
from votebot.settings import (
    BOT_NAME,
    COMMAND_FAILED_COMMENT,
    PING_COMMENT,
    PRIVILEGED_ROLES,
    TRACK_VOTING_COMMENT,
    TRACK_VOTING_SKIPPED_COMMENT,
    UNAUTHORIZED_COMMENT,
    UNTRACK_VOTING_COMMENT,
    UNTRACK_VOTING_SKIPPED_COMMENT,
)


logger = get_logger("votebot.commands.processor")

KNOWN_COMMANDS = ("ping", "track_voting", "untrack_voting")


class CommandProcessor:
    def __init__(
        self,
        ops: RemoteOperations,
        engine: ReconciliationEngine,
        bot_name: str = BOT_NAME,
        privileged_roles: Optional[Iterable[str]] = None,
    ):
        self.ops = ops
        self.engine = engine
        self.bot_name = bot_name
        roles = PRIVILEGED_ROLES if privileged_roles is None else privileged_roles
        self.privileged_roles = {r.lower() for r in roles}

    def is_authorized(self, event: CommentEvent) -> bool:
        return event.repo_private or event.author_association.lower() in self.privileged_roles

    async def _reply(self, event: CommentEvent, message: str) -> None:
        await self.ops.add_comment(event.issue_id, f"@{event.issue_author} {message}")

    async def process(self, event: CommentEvent) -> Optional[str]:
        """
        Run the slash command in a comment, if any.

        Returns the command name that was executed. Never raises.
        """
        command = parse_command(event.comment_body, self.bot_name)
        if command is None:
            return None

        logger.info("Process command: %s /%s %s", event.comment_author, command.name, " ".join(command.args))

        try:
            if not self.is_authorized(event):
                logger.info(
                    "Rejected /%s from %s (%s) on issue #%s",
                    command.name,
                    event.comment_author,
                    event.author_association,
                    event.issue_number,
                )
                await self._reply(event, UNAUTHORIZED_COMMENT)
                return None

            if command.name not in KNOWN_COMMANDS:
                logger.info("Ignored unknown command /%s", command.name)
                return None

            await self._execute(command.name, event)
            return command.name

        except Exception:
            logger.exception("Command /%s failed on issue #%s", command.name, event.issue_number)
            try:
                await self._reply(event, COMMAND_FAILED_COMMENT)
            except Exception:
                logger.exception("Failed to report command failure on issue #%s", event.issue_number)
            return None

    async def _execute(self, name: str, event: CommentEvent) -> None:
        if name == "ping":
            await self._reply(event, PING_COMMENT)

        # The engine returns None when a guard turned the call into a no-op
        elif name == "track_voting":
            record = await self.engine.connect(event.repo_id, event.issue_id, force=True)
            await self._reply(event, TRACK_VOTING_COMMENT if record else TRACK_VOTING_SKIPPED_COMMENT)

        elif name == "untrack_voting":
            record = await self.engine.disconnect(event.repo_id, event.issue_id)
            await self._reply(event, UNTRACK_VOTING_COMMENT if record else UNTRACK_VOTING_SKIPPED_COMMENT)
