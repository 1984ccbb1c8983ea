"""Tests for slash-command parsing and processing."""

from unittest.mock import AsyncMock

import pytest

from votebot.commands.parser import BotCommand, parse_command
from votebot.commands.processor import CommandProcessor
from votebot.discussions.engine import ReconciliationEngine
from votebot.github.api import RemoteOperationFailure
from votebot.github.events import CommentAction, CommentEvent
from votebot.settings import (
    COMMAND_FAILED_COMMENT,
    PING_COMMENT,
    TRACK_VOTING_COMMENT,
    TRACK_VOTING_SKIPPED_COMMENT,
    UNAUTHORIZED_COMMENT,
    UNTRACK_VOTING_COMMENT,
    UNTRACK_VOTING_SKIPPED_COMMENT,
)


def comment(body: str, association: str = "MEMBER", private: bool = False) -> CommentEvent:
    return CommentEvent(
        action=CommentAction.CREATED,
        repo_id="R_1",
        repo_private=private,
        issue_id="I_10",
        issue_number=10,
        issue_author="alice",
        comment_id="IC_1",
        comment_body=body,
        comment_author="bob",
        author_association=association,
    )


@pytest.fixture
def engine() -> AsyncMock:
    return AsyncMock(spec=ReconciliationEngine)


@pytest.fixture
def processor(ops, engine) -> CommandProcessor:
    return CommandProcessor(ops, engine, bot_name="votebot", privileged_roles=["owner", "member"])


class TestParseCommand:
    def test_parses_name_and_args(self) -> None:
        assert parse_command("hey @votebot /track_voting now please", "votebot") == BotCommand(
            "track_voting", ["now", "please"]
        )

    def test_requires_mention(self) -> None:
        assert parse_command("/ping", "votebot") is None
        assert parse_command("@someone /ping", "votebot") is None

    def test_ignores_quoted_commands(self) -> None:
        assert parse_command("> @votebot /ping\n\nthanks!", "votebot") is None


class TestCommandProcessor:
    @pytest.mark.asyncio
    async def test_non_member_on_public_repo_is_rejected(self, processor, ops, engine) -> None:
        result = await processor.process(comment("@votebot /ping", association="NONE"))

        assert result is None
        ops.add_comment.assert_awaited_once_with("I_10", f"@alice {UNAUTHORIZED_COMMENT}")
        assert engine.method_calls == []

    @pytest.mark.asyncio
    async def test_member_ping(self, processor, ops) -> None:
        assert await processor.process(comment("@votebot /ping")) == "ping"

        ops.add_comment.assert_awaited_once_with("I_10", f"@alice {PING_COMMENT}")

    @pytest.mark.asyncio
    async def test_private_repository_allows_anyone(self, processor, ops) -> None:
        assert await processor.process(comment("@votebot /ping", association="NONE", private=True)) == "ping"

    @pytest.mark.asyncio
    async def test_track_voting_forces_connect(self, processor, ops, engine) -> None:
        assert await processor.process(comment("@votebot /track_voting", association="OWNER")) == "track_voting"

        engine.connect.assert_awaited_once_with("R_1", "I_10", force=True)
        ops.add_comment.assert_awaited_once_with("I_10", f"@alice {TRACK_VOTING_COMMENT}")

    @pytest.mark.asyncio
    async def test_untrack_voting_disconnects(self, processor, ops, engine) -> None:
        assert await processor.process(comment("@votebot /untrack_voting")) == "untrack_voting"

        engine.disconnect.assert_awaited_once_with("R_1", "I_10")
        ops.add_comment.assert_awaited_once_with("I_10", f"@alice {UNTRACK_VOTING_COMMENT}")

    @pytest.mark.asyncio
    async def test_track_voting_on_unmonitored_repository(self, processor, ops, engine) -> None:
        engine.connect.return_value = None

        await processor.process(comment("@votebot /track_voting"))

        ops.add_comment.assert_awaited_once_with("I_10", f"@alice {TRACK_VOTING_SKIPPED_COMMENT}")

    @pytest.mark.asyncio
    async def test_untrack_voting_without_active_association(self, processor, ops, engine) -> None:
        engine.disconnect.return_value = None

        await processor.process(comment("@votebot /untrack_voting"))

        ops.add_comment.assert_awaited_once_with("I_10", f"@alice {UNTRACK_VOTING_SKIPPED_COMMENT}")

    @pytest.mark.asyncio
    async def test_failure_replies_with_generic_template(self, processor, ops, engine) -> None:
        engine.connect.side_effect = RemoteOperationFailure("internal detail")

        result = await processor.process(comment("@votebot /track_voting"))

        assert result is None
        ops.add_comment.assert_awaited_once_with("I_10", f"@alice {COMMAND_FAILED_COMMENT}")

    @pytest.mark.asyncio
    async def test_failure_to_apologise_is_swallowed(self, processor, ops, engine) -> None:
        engine.disconnect.side_effect = RuntimeError("boom")
        ops.add_comment.side_effect = RemoteOperationFailure("also down")

        assert await processor.process(comment("@votebot /untrack_voting")) is None

    @pytest.mark.asyncio
    async def test_unknown_command_and_plain_comment_are_ignored(self, processor, ops, engine) -> None:
        assert await processor.process(comment("@votebot /dance")) is None
        assert await processor.process(comment("just a comment")) is None

        assert ops.method_calls == []
        assert engine.method_calls == []
