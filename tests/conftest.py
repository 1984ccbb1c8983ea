"""Pytest configuration and fixtures."""

from unittest.mock import AsyncMock

import fakeredis
import pytest

from votebot.discussions.engine import ReconciliationEngine
from votebot.github.operations import RemoteOperations
from votebot.models import DiscussionSnapshot, IssueSnapshot
from votebot.store.associations import AssociationStore


REPO_ID = "R_monitored"
VOTING_REPO_ID = "R_voting"
CATEGORY = "功能投票"
DISCUSSION_URL = "https://github.com/ClassIsland/voting/discussions/1"


@pytest.fixture
def redis_client() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def store(redis_client) -> AssociationStore:
    return AssociationStore(redis_client)


@pytest.fixture
def ops() -> AsyncMock:
    """A RemoteOperations double with successful defaults."""
    mock = AsyncMock(spec=RemoteOperations)
    mock.create_discussion.return_value = ("D_1", DISCUSSION_URL)
    mock.add_comment.return_value = "IC_1"
    mock.get_discussion.return_value = DiscussionSnapshot(id="D_1", url=DISCUSSION_URL)
    return mock


@pytest.fixture
def engine(ops, store) -> ReconciliationEngine:
    return ReconciliationEngine(ops, store, {REPO_ID: CATEGORY}, VOTING_REPO_ID)


@pytest.fixture
def make_issue():
    """Build issue snapshots; defaults to an open, untracked feature issue."""

    def _make(number: int = 1, labels=("新功能",), state: str = "OPEN", **kwargs) -> IssueSnapshot:
        return IssueSnapshot(
            id=kwargs.pop("id", f"I_{number}"),
            number=number,
            title=kwargs.pop("title", f"Feature request {number}"),
            body=kwargs.pop("body", "Please add this."),
            url=kwargs.pop("url", f"https://github.com/ClassIsland/ClassIsland/issues/{number}"),
            state=state,
            labels=list(labels),
            **kwargs,
        )

    return _make
