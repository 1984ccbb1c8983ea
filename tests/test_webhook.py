"""Tests for the webhook endpoint and the work-item dispatcher."""

import hashlib
import hmac
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from votebot.commands.processor import CommandProcessor
from votebot.discussions.engine import ReconciliationEngine
from votebot.github.events import PingEvent
from votebot.main import app
from votebot.releases.tracker import ReleaseTracker
from votebot.workers.dispatcher import Dispatcher
from votebot.workers.task_queue import (
    ConnectRequest,
    DisconnectRequest,
    MarkAwaitingRelease,
    ProcessComment,
    ProcessRelease,
    SyncRequest,
    TaskQueue,
)


SECRET = "s3cret"
PATH = "/api/v1/github/webhook"


def _sign(body: bytes) -> str:
    return "sha256=" + hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", SECRET)
    app.state.queue = TaskQueue(10)
    # Not entered as a context manager: lifespan (consumer, GitHub auth) stays off
    return TestClient(app)


def _post(client, event: str, payload: dict, signature=None):
    body = json.dumps(payload).encode()
    headers = {
        "X-GitHub-Event": event,
        "X-Hub-Signature-256": signature or _sign(body),
        "Content-Type": "application/json",
    }
    return client.post(PATH, content=body, headers=headers)


class TestWebhookEndpoint:
    def test_valid_issue_event_is_queued(self, client) -> None:
        payload = {
            "action": "labeled",
            "label": {"name": "新功能"},
            "repository": {"node_id": "R_1"},
            "issue": {
                "node_id": "I_1",
                "number": 1,
                "title": "t",
                "state": "open",
                "labels": [{"name": "新功能"}],
            },
        }

        response = _post(client, "issues", payload)

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "queued": 1}
        assert app.state.queue.qsize() == 1

    def test_invalid_signature_is_rejected(self, client) -> None:
        response = _post(client, "ping", {"zen": "hi"}, signature="sha256=deadbeef")

        assert response.status_code == 401
        assert app.state.queue.qsize() == 0

    def test_missing_event_header(self, client) -> None:
        body = b"{}"
        response = client.post(PATH, content=body, headers={"X-Hub-Signature-256": _sign(body)})

        assert response.status_code == 400

    def test_ping_queues_nothing(self, client) -> None:
        response = _post(client, "ping", {"zen": "Design for failure."})

        assert response.json()["queued"] == 0


class TestDispatcher:
    @pytest.fixture
    def parts(self):
        return (
            AsyncMock(spec=ReconciliationEngine),
            AsyncMock(spec=CommandProcessor),
            AsyncMock(spec=ReleaseTracker),
        )

    @pytest.mark.asyncio
    async def test_routes_every_item_type(self, parts) -> None:
        engine, commands, releases = parts
        dispatch = Dispatcher(engine, commands, releases)
        event = PingEvent()

        await dispatch(ConnectRequest("R", "I", force=True))
        await dispatch(DisconnectRequest("R", "I"))
        await dispatch(ProcessComment(event))
        await dispatch(ProcessRelease(event))
        await dispatch(MarkAwaitingRelease("R", "I", "completed"))
        await dispatch(SyncRequest())

        engine.connect.assert_awaited_once_with("R", "I", None, force=True)
        engine.disconnect.assert_awaited_once_with("R", "I")
        commands.process.assert_awaited_once_with(event)
        releases.process_release.assert_awaited_once_with(event)
        releases.mark_awaiting_release.assert_awaited_once_with("R", "I", "completed")
        engine.sync_unconnected_issues.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_item_raises(self, parts) -> None:
        with pytest.raises(TypeError):
            await Dispatcher(*parts)(object())
