from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from votebot.logger import get_logger
from votebot.models import IssueSnapshot, is_connect_candidate, is_feature_issue
from votebot.settings import WIP_LABEL
from votebot.workers.task_queue import (
    ConnectRequest,
    DisconnectRequest,
    MarkAwaitingRelease,
    ProcessComment,
    ProcessRelease,
    TaskQueue,
    WorkItem,
)


logger = get_logger("votebot.github.events")


class _Action(str, Enum):
    @classmethod
    def _missing_(cls, value):
        return cls.OTHER


class IssuesAction(_Action):
    OPENED = "opened"
    LABELED = "labeled"
    UNLABELED = "unlabeled"
    CLOSED = "closed"
    REOPENED = "reopened"
    OTHER = "other"


class CommentAction(_Action):
    CREATED = "created"
    EDITED = "edited"
    DELETED = "deleted"
    OTHER = "other"


class ReleaseAction(_Action):
    PUBLISHED = "published"
    OTHER = "other"


# =========================================================
# Typed events
# =========================================================

@dataclass(frozen=True)
class IssuesEvent:
    action: IssuesAction
    repo_id: str
    issue: IssueSnapshot
    label_name: Optional[str] = None
    state_reason: Optional[str] = None


@dataclass(frozen=True)
class CommentEvent:
    action: CommentAction
    repo_id: str
    repo_private: bool
    issue_id: str
    issue_number: int
    issue_author: str
    comment_id: str
    comment_body: str
    comment_author: str
    author_association: str


@dataclass(frozen=True)
class ReleaseEvent:
    action: ReleaseAction
    repo_id: str
    name: str
    tag_name: str
    body: str
    url: str
    prerelease: bool


@dataclass(frozen=True)
class PingEvent:
    zen: str = ""


Event = Union[IssuesEvent, CommentEvent, ReleaseEvent, PingEvent]


# =========================================================
# Parsing
# =========================================================

def _issue_from_payload(issue: Dict[str, Any]) -> IssueSnapshot:
    return IssueSnapshot(
        id=issue.get("node_id", ""),
        number=int(issue.get("number") or 0),
        title=issue.get("title") or "",
        body=issue.get("body") or "",
        url=issue.get("html_url") or "",
        state=(issue.get("state") or "open").upper(),
        labels=[l.get("name", "") for l in issue.get("labels") or []],
        author=(issue.get("user") or {}).get("login"),
    )


def parse_event(event_type: str, payload: Dict[str, Any]) -> Optional[Event]:
    """
    Turn a verified webhook payload into a typed event.

    Returns None for event types the bot does not handle.
    """
    if event_type == "ping":
        return PingEvent(zen=payload.get("zen", ""))

    repository = payload.get("repository") or {}
    repo_id = repository.get("node_id")
    if not repo_id:
        logger.warning("Ignoring %s event without repository", event_type)
        return None

    action = payload.get("action") or ""

    if event_type == "issues":
        issue = payload.get("issue") or {}
        return IssuesEvent(
            action=IssuesAction(action),
            repo_id=repo_id,
            issue=_issue_from_payload(issue),
            label_name=(payload.get("label") or {}).get("name"),
            state_reason=issue.get("state_reason"),
        )

    if event_type == "issue_comment":
        issue = payload.get("issue") or {}
        comment = payload.get("comment") or {}
        return CommentEvent(
            action=CommentAction(action),
            repo_id=repo_id,
            repo_private=bool(repository.get("private")),
            issue_id=issue.get("node_id", ""),
            issue_number=int(issue.get("number") or 0),
            issue_author=(issue.get("user") or {}).get("login", ""),
            comment_id=comment.get("node_id", ""),
            comment_body=comment.get("body") or "",
            comment_author=(comment.get("user") or {}).get("login", ""),
            author_association=comment.get("author_association") or "NONE",
        )

    if event_type == "release":
        release = payload.get("release") or {}
        return ReleaseEvent(
            action=ReleaseAction(action),
            repo_id=repo_id,
            name=release.get("name") or release.get("tag_name") or "",
            tag_name=release.get("tag_name") or "",
            body=release.get("body") or "",
            url=release.get("html_url") or "",
            prerelease=bool(release.get("prerelease")),
        )

    return None


# =========================================================
# Classification
# =========================================================

def _is_bot(login: str) -> bool:
    return login.lower().endswith("[bot]")


def classify(event: Event) -> list[WorkItem]:
    """
    Map an event to the work items it should trigger.
    """
    items: list[WorkItem] = []

    if isinstance(event, IssuesEvent):
        issue = event.issue
        action = event.action

        if is_feature_issue(issue):
            if action in (IssuesAction.LABELED, IssuesAction.UNLABELED) and is_connect_candidate(issue):
                items.append(ConnectRequest(event.repo_id, issue.id, issue))
            elif (action == IssuesAction.LABELED and event.label_name == WIP_LABEL) or action == IssuesAction.CLOSED:
                items.append(DisconnectRequest(event.repo_id, issue.id))

        if action == IssuesAction.CLOSED:
            items.append(MarkAwaitingRelease(event.repo_id, issue.id, event.state_reason))

    elif isinstance(event, CommentEvent):
        if event.action == CommentAction.CREATED and not _is_bot(event.comment_author):
            items.append(ProcessComment(event))

    elif isinstance(event, ReleaseEvent):
        if event.action == ReleaseAction.PUBLISHED:
            items.append(ProcessRelease(event))

    elif isinstance(event, PingEvent):
        logger.info("Ping! %s", event.zen)

    return items


async def handle_event(event_type: str, payload: Dict[str, Any], queue: TaskQueue) -> int:
    """
    Parse, classify and enqueue. Returns the number of enqueued items.
    """
    event = parse_event(event_type, payload)
    if event is None:
        return 0

    items = classify(event)
    for item in items:
        await queue.enqueue(item)

    logger.info(
        "Received %s event (%s): %d work item(s) queued",
        event_type,
        payload.get("action", "-"),
        len(items),
    )
    return len(items)
