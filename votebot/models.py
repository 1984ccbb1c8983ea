from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from votebot.settings import EXCLUDED_LABELS, FEATURE_LABELS


@dataclass
class IssueSnapshot:
    id: str
    number: int
    title: str = ""
    body: str = ""
    url: str = ""
    state: str = "OPEN"
    labels: list[str] = field(default_factory=list)
    author: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state.upper() == "OPEN"

    def has_any_label(self, names) -> bool:
        return any(label in names for label in self.labels)


@dataclass
class IssuePage:
    issues: list[IssueSnapshot]
    end_cursor: Optional[str] = None
    has_next_page: bool = False


@dataclass
class DiscussionSnapshot:
    id: str
    url: str = ""
    closed: bool = False
    locked: bool = False


@dataclass
class Association:
    """
    Persisted link between a feature issue and its voting discussion.

    Rows are never deleted; a finished link is kept with is_tracking=False.
    """
    repo_id: str
    discussion_id: str
    issue_id: str
    is_tracking: bool = True
    ref_comment_id: Optional[str] = None
    id: Optional[int] = None


class TrackingState(Enum):
    UNTRACKED = "untracked"
    VOTING = "voting"
    COMPLETED = "completed"
    INELIGIBLE = "ineligible"


def is_feature_issue(issue: IssueSnapshot) -> bool:
    return issue.has_any_label(FEATURE_LABELS)


def is_connect_candidate(issue: IssueSnapshot) -> bool:
    """
    Open feature issue that is not already voting, in progress or under review.
    """
    return (
        issue.is_open
        and is_feature_issue(issue)
        and not issue.has_any_label(EXCLUDED_LABELS)
    )


def derive_state(
    has_rows: bool,
    active: Optional[Association],
    issue: Optional[IssueSnapshot] = None,
) -> TrackingState:
    if active is not None:
        return TrackingState.VOTING

    if has_rows:
        return TrackingState.COMPLETED

    if issue is not None and is_connect_candidate(issue):
        return TrackingState.UNTRACKED

    return TrackingState.INELIGIBLE
