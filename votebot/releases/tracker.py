import re

from votebot.github.events import ReleaseEvent
from votebot.github.operations import RemoteOperations
from votebot.logger import get_logger
from votebot.models import IssueSnapshot
from votebot.settings import (
    AWAITING_RELEASE_LABEL,
    BUG_LABEL,
    FEATURE_LABELS,
    NO_RELEASE_TRACKING_TAG,
    RELEASE_PREVIEW_COMMENT,
    RELEASE_STABLE_COMMENT,
)


logger = get_logger("votebot.releases.tracker")

ISSUE_REFERENCE = re.compile(r"#(\d+)")


def referenced_numbers(body: str) -> set[int]:
    return {int(n) for n in ISSUE_REFERENCE.findall(body or "")}


def issue_kind(issue: IssueSnapshot) -> str:
    if issue.has_any_label(FEATURE_LABELS):
        return "功能请求"
    if BUG_LABEL in issue.labels:
        return " Bug 的修复"
    return "提议"


class ReleaseTracker:
    """
    Links issues closed as completed to the release that ships them.
    Issues are matched by number, not node id.
    """

    def __init__(self, ops: RemoteOperations):
        self.ops = ops

    async def mark_awaiting_release(self, repo_id: str, issue_id: str, state_reason=None) -> bool:
        if (state_reason or "").lower() != "completed":
            logger.info("Skipped release tracking for issue %s: close reason is %r", issue_id, state_reason)
            return False

        await self.ops.add_label(issue_id, AWAITING_RELEASE_LABEL, repo_id)
        logger.info("Issue %s is awaiting release", issue_id)
        return True

    async def process_release(self, event: ReleaseEvent) -> int:
        logger.info("Processing release note %s in %s", event.name, event.repo_id)

        if NO_RELEASE_TRACKING_TAG in event.body:
            logger.info("Release %s opted out of release tracking", event.name)
            return 0

        numbers = referenced_numbers(event.body)
        if not numbers:
            return 0

        template = RELEASE_PREVIEW_COMMENT if event.prerelease else RELEASE_STABLE_COMMENT
        notified = 0
        cursor = None

        while True:
            page = await self.ops.list_issues(
                event.repo_id,
                [AWAITING_RELEASE_LABEL],
                cursor,
                states=None,
            )

            for issue in page.issues:
                if issue.number not in numbers:
                    continue

                logger.info("Notifying issue #%s of release %s", issue.number, event.name)
                await self.ops.add_comment(
                    issue.id,
                    template.format(kind=issue_kind(issue), name=event.name, url=event.url),
                )
                await self.ops.remove_label(issue.id, AWAITING_RELEASE_LABEL, event.repo_id)
                notified += 1

            if not page.has_next_page or not page.end_cursor:
                break
            cursor = page.end_cursor

        return notified
