from typing import Optional

from votebot.github.api import RemoteOperationFailure
from votebot.github.operations import RemoteOperations
from votebot.logger import get_logger
from votebot.models import (
    Association,
    IssueSnapshot,
    TrackingState,
    derive_state,
)
from votebot.settings import (
    DISCUSSION_FOOTER,
    DISCUSSION_REF_COMMENT,
    EXCLUDED_LABELS,
    FEATURE_LABELS,
    REPO_CATEGORY_MAP,
    VOTING_LABEL,
    VOTING_REPO_ID,
)
from votebot.store.associations import AssociationStore, PersistenceFailure


logger = get_logger("votebot.discussions.engine")


class ReconciliationEngine:
    """
    Drives the issue ↔ voting discussion lifecycle.

    connect() and disconnect() run their remote steps strictly in order
    without rollback. Whatever a partial failure leaves behind is picked
    up again by the next sync sweep.
    """

    def __init__(
        self,
        ops: RemoteOperations,
        store: AssociationStore,
        category_map: Optional[dict[str, str]] = None,
        voting_repo_id: str = VOTING_REPO_ID,
    ):
        self.ops = ops
        self.store = store
        self.category_map = REPO_CATEGORY_MAP if category_map is None else category_map
        self.voting_repo_id = voting_repo_id

    def state_of(
        self,
        issue_id: str,
        issue: Optional[IssueSnapshot] = None,
    ) -> TrackingState:
        active = self.store.find_active_for_issue(issue_id)
        has_rows = active is not None or self.store.exists_for_issue(issue_id)
        return derive_state(has_rows, active, issue)

    async def connect(
        self,
        repo_id: str,
        issue_id: str,
        issue: Optional[IssueSnapshot] = None,
        force: bool = False,
    ) -> Optional[Association]:
        if not force:
            state = self.state_of(issue_id, issue)
            if state in (TrackingState.VOTING, TrackingState.COMPLETED):
                logger.info("Skipped connecting issue %s: already associated (%s)", issue_id, state.value)
                return None

        category = self.category_map.get(repo_id)
        if category is None:
            logger.info("Skipped connecting issue %s: repository %s is not monitored", issue_id, repo_id)
            return None

        if issue is None:
            issue = await self.ops.get_issue(issue_id)

        body = issue.body + DISCUSSION_FOOTER.format(number=issue.number, url=issue.url)
        discussion_id, discussion_url = await self.ops.create_discussion(
            self.voting_repo_id,
            category,
            issue.title,
            body,
        )
        logger.info("Created discussion %s for issue #%s", discussion_id, issue.number)

        await self.ops.add_label(issue_id, VOTING_LABEL, repo_id)

        comment_id = await self.ops.add_comment(
            issue_id,
            DISCUSSION_REF_COMMENT.format(url=discussion_url),
        )

        record = self.store.insert(
            Association(
                repo_id=repo_id,
                discussion_id=discussion_id,
                issue_id=issue_id,
                ref_comment_id=comment_id,
            )
        )
        logger.info("Connected issue #%s to discussion %s (association %s)", issue.number, discussion_id, record.id)
        return record

    async def disconnect(self, repo_id: str, issue_id: str) -> Optional[Association]:
        if repo_id not in self.category_map:
            logger.info("Skipped disconnecting issue %s: repository %s is not monitored", issue_id, repo_id)
            return None

        active = self.store.find_active_for_issue(issue_id)
        if active is None:
            logger.info("Skipped disconnecting issue %s: no tracking association", issue_id)
            return None

        issue = await self.ops.find_issue(issue_id)
        if issue is None:
            logger.warning("Issue %s no longer exists, closing discussion %s anyway", issue_id, active.discussion_id)
        elif VOTING_LABEL in issue.labels:
            await self.ops.remove_label(issue_id, VOTING_LABEL, repo_id)

        discussion = await self.ops.get_discussion(active.discussion_id)
        if discussion is None:
            logger.warning("Discussion %s of issue %s no longer exists", active.discussion_id, issue_id)
        else:
            if not discussion.closed:
                await self.ops.close_discussion(discussion.id, reason="RESOLVED")
            if not discussion.locked:
                await self.ops.lock_thread(discussion.id)

        record = self.store.mark_untracked(active)
        logger.info("Disconnected issue %s from discussion %s", issue_id, active.discussion_id)
        return record

    async def sync_unconnected_issues(self) -> int:
        """
        Connect every open feature issue that carries none of the
        voting/wip/reviewing labels. Returns the number of connect calls.
        """
        attempted = 0

        for repo_id in list(self.category_map):
            cursor = None
            while True:
                page = await self.ops.list_open_issues(repo_id, FEATURE_LABELS, cursor)

                for issue in page.issues:
                    if issue.has_any_label(EXCLUDED_LABELS):
                        continue

                    attempted += 1
                    try:
                        await self.connect(repo_id, issue.id, issue)
                    except (RemoteOperationFailure, PersistenceFailure):
                        logger.exception("Sync failed to connect issue #%s in %s", issue.number, repo_id)

                if not page.has_next_page or not page.end_cursor:
                    break
                cursor = page.end_cursor

        logger.info("Sync sweep finished: %d connect attempt(s)", attempted)
        return attempted
