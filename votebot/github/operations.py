from typing import Any, Awaitable, Callable, Iterable, Optional

from votebot.github.api import RemoteOperationFailure, graphql
from votebot.logger import get_logger
from votebot.models import DiscussionSnapshot, IssuePage, IssueSnapshot


logger = get_logger("votebot.github.operations")

PAGE_SIZE = 100

Executor = Callable[[str, Optional[dict]], Awaitable[Any]]


# =========================================================
# GraphQL documents
# =========================================================

LABEL_ID_QUERY = """
query($repoId: ID!, $name: String!) {
  node(id: $repoId) {
    ... on Repository {
      label(name: $name) { id }
    }
  }
}
"""

CATEGORY_ID_QUERY = """
query($repoId: ID!, $slug: String!) {
  node(id: $repoId) {
    ... on Repository {
      discussionCategory(slug: $slug) { id }
    }
  }
}
"""

ADD_LABELS_MUTATION = """
mutation($labelableId: ID!, $labelIds: [ID!]!) {
  addLabelsToLabelable(input: {labelableId: $labelableId, labelIds: $labelIds}) {
    clientMutationId
  }
}
"""

REMOVE_LABELS_MUTATION = """
mutation($labelableId: ID!, $labelIds: [ID!]!) {
  removeLabelsFromLabelable(input: {labelableId: $labelableId, labelIds: $labelIds}) {
    clientMutationId
  }
}
"""

ADD_COMMENT_MUTATION = """
mutation($subjectId: ID!, $body: String!) {
  addComment(input: {subjectId: $subjectId, body: $body}) {
    commentEdge { node { id } }
  }
}
"""

CREATE_DISCUSSION_MUTATION = """
mutation($repoId: ID!, $categoryId: ID!, $title: String!, $body: String!) {
  createDiscussion(input: {repositoryId: $repoId, categoryId: $categoryId, title: $title, body: $body}) {
    discussion { id url }
  }
}
"""

CLOSE_DISCUSSION_MUTATION = """
mutation($discussionId: ID!, $reason: DiscussionCloseReason!) {
  closeDiscussion(input: {discussionId: $discussionId, reason: $reason}) {
    clientMutationId
  }
}
"""

LOCK_MUTATION = """
mutation($lockableId: ID!) {
  lockLockable(input: {lockableId: $lockableId}) {
    clientMutationId
  }
}
"""

ISSUE_FIELDS = """
  id
  number
  title
  body
  url
  state
  author { login }
  labels(first: 100) { nodes { name } }
"""

ISSUE_QUERY = """
query($issueId: ID!) {
  node(id: $issueId) {
    ... on Issue {%s}
  }
}
""" % ISSUE_FIELDS

DISCUSSION_QUERY = """
query($discussionId: ID!) {
  node(id: $discussionId) {
    ... on Discussion { id url closed locked }
  }
}
"""

ISSUES_QUERY = """
query($repoId: ID!, $labels: [String!], $states: [IssueState!], $after: String, $first: Int!) {
  node(id: $repoId) {
    ... on Repository {
      issues(first: $first, after: $after, labels: $labels, states: $states) {
        pageInfo { endCursor hasNextPage }
        nodes {%s}
      }
    }
  }
}
""" % ISSUE_FIELDS


def _parse_issue(node: dict[str, Any]) -> IssueSnapshot:
    labels = (node.get("labels") or {}).get("nodes") or []
    author = node.get("author") or {}
    return IssueSnapshot(
        id=node["id"],
        number=int(node["number"]),
        title=node.get("title") or "",
        body=node.get("body") or "",
        url=node.get("url") or "",
        state=node.get("state") or "OPEN",
        labels=[l["name"] for l in labels if l and l.get("name")],
        author=author.get("login"),
    )


class RemoteOperations:
    """
    Thin wrappers over GitHub GraphQL mutations and queries.

    Nothing here checks remote state before acting; callers decide
    whether a call is needed.
    """

    def __init__(self, execute: Executor = graphql):
        self._execute = execute

    async def _node(self, query: str, variables: dict) -> Optional[dict]:
        data = await self._execute(query, variables)
        return (data or {}).get("node")

    async def resolve_label_id(self, repo_id: str, name: str) -> str:
        node = await self._node(LABEL_ID_QUERY, {"repoId": repo_id, "name": name})
        label = (node or {}).get("label")
        if not label:
            raise RemoteOperationFailure(f"Label {name!r} not found in {repo_id}")
        return label["id"]

    async def resolve_category_id(self, repo_id: str, slug: str) -> str:
        node = await self._node(CATEGORY_ID_QUERY, {"repoId": repo_id, "slug": slug})
        category = (node or {}).get("discussionCategory")
        if not category:
            raise RemoteOperationFailure(
                f"Discussion category {slug!r} not found in {repo_id}"
            )
        return category["id"]

    async def add_label(self, labelable_id: str, name: str, repo_id: str) -> None:
        label_id = await self.resolve_label_id(repo_id, name)
        await self._execute(
            ADD_LABELS_MUTATION,
            {"labelableId": labelable_id, "labelIds": [label_id]},
        )

    async def remove_label(self, labelable_id: str, name: str, repo_id: str) -> None:
        label_id = await self.resolve_label_id(repo_id, name)
        await self._execute(
            REMOVE_LABELS_MUTATION,
            {"labelableId": labelable_id, "labelIds": [label_id]},
        )

    async def add_comment(self, subject_id: str, body: str) -> str:
        data = await self._execute(
            ADD_COMMENT_MUTATION,
            {"subjectId": subject_id, "body": body},
        )
        try:
            return data["addComment"]["commentEdge"]["node"]["id"]
        except (KeyError, TypeError) as exc:
            raise RemoteOperationFailure("addComment returned no comment") from exc

    async def create_discussion(
        self,
        repo_id: str,
        category_slug: str,
        title: str,
        body: str,
    ) -> tuple[str, str]:
        category_id = await self.resolve_category_id(repo_id, category_slug)
        data = await self._execute(
            CREATE_DISCUSSION_MUTATION,
            {
                "repoId": repo_id,
                "categoryId": category_id,
                "title": title,
                "body": body,
            },
        )
        try:
            discussion = data["createDiscussion"]["discussion"]
            return discussion["id"], discussion["url"]
        except (KeyError, TypeError) as exc:
            raise RemoteOperationFailure(
                "createDiscussion returned no discussion"
            ) from exc

    async def close_discussion(self, discussion_id: str, reason: str = "RESOLVED") -> None:
        await self._execute(
            CLOSE_DISCUSSION_MUTATION,
            {"discussionId": discussion_id, "reason": reason},
        )

    async def lock_thread(self, lockable_id: str) -> None:
        await self._execute(LOCK_MUTATION, {"lockableId": lockable_id})

    async def find_issue(self, issue_id: str) -> Optional[IssueSnapshot]:
        """
        Like get_issue(), but a deleted or transferred issue gives None.
        """
        try:
            node = await self._node(ISSUE_QUERY, {"issueId": issue_id})
        except RemoteOperationFailure as exc:
            if exc.not_found:
                return None
            raise
        if not node:
            return None
        return _parse_issue(node)

    async def get_issue(self, issue_id: str) -> IssueSnapshot:
        issue = await self.find_issue(issue_id)
        if issue is None:
            raise RemoteOperationFailure(f"Issue {issue_id} not found")
        return issue

    async def get_discussion(self, discussion_id: str) -> Optional[DiscussionSnapshot]:
        node = await self._node(DISCUSSION_QUERY, {"discussionId": discussion_id})
        if not node:
            return None
        return DiscussionSnapshot(
            id=node["id"],
            url=node.get("url") or "",
            closed=bool(node.get("closed")),
            locked=bool(node.get("locked")),
        )

    async def list_issues(
        self,
        repo_id: str,
        labels: Iterable[str],
        cursor: Optional[str] = None,
        states: Optional[Iterable[str]] = None,
    ) -> IssuePage:
        node = await self._node(
            ISSUES_QUERY,
            {
                "repoId": repo_id,
                "labels": list(labels),
                "states": list(states) if states is not None else None,
                "after": cursor,
                "first": PAGE_SIZE,
            },
        )
        issues = (node or {}).get("issues")
        if issues is None:
            raise RemoteOperationFailure(f"Repository {repo_id} not found")

        page_info = issues.get("pageInfo") or {}
        return IssuePage(
            issues=[_parse_issue(n) for n in issues.get("nodes") or [] if n],
            end_cursor=page_info.get("endCursor"),
            has_next_page=bool(page_info.get("hasNextPage")),
        )

    async def list_open_issues(
        self,
        repo_id: str,
        labels: Iterable[str],
        cursor: Optional[str] = None,
    ) -> IssuePage:
        return await self.list_issues(repo_id, labels, cursor, states=["OPEN"])
