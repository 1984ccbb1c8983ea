import httpx
from typing import Any, Optional

from votebot.github.auth import get_installation_token
from votebot.logger import get_logger
from votebot.settings import GITHUB_API_URL


logger = get_logger("votebot.github.api")


class RemoteOperationFailure(Exception):
    """
    Raised when GitHub rejects a query or mutation.

    `error_types` holds the GraphQL error `type` values, if any.
    """

    def __init__(self, message: str, error_types: Optional[list[str]] = None):
        super().__init__(message)
        self.error_types = list(error_types or [])

    @property
    def not_found(self) -> bool:
        return "NOT_FOUND" in self.error_types


async def _headers() -> dict[str, str]:
    token = await get_installation_token()
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
    }


async def graphql(query: str, variables: Optional[dict] = None) -> Any:
    """
    Run a GraphQL query or mutation and return its `data` object.
    """
    headers = await _headers()
    url = f"{GITHUB_API_URL.rstrip('/')}/graphql"

    try:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.post(
                url,
                headers=headers,
                json={"query": query, "variables": variables or {}},
            )
    except httpx.HTTPError as exc:
        logger.exception("GraphQL request to %s failed", url)
        raise RemoteOperationFailure(f"GraphQL request failed: {exc}") from exc

    status = response.status_code

    if status in (401, 403):
        logger.warning("Access denied (%s) for GraphQL request", status)
        raise RemoteOperationFailure(f"Access denied or app uninstalled ({status})")

    if status >= 400:
        logger.error("GitHub API error %s for GraphQL request", status)
        raise RemoteOperationFailure(f"GitHub API error {status}")

    try:
        result = response.json()
    except ValueError as exc:
        logger.exception("Failed to decode GraphQL response")
        raise RemoteOperationFailure("Malformed GraphQL response") from exc

    errors = result.get("errors")
    if errors:
        messages = "; ".join(e.get("message", "unknown error") for e in errors)
        logger.warning("GraphQL errors: %s", messages)
        raise RemoteOperationFailure(messages, [e.get("type") for e in errors if e.get("type")])

    return result.get("data") or {}
