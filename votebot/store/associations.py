from typing import Optional

import redis

from votebot.logger import get_logger
from votebot.models import Association
from votebot.store.keys import (
    ACTIVE_PREFIX,
    ASSOCIATION_PREFIX,
    ASSOCIATION_SEQ,
    ISSUE_INDEX_PREFIX,
)
from votebot.store.redis_client import get_redis


logger = get_logger("votebot.store.associations")


class PersistenceFailure(Exception):
    """
    Raised when an association cannot be read or written.
    """
    pass


# =========================================================
# Row encoding
# =========================================================

def _row_key(association_id) -> str:
    return f"{ASSOCIATION_PREFIX}{association_id}"


def _encode(record: Association) -> dict:
    return {
        "id": record.id,
        "repo_id": record.repo_id,
        "discussion_id": record.discussion_id,
        "issue_id": record.issue_id,
        "is_tracking": 1 if record.is_tracking else 0,
        "ref_comment_id": record.ref_comment_id or "",
    }


def _decode(data: dict) -> Association:
    return Association(
        id=int(data["id"]),
        repo_id=data.get("repo_id", ""),
        discussion_id=data.get("discussion_id", ""),
        issue_id=data.get("issue_id", ""),
        is_tracking=str(data.get("is_tracking")) == "1",
        ref_comment_id=data.get("ref_comment_id") or None,
    )


class AssociationStore:
    """
    Append-mostly table of issue ↔ discussion links kept in Redis.

    Rows are never removed. The active pointer of an issue always names
    the one row that is still tracking, which keeps "at most one tracking
    row per issue" true across forced re-connects.
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client

    @property
    def redis(self) -> redis.Redis:
        return self._client if self._client is not None else get_redis()

    def exists_for_issue(self, issue_id: str) -> bool:
        try:
            return bool(self.redis.exists(f"{ISSUE_INDEX_PREFIX}{issue_id}"))
        except redis.RedisError as exc:
            logger.exception("Failed to check associations of issue %s", issue_id)
            raise PersistenceFailure(f"exists_for_issue({issue_id})") from exc

    def find_active_for_issue(self, issue_id: str) -> Optional[Association]:
        r = self.redis
        try:
            active_id = r.get(f"{ACTIVE_PREFIX}{issue_id}")
            if not active_id:
                return None

            data = r.hgetall(_row_key(active_id))
        except redis.RedisError as exc:
            logger.exception("Failed to load active association of issue %s", issue_id)
            raise PersistenceFailure(f"find_active_for_issue({issue_id})") from exc

        if not data:
            logger.warning("Dangling active pointer for issue %s -> %s", issue_id, active_id)
            return None

        record = _decode(data)
        return record if record.is_tracking else None

    def list_for_issue(self, issue_id: str) -> list[Association]:
        r = self.redis
        try:
            ids = sorted(int(i) for i in r.smembers(f"{ISSUE_INDEX_PREFIX}{issue_id}"))
            rows = [r.hgetall(_row_key(i)) for i in ids]
        except redis.RedisError as exc:
            logger.exception("Failed to list associations of issue %s", issue_id)
            raise PersistenceFailure(f"list_for_issue({issue_id})") from exc

        return [_decode(row) for row in rows if row]

    def insert(self, record: Association) -> Association:
        r = self.redis
        active_key = f"{ACTIVE_PREFIX}{record.issue_id}"

        try:
            record.id = int(r.incr(ASSOCIATION_SEQ))
            previous_id = r.get(active_key)

            pipe = r.pipeline(transaction=True)
            if previous_id and record.is_tracking:
                pipe.hset(_row_key(previous_id), "is_tracking", 0)
            pipe.hset(_row_key(record.id), mapping=_encode(record))
            pipe.sadd(f"{ISSUE_INDEX_PREFIX}{record.issue_id}", record.id)
            if record.is_tracking:
                pipe.set(active_key, record.id)
            pipe.execute()
        except redis.RedisError as exc:
            logger.exception("Failed to insert association for issue %s", record.issue_id)
            raise PersistenceFailure(f"insert({record.issue_id})") from exc

        if previous_id and record.is_tracking:
            logger.info(
                "Association %s superseded by %s for issue %s",
                previous_id,
                record.id,
                record.issue_id,
            )

        return record

    def mark_untracked(self, record: Association) -> Association:
        r = self.redis
        active_key = f"{ACTIVE_PREFIX}{record.issue_id}"

        try:
            pipe = r.pipeline(transaction=True)
            pipe.hset(_row_key(record.id), "is_tracking", 0)
            pipe.get(active_key)
            _, active_id = pipe.execute()

            if active_id is not None and str(active_id) == str(record.id):
                r.delete(active_key)
        except redis.RedisError as exc:
            logger.exception("Failed to untrack association %s", record.id)
            raise PersistenceFailure(f"mark_untracked({record.id})") from exc

        record.is_tracking = False
        return record
