"""Feed store — users, feeds, follows, and activity storage.

``FeedStore`` is the capability interface the rest of the system depends
on. ``SQLiteFeedStore`` is the local implementation: it keeps the same
contract a hosted feed service offers (user tokens, get-or-create users,
idempotent follows, append-only activities keyed by foreign id) and does
fan-out on read for personal feeds.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generator

import jwt

from feedagator.activity import Activity, activity_from_record
from feedagator.errors import DuplicateWrite, WriteFailed
from feedagator.storage.connection import get_connection
from feedagator.storage.schema import init_db

logger = logging.getLogger(__name__)

FEED_GROUPS = frozenset({"user", "source"})


@dataclass(frozen=True)
class FeedRef:
    """Identifies a feed by group and id, e.g. ``source:reddit``."""

    group: str
    id: str

    def __str__(self) -> str:
        return f"{self.group}:{self.id}"

    @classmethod
    def parse(cls, value: str) -> FeedRef:
        group, sep, feed_id = value.partition(":")
        if not sep or not group or not feed_id:
            raise ValueError(f"Feed reference '{value}' must look like 'group:id'")
        return cls(group, feed_id)


class FeedStore(ABC):
    """Capability interface over the feed storage service."""

    @abstractmethod
    def create_user_token(self, user_id: str) -> str:
        """Issue a client access token for the given identity."""

    @abstractmethod
    async def get_or_create_user(self, user_id: str, data: dict) -> dict:
        """Return the user, creating it with ``data`` if absent."""

    @abstractmethod
    async def get_or_create_feed(self, feed: FeedRef) -> FeedRef:
        """Ensure the feed exists."""

    @abstractmethod
    async def follow(self, follower: FeedRef, target: FeedRef) -> bool:
        """Make ``follower`` follow ``target``. Returns False if already following."""

    @abstractmethod
    async def following(self, follower: FeedRef) -> list[FeedRef]:
        """Return the feeds ``follower`` follows."""

    @abstractmethod
    async def add_activity(self, feed: FeedRef, activity: Activity) -> dict:
        """Append an activity to a feed.

        Raises DuplicateWrite if the feed already holds the foreign id and
        WriteFailed on storage errors.
        """

    @abstractmethod
    async def read_feed(
        self, feed: FeedRef, *, limit: int = 25, offset: int = 0
    ) -> tuple[list[dict], int]:
        """Return (activities newest first, total count) visible in a feed."""

    @abstractmethod
    async def ping(self) -> None:
        """Raise if the store is not reachable."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _storage_errors(action: str) -> Generator[None, None, None]:
    """Report sqlite failures as retryable write failures."""
    try:
        yield
    except sqlite3.Error as exc:
        raise WriteFailed(f"Cannot {action}: {exc}") from exc


def _row_to_activity(row: sqlite3.Row) -> dict:
    """Rebuild a stored row as its typed activity, then flatten it for reading.

    Display fields the activity's variant does not define are dropped.
    """
    activity = activity_from_record(
        {
            **json.loads(row["extra"]),
            "actor": row["actor"],
            "verb": row["verb"],
            "object": row["object"],
            "foreign_id": row["foreign_id"],
        }
    )
    return {
        "id": row["id"],
        "feed": f"{row['feed_group']}:{row['feed_id']}",
        **activity.to_record(),
        "time": row["time"],
    }


class SQLiteFeedStore(FeedStore):
    """Feed store backed by a single SQLite database file.

    Blocking sqlite3 calls run in worker threads so callers on the event
    loop are only suspended, never blocked.
    """

    def __init__(self, database_path: str, api_secret: str) -> None:
        self._database_path = database_path
        self._api_secret = api_secret

    @property
    def database_path(self) -> str:
        return self._database_path

    @classmethod
    def open(cls, database_path: str, api_secret: str) -> SQLiteFeedStore:
        """Create the schema if needed and return a store handle."""
        init_db(database_path)
        return cls(database_path, api_secret)

    # -- tokens -------------------------------------------------------------

    def create_user_token(self, user_id: str) -> str:
        return jwt.encode({"user_id": user_id}, self._api_secret, algorithm="HS256")

    # -- users and feeds ----------------------------------------------------

    async def get_or_create_user(self, user_id: str, data: dict) -> dict:
        return await asyncio.to_thread(self._get_or_create_user, user_id, data)

    def _get_or_create_user(self, user_id: str, data: dict) -> dict:
        with _storage_errors(f"create user '{user_id}'"), get_connection(
            self._database_path, immediate=True
        ) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO users (id, data, created_at) VALUES (?, ?, ?)",
                (user_id, json.dumps(data), _now()),
            )
            row = conn.execute(
                "SELECT id, data, created_at FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return {"id": row["id"], "data": json.loads(row["data"]), "created_at": row["created_at"]}

    async def get_or_create_feed(self, feed: FeedRef) -> FeedRef:
        if feed.group not in FEED_GROUPS:
            raise ValueError(
                f"Unknown feed group '{feed.group}'; must be one of: {', '.join(sorted(FEED_GROUPS))}"
            )
        await asyncio.to_thread(self._get_or_create_feed, feed)
        return feed

    def _get_or_create_feed(self, feed: FeedRef) -> None:
        with _storage_errors(f"create feed {feed}"), get_connection(self._database_path) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO feeds (feed_group, feed_id, created_at) VALUES (?, ?, ?)",
                (feed.group, feed.id, _now()),
            )

    # -- follows ------------------------------------------------------------

    async def follow(self, follower: FeedRef, target: FeedRef) -> bool:
        return await asyncio.to_thread(self._follow, follower, target)

    def _follow(self, follower: FeedRef, target: FeedRef) -> bool:
        with _storage_errors(f"follow {target}"), get_connection(
            self._database_path, immediate=True
        ) as conn:
            for feed in (follower, target):
                conn.execute(
                    "INSERT OR IGNORE INTO feeds (feed_group, feed_id, created_at) "
                    "VALUES (?, ?, ?)",
                    (feed.group, feed.id, _now()),
                )
            cursor = conn.execute(
                "INSERT OR IGNORE INTO follows "
                "(follower_group, follower_id, target_group, target_id, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (follower.group, follower.id, target.group, target.id, _now()),
            )
            created = cursor.rowcount == 1
        if created:
            logger.info("%s now follows %s", follower, target)
        return created

    async def following(self, follower: FeedRef) -> list[FeedRef]:
        return await asyncio.to_thread(self._following, follower)

    def _following(self, follower: FeedRef) -> list[FeedRef]:
        with get_connection(self._database_path) as conn:
            rows = conn.execute(
                "SELECT target_group, target_id FROM follows "
                "WHERE follower_group = ? AND follower_id = ? "
                "ORDER BY target_group, target_id",
                (follower.group, follower.id),
            ).fetchall()
        return [FeedRef(r["target_group"], r["target_id"]) for r in rows]

    # -- activities ---------------------------------------------------------

    async def add_activity(self, feed: FeedRef, activity: Activity) -> dict:
        return await asyncio.to_thread(self._add_activity, feed, activity)

    def _add_activity(self, feed: FeedRef, activity: Activity) -> dict:
        record = {
            "id": str(uuid.uuid4()),
            "feed": str(feed),
            **activity.to_record(),
            "time": _now(),
        }
        try:
            with get_connection(self._database_path) as conn:
                conn.execute(
                    "INSERT INTO activities "
                    "(id, feed_group, feed_id, actor, verb, object, foreign_id, extra, time) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record["id"],
                        feed.group,
                        feed.id,
                        activity.actor,
                        activity.verb,
                        activity.object,
                        activity.foreign_id,
                        json.dumps(activity.display_fields()),
                        record["time"],
                    ),
                )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise DuplicateWrite(
                    f"{feed} already holds foreign_id '{activity.foreign_id}'"
                ) from exc
            raise WriteFailed(f"Cannot write to {feed}: {exc}") from exc
        except sqlite3.Error as exc:
            raise WriteFailed(f"Cannot write to {feed}: {exc}") from exc
        return record

    async def read_feed(
        self, feed: FeedRef, *, limit: int = 25, offset: int = 0
    ) -> tuple[list[dict], int]:
        return await asyncio.to_thread(self._read_feed, feed, limit, offset)

    def _read_feed(self, feed: FeedRef, limit: int, offset: int) -> tuple[list[dict], int]:
        # A feed shows its own activities plus those of every feed it follows.
        where = (
            "WHERE (a.feed_group = ? AND a.feed_id = ?) "
            "OR EXISTS (SELECT 1 FROM follows f "
            "WHERE f.follower_group = ? AND f.follower_id = ? "
            "AND f.target_group = a.feed_group AND f.target_id = a.feed_id)"
        )
        params = [feed.group, feed.id, feed.group, feed.id]
        with get_connection(self._database_path) as conn:
            total = conn.execute(
                f"SELECT COUNT(*) FROM activities a {where}", params
            ).fetchone()[0]
            rows = conn.execute(
                f"SELECT a.* FROM activities a {where} "
                "ORDER BY a.time DESC, a.id DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
        return [_row_to_activity(r) for r in rows], total

    async def ping(self) -> None:
        await asyncio.to_thread(self._ping)

    def _ping(self) -> None:
        with get_connection(self._database_path) as conn:
            conn.execute("SELECT 1")
