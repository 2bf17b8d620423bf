"""Dedup/write gateway — idempotent activity writes into source feeds."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from feedagator.activity import Activity
from feedagator.errors import DuplicateWrite, WriteFailed
from feedagator.storage.feed_store import FeedRef, FeedStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a single gateway write."""

    status: str  # "written", "duplicate" or "failed"
    activity: Activity
    record: dict | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != "failed"


class WriteGateway:
    """Wraps the store's append so that a foreign id lands at most once per feed.

    A duplicate is reported as a successful no-op. Storage errors and
    timeouts are retried with exponential backoff
    (``backoff_seconds * 2**attempt``). Never raises for per-write failures.

    A timed-out attempt cannot be stopped once the store has started it, so
    it is kept and may still commit. A later ``DuplicateWrite`` is checked
    against those attempts, and before a write is reported "failed" they
    are given ``settle_timeout`` seconds to finish. The reported status is
    the one the store actually reached.
    """

    def __init__(
        self,
        store: FeedStore,
        *,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        settle_timeout: float = 30.0,
    ) -> None:
        self._store = store
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._backoff_seconds = backoff_seconds
        self._settle_timeout = settle_timeout

    async def write(self, feed: FeedRef, activity: Activity) -> WriteResult:
        last_error = ""
        timed_out: list[asyncio.Task] = []
        for attempt in range(self._max_retries):
            task = asyncio.ensure_future(self._store.add_activity(feed, activity))
            task.add_done_callback(_retrieve_exception)
            done, _ = await asyncio.wait({task}, timeout=self._timeout)

            if not done:
                timed_out.append(task)
                last_error = f"Write to {feed} timed out after {self._timeout}s"
            else:
                try:
                    record = task.result()
                except DuplicateWrite:
                    settled = await self._settle(timed_out)
                    if settled is not None and settled[0] == "written":
                        logger.info("Wrote %s to %s (after timeout)", activity.foreign_id, feed)
                        return WriteResult(status="written", activity=activity, record=settled[1])
                    logger.info("Duplicate %s in %s, skipping", activity.foreign_id, feed)
                    return WriteResult(status="duplicate", activity=activity)
                except WriteFailed as exc:
                    last_error = exc.message
                else:
                    logger.info("Wrote %s to %s", activity.foreign_id, feed)
                    return WriteResult(status="written", activity=activity, record=record)

            logger.warning(
                "Write of %s to %s failed (attempt %d/%d): %s",
                activity.foreign_id, feed, attempt + 1, self._max_retries, last_error,
            )
            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_seconds * 2 ** attempt)

        settled = await self._settle(timed_out)
        if settled is not None:
            status, record = settled
            logger.info("Timed-out write of %s to %s settled as %s", activity.foreign_id, feed, status)
            return WriteResult(status=status, activity=activity, record=record)
        return WriteResult(status="failed", activity=activity, error=last_error)

    async def _settle(self, attempts: list[asyncio.Task]) -> tuple[str, dict | None] | None:
        """Wait for timed-out attempts and return what the store did with them.

        Returns ("written", record), ("duplicate", None), or None when no
        attempt stored anything. Attempts still running after
        ``settle_timeout`` are cancelled.
        """
        if not attempts:
            return None
        done, pending = await asyncio.wait(attempts, timeout=self._settle_timeout)
        for task in pending:
            task.cancel()

        outcome = None
        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is None:
                return "written", task.result()
            if isinstance(exc, DuplicateWrite):
                outcome = ("duplicate", None)
        return outcome


def _retrieve_exception(task: asyncio.Task) -> None:
    # Marks abandoned attempts' errors as seen; outcomes are read in write().
    if not task.cancelled():
        task.exception()
