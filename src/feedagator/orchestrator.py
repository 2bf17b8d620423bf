"""Ingestion orchestrator — poll and webhook runs into source feeds.

A run moves through Fetching -> Normalizing -> Writing -> Done. Items are
normalized and written concurrently and independently: one bad item never
stops its siblings, and the run only returns once every item has reached
a terminal outcome (written, duplicate or failed). A run that cannot even
fetch its source raises.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

import httpx

from feedagator.errors import FeedagatorError, MalformedSourceItem, WriteFailed
from feedagator.gateway import WriteGateway
from feedagator.ingestion.adapter import PollAdapter, PushAdapter, RawItem
from feedagator.ingestion.registry import get_adapter_class
from feedagator.sources import SourceConfig, SourceTable
from feedagator.storage.feed_store import FeedRef, FeedStore
from feedagator.storage.runs import record_run

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemError:
    """Why a single item in a run did not make it into its feed."""

    item: str
    kind: str
    message: str


@dataclass(frozen=True)
class RunResult:
    """Aggregate outcome of one ingestion run."""

    source: str
    run_type: str
    written: int = 0
    duplicate: int = 0
    failed: int = 0
    errors: list[ItemError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.written + self.duplicate + self.failed

    def to_dict(self) -> dict:
        return {
            "written": self.written,
            "duplicate": self.duplicate,
            "failed": self.failed,
            "errors": [asdict(e) for e in self.errors],
        }


def _item_key(raw: RawItem, index: int) -> str:
    data = raw.data
    key = data.get("id") or data.get("link") or data.get("url")
    return str(key) if key else f"#{index}"


class IngestionOrchestrator:
    def __init__(
        self,
        store: FeedStore,
        gateway: WriteGateway,
        sources: SourceTable,
        http_client: httpx.AsyncClient,
        *,
        database_path: str,
        max_items_per_source: int = 50,
        fetch_timeout: float = 30.0,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._sources = sources
        self._http = http_client
        self._database_path = database_path
        self._max_items = max_items_per_source
        self._fetch_timeout = fetch_timeout

    # -- adapters -------------------------------------------------------------

    def _poll_adapter(self, source: SourceConfig) -> PollAdapter:
        adapter_cls = get_adapter_class(source.poll_type or "", PollAdapter)
        if adapter_cls is None:
            raise FeedagatorError(
                f"Source '{source.name}' has no usable poll adapter ({source.poll_type})"
            )
        adapter = adapter_cls(source.name, self._http, self._max_items, self._fetch_timeout)
        adapter.configure(source.poll or {})
        return adapter

    def _push_adapter(self, source: SourceConfig) -> PushAdapter:
        adapter_cls = get_adapter_class(source.webhook or "", PushAdapter)
        if adapter_cls is None:
            raise FeedagatorError(
                f"Source '{source.name}' has no usable webhook adapter ({source.webhook})"
            )
        return adapter_cls(source.name)

    # -- shared steps ---------------------------------------------------------

    async def _ensure_source(self, source: SourceConfig) -> FeedRef:
        """Make sure the source identity and its feed exist."""
        await self._store.get_or_create_user(source.name, {"name": source.name})
        return await self._store.get_or_create_feed(source.feed)

    async def _record(
        self,
        run_type: str,
        source: str,
        started_at: str,
        result: dict,
        error: str | None = None,
    ) -> None:
        """Log the run; a failing run log never changes the run's outcome."""
        try:
            await asyncio.to_thread(
                record_run, self._database_path, run_type, source, started_at, result, error
            )
        except sqlite3.Error:
            logger.exception("Could not record %s run for '%s'", run_type, source)

    async def _ingest_one(
        self, adapter: PollAdapter, feed: FeedRef, raw: RawItem, index: int
    ) -> tuple[str, ItemError | None]:
        try:
            activity = adapter.normalize(raw)
        except MalformedSourceItem as exc:
            logger.warning("Skipping malformed item %s: %s", _item_key(raw, index), exc.message)
            return "failed", ItemError(_item_key(raw, index), exc.kind, exc.message)

        result = await self._gateway.write(feed, activity)
        if result.ok:
            return result.status, None
        return "failed", ItemError(activity.foreign_id, WriteFailed.kind, result.error or "")

    # -- runs -----------------------------------------------------------------

    async def run_poll(self, source_name: str) -> RunResult:
        """Fetch a pull source and write every item into its source feed."""
        source = self._sources.get(source_name)
        started_at = datetime.now(timezone.utc).isoformat()

        try:
            feed = await self._ensure_source(source)
            adapter = self._poll_adapter(source)
            raw_items = await adapter.fetch()
        except FeedagatorError as exc:
            logger.error("Poll run for '%s' failed: %s", source.name, exc.message)
            await self._record("poll", source.name, started_at, {}, error=exc.message)
            raise

        outcomes = await asyncio.gather(
            *(
                self._ingest_one(adapter, feed, raw, i)
                for i, raw in enumerate(raw_items)
            ),
            return_exceptions=True,
        )

        counts = {"written": 0, "duplicate": 0, "failed": 0}
        errors: list[ItemError] = []
        for i, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(
                    "Unexpected error ingesting item %s from '%s'",
                    _item_key(raw_items[i], i), source.name, exc_info=outcome,
                )
                counts["failed"] += 1
                errors.append(ItemError(_item_key(raw_items[i], i), "InternalError", str(outcome)))
                continue
            status, error = outcome
            counts[status] += 1
            if error is not None:
                errors.append(error)

        result = RunResult(source=source.name, run_type="poll", errors=errors, **counts)
        await self._record("poll", source.name, started_at, result.to_dict())
        logger.info(
            "Poll run for '%s' complete: %d written, %d duplicate, %d failed",
            source.name, result.written, result.duplicate, result.failed,
        )
        return result

    async def run_poll_all(self) -> list[RunResult]:
        """Poll every source that has a poll adapter, concurrently.

        Every run completes before this returns. If any source could not be
        fetched, that error is raised afterwards.
        """
        sources = self._sources.pollable()
        outcomes = await asyncio.gather(
            *(self.run_poll(s.name) for s in sources), return_exceptions=True
        )

        results: list[RunResult] = []
        failures: list[FeedagatorError] = []
        for outcome in outcomes:
            if isinstance(outcome, FeedagatorError):
                failures.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)

        if len(failures) == 1:
            raise failures[0]
        if failures:
            first = failures[0]
            raise type(first)("; ".join(f.message for f in failures))
        return results

    async def run_webhook(self, name: str, payload: dict) -> RunResult:
        """Normalize and write one pushed item.

        ``name`` is the source name or one of its webhook aliases. Raises
        UnknownSource, MalformedSourceItem (nothing is written) or
        WriteFailed.
        """
        source = self._sources.for_webhook(name)
        started_at = datetime.now(timezone.utc).isoformat()

        try:
            feed = await self._ensure_source(source)
            adapter = self._push_adapter(source)
            activity = adapter.normalize(adapter.parse(payload))
            write = await self._gateway.write(feed, activity)
            if not write.ok:
                raise WriteFailed(write.error or f"Write to {feed} failed")
        except FeedagatorError as exc:
            logger.warning("Webhook for '%s' rejected: %s", source.name, exc.message)
            await self._record("webhook", source.name, started_at, {}, error=exc.message)
            raise

        result = RunResult(source=source.name, run_type="webhook", **{write.status: 1})
        await self._record("webhook", source.name, started_at, result.to_dict())
        return result
