"""Source table — which external sources exist and how each is ingested.

Each entry maps a source name to its source feed, the adapter type (and
options) used to poll it, and the adapter type used for its webhook.
Registration follows every feed in this table; the orchestrator polls
every entry with a poll adapter.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

import feedagator.ingestion  # noqa: F401  registers adapters
from feedagator.errors import UnknownSource
from feedagator.ingestion.adapter import PollAdapter, PushAdapter
from feedagator.ingestion.registry import get_adapter_class
from feedagator.storage.feed_store import FeedRef

logger = logging.getLogger(__name__)

SOURCE_FEED_GROUP = "source"


@dataclass(frozen=True)
class SourceConfig:
    """One row of the source table."""

    name: str
    feed_id: str
    poll: dict | None = None
    webhook: str | None = None
    webhook_aliases: tuple[str, ...] = field(default_factory=tuple)

    @property
    def feed(self) -> FeedRef:
        return FeedRef(SOURCE_FEED_GROUP, self.feed_id)

    @property
    def poll_type(self) -> str | None:
        return self.poll.get("type") if self.poll else None


DEFAULT_SOURCES: tuple[SourceConfig, ...] = (
    SourceConfig(
        name="reddit",
        feed_id="reddit",
        poll={
            "type": "reddit_json",
            "url": "https://www.reddit.com/r/popular/top.json",
            "limit": 3,
        },
        webhook="reddit_webhook",
        webhook_aliases=("reddit-zapier",),
    ),
    SourceConfig(
        name="bbc",
        feed_id="bbc",
        poll={
            "type": "rss",
            "url": "http://feeds.bbci.co.uk/news/rss.xml?edition=uk",
        },
        webhook="bbc_webhook",
    ),
)


class SourceTable:
    """Immutable lookup over the configured sources."""

    def __init__(self, sources: tuple[SourceConfig, ...] | list[SourceConfig]) -> None:
        self._sources = tuple(sources)
        self._by_webhook: dict[str, SourceConfig] = {}
        for source in self._sources:
            for key in (source.name, *source.webhook_aliases):
                self._by_webhook[key] = source

    def __iter__(self):
        return iter(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._sources]

    def get(self, name: str) -> SourceConfig:
        for source in self._sources:
            if source.name == name:
                return source
        raise UnknownSource(f"Unknown source '{name}'")

    def for_webhook(self, name: str) -> SourceConfig:
        """Resolve a webhook path name (source name or alias)."""
        source = self._by_webhook.get(name)
        if source is None or source.webhook is None:
            raise UnknownSource(f"No webhook configured for '{name}'")
        return source

    def pollable(self) -> list[SourceConfig]:
        return [s for s in self._sources if s.poll is not None]


def _validate_source(source: SourceConfig) -> list[str]:
    errors: list[str] = []
    if not source.name:
        errors.append("name is required")
    if not source.feed_id:
        errors.append(f"source '{source.name}': feed_id is required")
    if source.poll is not None and get_adapter_class(source.poll_type or "", PollAdapter) is None:
        errors.append(f"source '{source.name}': unknown poll adapter '{source.poll_type}'")
    if source.webhook is not None and get_adapter_class(source.webhook, PushAdapter) is None:
        errors.append(f"source '{source.name}': unknown webhook adapter '{source.webhook}'")
    return errors


def load_sources(path: str | Path | None = None) -> SourceTable:
    """Build the source table from a JSON file, or the defaults if no path.

    File format:
    {
        "sources": [
            {"name": "...", "feed_id": "...", "poll": {"type": "...", ...},
             "webhook": "...", "webhook_aliases": ["..."]},
            ...
        ]
    }

    Raises ValueError listing every invalid entry.
    """
    if path is None:
        sources = list(DEFAULT_SOURCES)
    else:
        with open(path) as f:
            data = json.load(f)
        sources = [
            SourceConfig(
                name=entry.get("name", ""),
                feed_id=entry.get("feed_id") or entry.get("name", ""),
                poll=entry.get("poll"),
                webhook=entry.get("webhook"),
                webhook_aliases=tuple(entry.get("webhook_aliases", [])),
            )
            for entry in data.get("sources", [])
        ]

    errors = [e for source in sources for e in _validate_source(source)]
    names = [s.name for s in sources]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        errors.append(f"duplicate source names: {', '.join(duplicates)}")
    if errors:
        raise ValueError(f"Invalid sources config: {'; '.join(errors)}")

    logger.info("Loaded %d sources: %s", len(sources), ", ".join(names))
    return SourceTable(sources)
