"""RSS/Atom feed source adapter."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from html import unescape

import feedparser
import httpx

from feedagator.activity import Article
from feedagator.errors import FetchTimeout, UpstreamUnreachable
from feedagator.ingestion.adapter import PollAdapter, RawItem

logger = logging.getLogger(__name__)

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_html(text: str) -> str:
    """Remove HTML tags, unescape entities, and collapse whitespace."""
    text = unescape(_HTML_TAG_RE.sub("", text))
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_date(raw: str | None) -> str | None:
    """Parse an RFC 822 or ISO 8601 date string into ISO 8601, or None."""
    if not raw:
        return None
    try:
        return parsedate_to_datetime(raw).isoformat()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(raw.strip().replace("Z", "+00:00")).isoformat()
    except ValueError:
        return None


def _parse_pub_date(entry: dict) -> str | None:
    """Extract and normalize the publication date from a feed entry."""
    normalized = normalize_date(entry.get("published") or entry.get("updated"))
    if normalized:
        return normalized
    # feedparser sometimes provides a parsed tuple
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if parsed:
        try:
            dt = datetime(*parsed[:6], tzinfo=timezone.utc)
            return dt.isoformat()
        except (ValueError, TypeError):
            pass
    return None


def _get_snippet(entry: dict) -> str | None:
    """Plain-text snippet of the entry summary."""
    summary = entry.get("summary") or entry.get("description") or ""
    return strip_html(summary) or None


class RSSAdapter(PollAdapter):
    """Adapter for a single RSS or Atom feed."""

    def __init__(
        self,
        source_name: str,
        http_client: httpx.AsyncClient,
        max_items: int = 50,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(source_name, http_client, max_items, timeout)
        self._url: str | None = None

    @property
    def name(self) -> str:
        return "rss"

    def configure(self, config: dict) -> None:
        """Accept feed configuration.

        Expected format: {"url": "https://.../rss.xml"}
        """
        self._url = config.get("url")

    async def fetch(self) -> list[RawItem]:
        """Fetch and parse the configured feed."""
        if not self._url:
            raise UpstreamUnreachable(f"No feed URL configured for '{self.source_name}'")

        try:
            response = await self._http.get(
                self._url, timeout=self._timeout, follow_redirects=True
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FetchTimeout(f"Timed out fetching {self._url}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnreachable(f"Failed to fetch {self._url}: {exc}") from exc

        feed = feedparser.parse(response.text)
        if feed.bozo and not feed.entries:
            raise UpstreamUnreachable(
                f"Unparseable feed at {self._url}: {feed.get('bozo_exception')}"
            )

        items = [
            RawItem(source=self.source_name, data=dict(entry))
            for entry in feed.entries[: self._max_items]
        ]
        logger.info("Fetched %d items from %s", len(items), self._url)
        return items

    def normalize(self, raw: RawItem) -> Article:
        entry = raw.data
        link = (entry.get("link") or "").strip()
        foreign_id = (entry.get("id") or entry.get("guid") or link).strip()
        title = (entry.get("title") or "").strip()
        return Article(
            actor=raw.source,
            object=link,
            foreign_id=foreign_id,
            title=title or None,
            abstract=_get_snippet(entry),
            published_at=_parse_pub_date(entry),
        )
