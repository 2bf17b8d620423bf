"""Reddit source adapter — polls a listing endpoint for top posts."""

from __future__ import annotations

import logging

import httpx

from feedagator.activity import Post
from feedagator.errors import FetchTimeout, UpstreamUnreachable
from feedagator.ingestion.adapter import PollAdapter, RawItem

logger = logging.getLogger(__name__)

_REDDIT_BASE = "https://www.reddit.com"
_DEFAULT_URL = f"{_REDDIT_BASE}/r/popular/top.json"
_USER_AGENT = "Feedagator/0.1 (feed-aggregator)"
_DEFAULT_LIMIT = 3


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _thumbnail(value: object) -> str | None:
    # Listings use placeholders such as "self", "default" or "nsfw".
    text = _text(value)
    if text and text.startswith(("http://", "https://")):
        return text
    return None


def _post_data(child: object) -> dict:
    """Unwrap a listing child ``{"kind": ..., "data": {...}}``."""
    if isinstance(child, dict) and isinstance(child.get("data"), dict):
        return child["data"]
    return {}


def reddit_post(source: str, data: dict, *, permalink_fallback: bool = False) -> Post:
    """Map Reddit post fields to a Post activity.

    With ``permalink_fallback`` a post without a ``url`` links to its
    comments page instead. Raises MalformedSourceItem.
    """
    url = _text(data.get("url"))
    if url is None and permalink_fallback:
        permalink = _text(data.get("permalink"))
        if permalink:
            url = f"{_REDDIT_BASE}{permalink}"

    return Post(
        actor=source,
        object=url or "",
        foreign_id=_text(data.get("id")) or "",
        title=_text(data.get("title")),
        url=url,
        subreddit=_text(data.get("subreddit")),
        thumbnail=_thumbnail(data.get("thumbnail")),
        author=_text(data.get("author")),
    )


class RedditAdapter(PollAdapter):
    """Adapter for a Reddit JSON listing (e.g. r/popular top posts)."""

    def __init__(
        self,
        source_name: str,
        http_client: httpx.AsyncClient,
        max_items: int = 50,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(source_name, http_client, max_items, timeout)
        self._url = _DEFAULT_URL
        self._limit = _DEFAULT_LIMIT

    @property
    def name(self) -> str:
        return "reddit_json"

    def configure(self, config: dict) -> None:
        self._url = config.get("url", _DEFAULT_URL)
        self._limit = int(config.get("limit", _DEFAULT_LIMIT))

    async def fetch(self) -> list[RawItem]:
        limit = min(self._limit, self._max_items)
        try:
            resp = await self._http.get(
                self._url,
                params={"limit": limit},
                headers={"User-Agent": _USER_AGENT},
                timeout=self._timeout,
                follow_redirects=True,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as exc:
            raise FetchTimeout(f"Timed out fetching {self._url}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamUnreachable(f"Failed to fetch {self._url}: {exc}") from exc

        listing = data.get("data") if isinstance(data, dict) else None
        children = listing.get("children") if isinstance(listing, dict) else None
        if not isinstance(children, list):
            raise UpstreamUnreachable(f"Unexpected listing shape from {self._url}")

        items = [
            RawItem(source=self.source_name, data=_post_data(child))
            for child in children[:limit]
        ]
        logger.info("Fetched %d items from %s", len(items), self._url)
        return items

    def normalize(self, raw: RawItem) -> Post:
        return reddit_post(raw.source, raw.data, permalink_fallback=True)
