"""Tests for feedagator.ingestion.rss_adapter."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest

from feedagator.errors import FetchTimeout, MalformedSourceItem, UpstreamUnreachable
from feedagator.ingestion.adapter import RawItem
from feedagator.ingestion.rss_adapter import RSSAdapter, _parse_pub_date, strip_html

# --- Sample feed XML ---

SAMPLE_RSS = """\
<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>BBC News</title>
    <item>
      <title>Budget unveiled</title>
      <link>https://www.bbc.co.uk/news/article-1</link>
      <guid isPermaLink="false">bbc-1</guid>
      <description>&lt;p&gt;Chancellor sets out spending plans.&lt;/p&gt;</description>
      <pubDate>Sun, 15 Jun 2025 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Storm warning</title>
      <link>https://www.bbc.co.uk/news/article-2</link>
      <description>Heavy rain expected overnight.</description>
      <pubDate>Sun, 15 Jun 2025 11:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Cup final preview</title>
      <link>https://www.bbc.co.uk/news/article-3</link>
      <description>Both sides at full strength.</description>
    </item>
  </channel>
</rss>
"""

SAMPLE_ATOM = """\
<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Feed</title>
  <entry>
    <id>urn:uuid:live-1</id>
    <title>Election live</title>
    <link href="https://example.com/live-1"/>
    <summary>Results as they come in.</summary>
    <updated>2025-06-15T10:00:00Z</updated>
  </entry>
</feed>
"""


def _fetch(handler, max_items=50, url="https://feeds.example.com/rss.xml"):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            adapter = RSSAdapter("bbc", client, max_items=max_items)
            adapter.configure({"url": url})
            return await adapter.fetch()
    return asyncio.run(run())


def _serve(text, status=200):
    def handler(request):
        return httpx.Response(status, text=text)
    return handler


class TestStripHtml:
    def test_removes_tags(self):
        assert strip_html("<p>Hello <b>world</b></p>") == "Hello world"

    def test_unescapes_entities(self):
        assert strip_html("Fish &amp; chips") == "Fish & chips"

    def test_collapses_whitespace(self):
        assert strip_html("<p>one</p>\n\n  <p>two</p>") == "one two"


class TestParsePubDate:
    def test_rfc822(self):
        assert _parse_pub_date({"published": "Sun, 15 Jun 2025 10:00:00 GMT"}).startswith(
            "2025-06-15T10:00:00"
        )

    def test_parsed_tuple_fallback(self):
        entry = {"updated": "not a date", "updated_parsed": (2025, 6, 15, 10, 0, 0, 6, 166, 0)}
        assert _parse_pub_date(entry) == "2025-06-15T10:00:00+00:00"

    def test_iso8601(self):
        assert _parse_pub_date({"updated": "2025-06-15T10:00:00Z"}) == "2025-06-15T10:00:00+00:00"

    def test_missing(self):
        assert _parse_pub_date({}) is None


class TestRSSFetch:
    def test_fetches_entries(self):
        items = _fetch(_serve(SAMPLE_RSS))
        assert len(items) == 3
        assert all(item.source == "bbc" for item in items)
        assert items[0].data["link"] == "https://www.bbc.co.uk/news/article-1"

    def test_respects_max_items(self):
        items = _fetch(_serve(SAMPLE_RSS), max_items=2)
        assert len(items) == 2

    def test_atom_feed(self):
        items = _fetch(_serve(SAMPLE_ATOM))
        assert len(items) == 1
        assert items[0].data["title"] == "Election live"

    def test_http_error_raises(self):
        with pytest.raises(UpstreamUnreachable):
            _fetch(_serve("", status=500))

    def test_timeout_raises(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(FetchTimeout):
            _fetch(handler)

    def test_unparseable_document_raises(self):
        with pytest.raises(UpstreamUnreachable, match="Unparseable"):
            _fetch(_serve("this is <not xml"))

    def test_missing_url_raises(self):
        adapter = RSSAdapter("bbc", MagicMock())
        adapter.configure({})
        with pytest.raises(UpstreamUnreachable, match="No feed URL"):
            asyncio.run(adapter.fetch())


class TestRSSNormalize:
    def _items(self):
        return _fetch(_serve(SAMPLE_RSS))

    def test_maps_fields(self):
        adapter = RSSAdapter("bbc", MagicMock())
        article = adapter.normalize(self._items()[0])
        assert article.verb == "article"
        assert article.actor == "bbc"
        assert article.object == "https://www.bbc.co.uk/news/article-1"
        assert article.foreign_id == "bbc-1"
        assert article.title == "Budget unveiled"
        assert article.abstract == "Chancellor sets out spending plans."
        assert article.published_at.startswith("2025-06-15T10:00:00")

    def test_foreign_id_falls_back_to_link(self):
        adapter = RSSAdapter("bbc", MagicMock())
        article = adapter.normalize(self._items()[2])
        assert article.foreign_id == "https://www.bbc.co.uk/news/article-3"
        assert article.published_at is None

    def test_entry_without_link_is_malformed(self):
        adapter = RSSAdapter("bbc", MagicMock())
        with pytest.raises(MalformedSourceItem):
            adapter.normalize(RawItem("bbc", {"title": "No link"}))
