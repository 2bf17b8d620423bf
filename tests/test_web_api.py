"""Integration tests for the Feedagator web API endpoints."""

from __future__ import annotations

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from feedagator.config import Config
from feedagator.errors import WriteFailed
from feedagator.storage.feed_store import SQLiteFeedStore
from feedagator.web.app import create_app

SECRET = "test-secret-that-is-long-enough-for-hs256"

SAMPLE_RSS = """\
<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>BBC News</title>
    <item><title>Budget</title><link>https://www.bbc.co.uk/news/1</link>
      <guid>bbc-1</guid><description>&lt;p&gt;The budget.&lt;/p&gt;</description>
      <pubDate>Mon, 16 Jun 2025 10:00:00 GMT</pubDate></item>
    <item><title>Weather</title><link>https://www.bbc.co.uk/news/2</link>
      <description>Rain.</description></item>
  </channel>
</rss>
"""


def _listing(*ids):
    return {
        "data": {
            "children": [
                {"data": {"id": pid, "url": f"https://i.redd.it/{pid}.jpg", "title": f"Post {pid}",
                          "subreddit": "pics", "author": "someone",
                          "thumbnail": f"https://b.thumbs.redditmedia.com/{pid}.jpg"}}
                for pid in ids
            ]
        }
    }


def _upstream(reddit_status=200):
    def handler(request):
        if request.url.host == "www.reddit.com":
            if reddit_status != 200:
                return httpx.Response(reddit_status)
            return httpx.Response(200, json=_listing("p1", "p2", "p3"))
        if request.url.host == "feeds.bbci.co.uk":
            return httpx.Response(200, text=SAMPLE_RSS)
        return httpx.Response(404)

    return handler


def _config(tmp_path):
    return Config(
        database_path=str(tmp_path / "test.db"),
        stream_api_key="stream-key",
        stream_api_secret=SECRET,
        stream_app_id="4242",
        write_max_retries=2,
        write_retry_backoff_seconds=0,
    )


def _client(tmp_path, reddit_status=200, store=None, **kwargs):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(_upstream(reddit_status)))
    app = create_app(_config(tmp_path), store=store, http_client=http_client)
    return TestClient(app, **kwargs)


@pytest.fixture()
def client(tmp_path):
    return _client(tmp_path)


class TestRegistration:
    def test_registers_and_returns_credentials(self, client):
        resp = client.post("/registration", json={"username": "Ada Lovelace"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["username"] == "ada_lovelace"
        assert data["streamApiKey"] == "stream-key"
        assert data["appId"] == "4242"
        claims = jwt.decode(data["userToken"], SECRET, algorithms=["HS256"])
        assert claims["user_id"] == "ada_lovelace"

    def test_personal_feed_follows_every_source(self, client):
        client.post("/registration", json={"username": "Ada Lovelace"})

        resp = client.get("/api/v1/feeds/user/ada_lovelace")

        assert resp.status_code == 200
        assert resp.json()["following"] == ["source:bbc", "source:reddit"]

    def test_reregistration_is_idempotent(self, client):
        first = client.post("/registration", json={"username": "ada lovelace"}).json()
        second = client.post("/registration", json={"username": "  Ada Lovelace "}).json()

        assert first["username"] == second["username"] == "ada_lovelace"
        feed = client.get("/api/v1/feeds/user/ada_lovelace").json()
        assert len(feed["following"]) == 2

    @pytest.mark.parametrize("body", [{"username": ""}, {"username": "   "}, {}])
    def test_missing_username(self, client, body):
        resp = client.post("/registration", json=body)

        assert resp.status_code == 400
        assert resp.json()["kind"] == "ValidationError"

    def test_non_string_username(self, client):
        resp = client.post("/registration", json={"username": ["ada"]})

        assert resp.status_code == 400
        data = resp.json()
        assert data["kind"] == "ValidationError"
        assert "username" in data["error"]


class TestInitialize:
    def test_populates_source_feeds(self, client):
        resp = client.post("/initialize")

        assert resp.status_code == 200
        assert resp.content == b""
        reddit = client.get("/api/v1/feeds/source/reddit").json()
        assert reddit["total"] == 3
        assert {a["foreign_id"] for a in reddit["activities"]} == {"p1", "p2", "p3"}
        assert client.get("/api/v1/feeds/source/bbc").json()["total"] == 2

    def test_second_initialize_adds_nothing(self, client):
        client.post("/initialize")
        assert client.post("/initialize").status_code == 200
        assert client.get("/api/v1/feeds/source/reddit").json()["total"] == 3

    def test_personal_feed_shows_followed_activity(self, client):
        client.post("/registration", json={"username": "grace"})
        client.post("/initialize")

        feed = client.get("/api/v1/feeds/user/grace").json()

        assert feed["total"] == 5
        assert {a["verb"] for a in feed["activities"]} == {"post", "article"}

    def test_upstream_failure(self, tmp_path):
        client = _client(tmp_path, reddit_status=503)

        resp = client.post("/initialize")

        assert resp.status_code == 502
        assert resp.json()["kind"] == "UpstreamUnreachable"
        # The healthy source still completed
        assert client.get("/api/v1/feeds/source/bbc").json()["total"] == 2

    def test_unexpected_error_is_500(self, tmp_path):
        client = _client(tmp_path, raise_server_exceptions=False)

        async def boom():
            raise RuntimeError("kaboom")

        client.app.state.orchestrator.run_poll_all = boom
        resp = client.post("/initialize")

        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error", "kind": "InternalError"}


class TestWebhooks:
    PAYLOAD = {
        "id": "zap1",
        "url": "https://example.com/zap1",
        "title": "From Zapier",
        "subreddit": "news",
        "author": "bot",
        "thumbnail": "default",
    }

    def test_reddit_webhook(self, client):
        resp = client.post("/reddit-webhook", json=self.PAYLOAD)

        assert resp.status_code == 200
        assert resp.content == b""
        activity = client.get("/api/v1/feeds/source/reddit").json()["activities"][0]
        assert activity["verb"] == "post"
        assert activity["actor"] == "reddit"
        assert activity["object"] == "https://example.com/zap1"
        assert activity["title"] == "From Zapier"
        assert activity["thumbnail"] is None

    def test_legacy_alias(self, client):
        assert client.post("/reddit-zapier-webhook", json=self.PAYLOAD).status_code == 200
        assert client.get("/api/v1/feeds/source/reddit").json()["total"] == 1

    def test_duplicate_delivery_is_success(self, client):
        client.post("/reddit-webhook", json=self.PAYLOAD)
        assert client.post("/reddit-webhook", json=self.PAYLOAD).status_code == 200
        assert client.get("/api/v1/feeds/source/reddit").json()["total"] == 1

    def test_missing_url(self, client):
        payload = {k: v for k, v in self.PAYLOAD.items() if k != "url"}

        resp = client.post("/reddit-webhook", json=payload)

        assert resp.status_code == 422
        assert resp.json()["kind"] == "MalformedSourceItem"
        assert client.get("/api/v1/feeds/source/reddit").json()["total"] == 0

    def test_non_object_body(self, client):
        resp = client.post("/reddit-webhook", json=["not", "an", "object"])
        assert resp.status_code == 422
        assert resp.json()["kind"] == "MalformedSourceItem"

    def test_bbc_webhook(self, client):
        resp = client.post(
            "/bbc-webhook",
            json={"link": "https://www.bbc.co.uk/news/7", "title": "Story", "blurb": "Short."},
        )

        assert resp.status_code == 200
        activity = client.get("/api/v1/feeds/source/bbc").json()["activities"][0]
        assert activity["verb"] == "article"
        assert activity["foreign_id"] == "https://www.bbc.co.uk/news/7"
        assert activity["abstract"] == "Short."

    def test_legacy_bbc_path(self, client):
        resp = client.post(
            "/bbc",
            json={"link": "https://www.bbc.co.uk/news/8", "title": "Story",
                  "date": "Mon, 16 Jun 2025 10:00:00 GMT"},
        )

        assert resp.status_code == 200
        activity = client.get("/api/v1/feeds/source/bbc").json()["activities"][0]
        assert activity["foreign_id"] == "https://www.bbc.co.uk/news/8"
        assert activity["published_at"] == "2025-06-16T10:00:00+00:00"

    def test_legacy_bbc_path_validates(self, client):
        resp = client.post("/bbc", json={"title": "No link"})
        assert resp.status_code == 422
        assert resp.json()["kind"] == "MalformedSourceItem"

    def test_unknown_source(self, client):
        resp = client.post("/github-webhook", json=self.PAYLOAD)
        assert resp.status_code == 404
        assert resp.json()["kind"] == "UnknownSource"

    def test_write_failure(self, tmp_path):
        class FailingStore(SQLiteFeedStore):
            async def add_activity(self, feed, activity):
                raise WriteFailed("disk full")

        store = FailingStore.open(str(tmp_path / "test.db"), SECRET)
        client = _client(tmp_path, store=store)

        resp = client.post("/reddit-webhook", json=self.PAYLOAD)

        assert resp.status_code == 503
        assert resp.json() == {"error": "disk full", "kind": "WriteFailed"}


class TestFeeds:
    def test_empty_feed(self, client):
        resp = client.get("/api/v1/feeds/source/reddit")

        assert resp.status_code == 200
        data = resp.json()
        assert data["feed"] == "source:reddit"
        assert data["activities"] == []
        assert data["total"] == 0
        assert data["pages"] == 0

    def test_post_and_article_fields(self, client):
        client.post("/initialize")

        post = client.get("/api/v1/feeds/source/reddit").json()["activities"][0]
        assert post["subreddit"] == "pics"
        assert "abstract" not in post

        articles = client.get("/api/v1/feeds/source/bbc").json()["activities"]
        budget = next(a for a in articles if a["foreign_id"] == "bbc-1")
        assert budget["abstract"] == "The budget."
        assert budget["published_at"].startswith("2025-06-16T10:00:00")
        assert "subreddit" not in budget

    def test_pagination(self, client):
        client.post("/initialize")

        resp = client.get("/api/v1/feeds/source/reddit", params={"per_page": 2, "page": 2})

        data = resp.json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert len(data["activities"]) == 1

    def test_unknown_group(self, client):
        resp = client.get("/api/v1/feeds/channel/reddit")
        assert resp.status_code == 400
        assert resp.json()["kind"] == "ValidationError"

    def test_invalid_per_page(self, client):
        resp = client.get("/api/v1/feeds/source/reddit", params={"per_page": 500})
        assert resp.status_code == 400


class TestRuns:
    def test_lists_runs(self, client):
        client.post("/initialize")
        client.post("/reddit-webhook", json={"id": "x", "url": "https://example.com/x"})

        data = client.get("/api/v1/runs").json()

        assert data["total"] == 3
        assert {r["run_type"] for r in data["runs"]} == {"poll", "webhook"}

    def test_filter_by_source(self, client):
        client.post("/initialize")

        data = client.get("/api/v1/runs", params={"source": "bbc"}).json()

        assert data["total"] == 1
        run = data["runs"][0]
        assert run["status"] == "success"
        assert run["result"]["written"] == 2

    def test_failed_run_carries_error(self, client):
        client.post("/reddit-webhook", json={"id": "x"})

        run = client.get("/api/v1/runs").json()["runs"][0]

        assert run["status"] == "error"
        assert run["result"] == {}
        assert "url" in run["error"]
