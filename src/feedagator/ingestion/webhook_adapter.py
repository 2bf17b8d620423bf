"""Webhook adapters — validate pushed payloads and map them to activities.

Each webhook source declares a pydantic schema for its payload. Parsing
is entirely synchronous: no network fetch happens for pushed items.
"""

from __future__ import annotations

from typing import ClassVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from feedagator.activity import Article, Post
from feedagator.errors import MalformedSourceItem
from feedagator.ingestion.adapter import PushAdapter, RawItem
from feedagator.ingestion.reddit_adapter import reddit_post
from feedagator.ingestion.rss_adapter import normalize_date


class RedditWebhookPayload(BaseModel):
    """Payload forwarded for a new Reddit post (e.g. by a Zapier zap)."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, coerce_numbers_to_str=True)

    id: str = Field(min_length=1)
    url: str = Field(min_length=1)
    title: str | None = None
    author: str | None = None
    subreddit: str | None = None
    thumbnail: str | None = None


class BBCWebhookPayload(BaseModel):
    """Payload pushed for a new BBC News article."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    link: str = Field(min_length=1)
    title: str | None = None
    blurb: str | None = None
    date: str | None = None
    id: str | None = None
    guid: str | None = None


def _format_errors(exc: pydantic.ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "payload"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class WebhookAdapter(PushAdapter):
    """Base webhook adapter: schema validation plus a direct field mapping."""

    payload_model: ClassVar[type[BaseModel]]

    def parse(self, payload: dict) -> RawItem:
        if not isinstance(payload, dict):
            raise MalformedSourceItem(
                f"Webhook payload for '{self.source_name}' must be a JSON object"
            )
        try:
            model = self.payload_model.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise MalformedSourceItem(
                f"Invalid {self.name} payload for '{self.source_name}': {_format_errors(exc)}"
            ) from exc
        return RawItem(source=self.source_name, data=model.model_dump())


class RedditWebhookAdapter(WebhookAdapter):
    payload_model = RedditWebhookPayload

    @property
    def name(self) -> str:
        return "reddit_webhook"

    def normalize(self, raw: RawItem) -> Post:
        return reddit_post(raw.source, raw.data)


class BBCWebhookAdapter(WebhookAdapter):
    payload_model = BBCWebhookPayload

    @property
    def name(self) -> str:
        return "bbc_webhook"

    def normalize(self, raw: RawItem) -> Article:
        data = raw.data
        link = data.get("link") or ""
        return Article(
            actor=raw.source,
            object=link,
            foreign_id=data.get("id") or data.get("guid") or link,
            title=data.get("title") or None,
            abstract=data.get("blurb") or None,
            published_at=normalize_date(data.get("date")),
        )
