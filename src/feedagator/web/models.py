"""Pydantic v2 request/response models for the Feedagator HTTP API."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class ErrorResponse(BaseModel):
    error: str
    kind: str


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------
class RegistrationRequest(BaseModel):
    username: str | None = None


class RegistrationResponse(BaseModel):
    userToken: str
    streamApiKey: str
    username: str
    appId: str


# ---------------------------------------------------------------------------
# Feeds: activities tagged by verb, each with its own display fields
# ---------------------------------------------------------------------------
class _ActivityBase(BaseModel):
    id: str
    feed: str
    actor: str
    object: str
    foreign_id: str
    time: str


class PostView(_ActivityBase):
    verb: Literal["post"]
    title: str | None = None
    url: str | None = None
    subreddit: str | None = None
    thumbnail: str | None = None
    author: str | None = None


class ArticleView(_ActivityBase):
    verb: Literal["article"]
    title: str | None = None
    abstract: str | None = None
    published_at: str | None = None


ActivityView = Annotated[Union[PostView, ArticleView], Field(discriminator="verb")]


class FeedResponse(BaseModel):
    feed: str
    following: list[str]
    activities: list[ActivityView]
    total: int
    page: int
    per_page: int
    pages: int


# ---------------------------------------------------------------------------
# Ingestion runs
# ---------------------------------------------------------------------------
class IngestionRun(BaseModel):
    id: str
    run_type: str
    source: str
    started_at: str
    finished_at: str
    status: str
    result: dict
    error: str | None


class IngestionRunListResponse(BaseModel):
    runs: list[IngestionRun]
    total: int
    page: int
    per_page: int
    pages: int
