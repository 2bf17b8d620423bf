"""Storage layer — SQLite-backed feed store and run log."""

from feedagator.storage.connection import get_connection
from feedagator.storage.feed_store import FeedRef, FeedStore, SQLiteFeedStore
from feedagator.storage.schema import init_db

__all__ = ["FeedRef", "FeedStore", "SQLiteFeedStore", "get_connection", "init_db"]
