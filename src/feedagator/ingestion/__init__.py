"""Ingestion — source adapters and their registry."""

from feedagator.ingestion.reddit_adapter import RedditAdapter
from feedagator.ingestion.registry import register_adapter
from feedagator.ingestion.rss_adapter import RSSAdapter
from feedagator.ingestion.webhook_adapter import BBCWebhookAdapter, RedditWebhookAdapter

register_adapter("reddit_json", RedditAdapter)
register_adapter("rss", RSSAdapter)
register_adapter("reddit_webhook", RedditWebhookAdapter)
register_adapter("bbc_webhook", BBCWebhookAdapter)
