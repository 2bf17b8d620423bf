"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class Config:
    """Application configuration. All values sourced from environment variables."""

    # Required
    database_path: str
    stream_api_key: str
    stream_api_secret: str
    stream_app_id: str

    # Optional: ingestion
    sources_config_path: str | None = None
    max_items_per_source: int = 50
    fetch_timeout_seconds: float = 30.0
    poll_interval_minutes: int = 0

    # Optional: writes
    write_timeout_seconds: float = 10.0
    write_max_retries: int = 3
    write_retry_backoff_seconds: float = 1.0

    # Optional: application
    web_host: str = "0.0.0.0"
    web_port: int = 8080
    log_level: str = "INFO"
    log_format: str = "json"
    app_env: str = "production"


_REQUIRED_VARS = [
    "DATABASE_PATH",
    "STREAM_API_KEY",
    "STREAM_API_SECRET",
    "STREAM_APP_ID",
]


def load_config(env_path: str | Path | None = None) -> Config:
    """Load configuration from environment variables.

    Loads a .env file if present (for local development), then validates
    that all required variables are set. Raises ValueError listing any
    missing variables.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [var for var in _REQUIRED_VARS if not os.environ.get(var)]
    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    return Config(
        # Required
        database_path=os.environ["DATABASE_PATH"],
        stream_api_key=os.environ["STREAM_API_KEY"],
        stream_api_secret=os.environ["STREAM_API_SECRET"],
        stream_app_id=os.environ["STREAM_APP_ID"],
        # Optional: ingestion
        sources_config_path=os.environ.get("SOURCES_CONFIG_PATH") or None,
        max_items_per_source=int(os.environ.get("MAX_ITEMS_PER_SOURCE", "50")),
        fetch_timeout_seconds=float(os.environ.get("FETCH_TIMEOUT_SECONDS", "30")),
        poll_interval_minutes=int(os.environ.get("POLL_INTERVAL_MINUTES", "0")),
        # Optional: writes
        write_timeout_seconds=float(os.environ.get("WRITE_TIMEOUT_SECONDS", "10")),
        write_max_retries=int(os.environ.get("WRITE_MAX_RETRIES", "3")),
        write_retry_backoff_seconds=float(
            os.environ.get("WRITE_RETRY_BACKOFF_SECONDS", "1.0")
        ),
        # Optional: application
        web_host=os.environ.get("WEB_HOST", "0.0.0.0"),
        web_port=int(os.environ.get("WEB_PORT", "8080")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        log_format=os.environ.get("LOG_FORMAT", "json"),
        app_env=os.environ.get("APP_ENV", "production"),
    )
