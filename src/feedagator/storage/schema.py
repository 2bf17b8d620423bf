"""Database schema definition and initialization."""

from __future__ import annotations

import logging

from feedagator.storage.connection import get_connection

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """\
-- Identities: registered users and source actors
CREATE TABLE IF NOT EXISTS users (
    id          TEXT PRIMARY KEY,
    data        TEXT NOT NULL,          -- JSON object
    created_at  TEXT NOT NULL
);

-- Personal ('user') and source ('source') feeds
CREATE TABLE IF NOT EXISTS feeds (
    feed_group  TEXT NOT NULL CHECK (feed_group IN ('user', 'source')),
    feed_id     TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    PRIMARY KEY (feed_group, feed_id)
);

-- Directional follow relations (follower receives target's activities)
CREATE TABLE IF NOT EXISTS follows (
    follower_group  TEXT NOT NULL,
    follower_id     TEXT NOT NULL,
    target_group    TEXT NOT NULL,
    target_id       TEXT NOT NULL,
    created_at      TEXT NOT NULL,
    PRIMARY KEY (follower_group, follower_id, target_group, target_id),
    FOREIGN KEY (follower_group, follower_id) REFERENCES feeds(feed_group, feed_id),
    FOREIGN KEY (target_group, target_id) REFERENCES feeds(feed_group, feed_id)
);

-- Activities appended to feeds; foreign_id is unique per feed
CREATE TABLE IF NOT EXISTS activities (
    id          TEXT PRIMARY KEY,
    feed_group  TEXT NOT NULL,
    feed_id     TEXT NOT NULL,
    actor       TEXT NOT NULL,
    verb        TEXT NOT NULL,
    object      TEXT NOT NULL,
    foreign_id  TEXT NOT NULL,
    extra       TEXT NOT NULL,          -- JSON object of display fields
    time        TEXT NOT NULL,
    FOREIGN KEY (feed_group, feed_id) REFERENCES feeds(feed_group, feed_id),
    UNIQUE (feed_group, feed_id, foreign_id)
);

-- Ingestion run log
CREATE TABLE IF NOT EXISTS ingestion_runs (
    id          TEXT PRIMARY KEY,
    run_type    TEXT NOT NULL CHECK (run_type IN ('poll', 'webhook')),
    source      TEXT NOT NULL,
    started_at  TEXT NOT NULL,
    finished_at TEXT NOT NULL,
    status      TEXT NOT NULL CHECK (status IN ('success', 'error')),
    result      TEXT NOT NULL,          -- JSON object
    error       TEXT
);

CREATE INDEX IF NOT EXISTS idx_activities_feed_time
    ON activities(feed_group, feed_id, time);
CREATE INDEX IF NOT EXISTS idx_follows_target ON follows(target_group, target_id);
CREATE INDEX IF NOT EXISTS idx_ingestion_runs_started_at ON ingestion_runs(started_at);
CREATE INDEX IF NOT EXISTS idx_ingestion_runs_source ON ingestion_runs(source);
"""


def init_db(database_path: str) -> None:
    """Create all tables and indexes if they do not already exist."""
    with get_connection(database_path) as conn:
        conn.executescript(_SCHEMA_SQL)
    logger.info("Database initialized at %s", database_path)
