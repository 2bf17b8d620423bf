"""SQLite connection management."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator

_BUSY_TIMEOUT_SECONDS = 5.0


@contextmanager
def get_connection(database_path: str, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
    """Open a SQLite connection for one unit of feed-store work.

    Writers from concurrent ingestion tasks wait up to the busy timeout for
    the database lock. With ``immediate`` the write lock is taken when the
    block starts (``BEGIN IMMEDIATE``), so a multi-statement write never
    fails halfway on lock upgrade. Commits on clean exit, rolls back on
    exception, and always closes.
    """
    conn = sqlite3.connect(database_path, timeout=_BUSY_TIMEOUT_SECONDS)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        if immediate:
            conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()
