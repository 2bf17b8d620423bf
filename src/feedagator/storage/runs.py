"""Ingestion run log — one row per poll or webhook run."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

from feedagator.storage.connection import get_connection


def record_run(
    database_path: str,
    run_type: str,
    source: str,
    started_at: str,
    result: dict,
    error: str | None = None,
) -> str:
    """Insert an ingestion run record. Returns the run id."""
    run_id = str(uuid.uuid4())
    finished_at = datetime.now(timezone.utc).isoformat()
    status = "error" if error else "success"
    with get_connection(database_path) as conn:
        conn.execute(
            "INSERT INTO ingestion_runs "
            "(id, run_type, source, started_at, finished_at, status, result, error) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                run_id,
                run_type,
                source,
                started_at,
                finished_at,
                status,
                json.dumps(result),
                error,
            ),
        )
    return run_id


def list_runs(
    database_path: str,
    *,
    source: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[dict], int]:
    """Return a paginated list of ingestion runs, newest first."""
    offset = (page - 1) * per_page
    where_clause = ""
    params: list[object] = []
    if source is not None:
        where_clause = "WHERE source = ?"
        params.append(source)

    with get_connection(database_path) as conn:
        total = conn.execute(
            f"SELECT COUNT(*) FROM ingestion_runs {where_clause}", params
        ).fetchone()[0]
        rows = conn.execute(
            f"SELECT * FROM ingestion_runs {where_clause} "
            "ORDER BY started_at DESC LIMIT ? OFFSET ?",
            [*params, per_page, offset],
        ).fetchall()

    runs = []
    for r in rows:
        runs.append({
            "id": r["id"],
            "run_type": r["run_type"],
            "source": r["source"],
            "started_at": r["started_at"],
            "finished_at": r["finished_at"],
            "status": r["status"],
            "result": json.loads(r["result"]),
            "error": r["error"],
        })
    return runs, total
