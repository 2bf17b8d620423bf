"""API route handlers for the Feedagator HTTP API."""

from __future__ import annotations

import asyncio
import logging
import math
import sqlite3
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response
from fastapi.responses import JSONResponse

from feedagator.errors import ValidationError
from feedagator.orchestrator import IngestionOrchestrator
from feedagator.registration import RegistrationService
from feedagator.storage.feed_store import FEED_GROUPS, FeedRef, FeedStore
from feedagator.storage.runs import list_runs
from feedagator.web.deps import get_database_path, get_orchestrator, get_registration, get_store
from feedagator.web.models import (
    FeedResponse,
    IngestionRunListResponse,
    RegistrationRequest,
    RegistrationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()
api_router = APIRouter()
health_router = APIRouter()


@health_router.get("/health")
async def health(store: FeedStore = Depends(get_store)) -> JSONResponse:
    """Check feed store connectivity and return health status."""
    try:
        await store.ping()
        return JSONResponse({"status": "healthy", "database": "ok"})
    except (sqlite3.Error, OSError) as exc:
        logger.warning("Health check failed: %s", exc)
        return JSONResponse(
            {"status": "unhealthy", "database": "error", "detail": str(exc)},
            status_code=503,
        )


@router.post("/registration", response_model=RegistrationResponse)
async def registration(
    body: RegistrationRequest,
    service: RegistrationService = Depends(get_registration),
) -> RegistrationResponse:
    result = await service.register(body.username)
    return RegistrationResponse(
        userToken=result.user_token,
        streamApiKey=result.api_key,
        username=result.username,
        appId=result.app_id,
    )


@router.post("/initialize")
async def initialize(
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> Response:
    """One-time bootstrap: poll every pull source into its source feed."""
    await orchestrator.run_poll_all()
    return Response(status_code=200)


@router.post("/bbc")
async def bbc_legacy_webhook(
    payload: Any = Body(None),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Legacy BBC push path; same as POST /bbc-webhook."""
    await orchestrator.run_webhook("bbc", payload)
    return Response(status_code=200)


@router.post("/{source}-webhook")
async def webhook(
    source: str,
    payload: Any = Body(None),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> Response:
    await orchestrator.run_webhook(source, payload)
    return Response(status_code=200)


@api_router.get("/feeds/{group}/{feed_id}", response_model=FeedResponse)
async def feed(
    group: str,
    feed_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100),
    store: FeedStore = Depends(get_store),
) -> FeedResponse:
    if group not in FEED_GROUPS:
        raise ValidationError(
            f"Unknown feed group '{group}'; must be one of: {', '.join(sorted(FEED_GROUPS))}"
        )
    ref = FeedRef(group, feed_id)
    (rows, total), following = await asyncio.gather(
        store.read_feed(ref, limit=per_page, offset=(page - 1) * per_page),
        store.following(ref),
    )
    pages = math.ceil(total / per_page) if total else 0
    return FeedResponse(
        feed=str(ref),
        following=[str(f) for f in following],
        activities=rows,
        total=total,
        page=page,
        per_page=per_page,
        pages=pages,
    )


@api_router.get("/runs", response_model=IngestionRunListResponse)
async def runs(
    source: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    database_path: str = Depends(get_database_path),
) -> IngestionRunListResponse:
    rows, total = await asyncio.to_thread(
        list_runs, database_path, source=source, page=page, per_page=per_page
    )
    pages = math.ceil(total / per_page) if total else 0
    return IngestionRunListResponse(
        runs=rows,
        total=total,
        page=page,
        per_page=per_page,
        pages=pages,
    )
