"""FastAPI application factory for the Feedagator HTTP API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from feedagator.config import Config
from feedagator.errors import FeedagatorError, ValidationError
from feedagator.gateway import WriteGateway
from feedagator.orchestrator import IngestionOrchestrator
from feedagator.registration import RegistrationService
from feedagator.sources import SourceTable, load_sources
from feedagator.storage.feed_store import FeedStore, SQLiteFeedStore
from feedagator.web.routes import api_router, health_router, router

logger = logging.getLogger(__name__)


def _error_response(kind: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message, "kind": kind}, status_code=status_code)


async def _feedagator_error(request: Request, exc: FeedagatorError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s: %s", request.method, request.url.path, exc.kind, exc.message)
    return _error_response(exc.kind, exc.message, exc.status_code)


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body") or "body"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return _error_response(ValidationError.kind, "; ".join(parts), ValidationError.status_code)


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response("InternalError", "Internal server error", 500)


def create_app(
    config: Config,
    *,
    store: FeedStore | None = None,
    sources: SourceTable | None = None,
    http_client: httpx.AsyncClient | None = None,
    lifespan=None,
) -> FastAPI:
    """Build and return a configured FastAPI application.

    The feed store, source table and HTTP client are created once here and
    shared by every request through ``app.state``. Pass them in to
    substitute test doubles.
    """
    if store is None:
        store = SQLiteFeedStore.open(config.database_path, config.stream_api_secret)
    if sources is None:
        sources = load_sources(config.sources_config_path)
    owns_http_client = http_client is None
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=config.fetch_timeout_seconds)

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        try:
            if lifespan is None:
                yield
            else:
                async with lifespan(app):
                    yield
        finally:
            if owns_http_client:
                await http_client.aclose()

    app = FastAPI(title="Feedagator", docs_url="/api/docs", lifespan=_lifespan)

    gateway = WriteGateway(
        store,
        timeout=config.write_timeout_seconds,
        max_retries=config.write_max_retries,
        backoff_seconds=config.write_retry_backoff_seconds,
    )
    app.state.database_path = config.database_path
    app.state.store = store
    app.state.sources = sources
    app.state.registration = RegistrationService(
        store, sources, api_key=config.stream_api_key, app_id=config.stream_app_id
    )
    app.state.orchestrator = IngestionOrchestrator(
        store,
        gateway,
        sources,
        http_client,
        database_path=config.database_path,
        max_items_per_source=config.max_items_per_source,
        fetch_timeout=config.fetch_timeout_seconds,
    )

    app.add_exception_handler(FeedagatorError, _feedagator_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(Exception, _unhandled_error)

    app.include_router(health_router)
    app.include_router(router)
    app.include_router(api_router, prefix="/api/v1")
    return app
