"""Application entry point — web server plus optional scheduled polling."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from feedagator.config import Config, load_config
from feedagator.errors import FeedagatorError
from feedagator.orchestrator import IngestionOrchestrator
from feedagator.web.app import create_app

logger = logging.getLogger("feedagator")


def _setup_logging(log_level: str, log_format: str) -> None:
    """Configure root logger based on config."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps(
                {
                    "time": "%(asctime)s",
                    "level": "%(levelname)s",
                    "logger": "%(name)s",
                    "message": "%(message)s",
                }
            )
        )
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


async def _scheduled_poll(orchestrator: IngestionOrchestrator) -> None:
    """Poll all sources; failures are logged and retried on the next tick."""
    try:
        await orchestrator.run_poll_all()
    except FeedagatorError as exc:
        logger.error("Scheduled poll failed: %s: %s", exc.kind, exc.message)


def _build_scheduler(config: Config, orchestrator: IngestionOrchestrator) -> AsyncIOScheduler:
    """Create an AsyncIOScheduler with the interval poll job."""
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        _scheduled_poll,
        trigger=IntervalTrigger(minutes=config.poll_interval_minutes),
        args=[orchestrator],
        id="poll",
        name="Poll all pull sources",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def main() -> None:
    """Load config, set up logging, and start the web server."""
    config = load_config()
    _setup_logging(config.log_level, config.log_format)

    logger.info(
        "Feedagator starting (env=%s, db=%s, poll_interval=%dm)",
        config.app_env,
        config.database_path,
        config.poll_interval_minutes,
    )

    @asynccontextmanager
    async def lifespan(app):
        scheduler = None
        if config.poll_interval_minutes > 0:
            scheduler = _build_scheduler(config, app.state.orchestrator)
            logger.info("Scheduler starting")
            scheduler.start()
        yield
        if scheduler is not None:
            logger.info("Scheduler shutting down")
            scheduler.shutdown(wait=False)

    app = create_app(config, lifespan=lifespan)
    uvicorn.run(app, host=config.web_host, port=config.web_port)


if __name__ == "__main__":
    main()
