"""Request dependencies — hand route handlers the app's capability handles."""

from __future__ import annotations

from fastapi import Request

from feedagator.orchestrator import IngestionOrchestrator
from feedagator.registration import RegistrationService
from feedagator.storage.feed_store import FeedStore


def get_store(request: Request) -> FeedStore:
    return request.app.state.store


def get_registration(request: Request) -> RegistrationService:
    return request.app.state.registration


def get_orchestrator(request: Request) -> IngestionOrchestrator:
    return request.app.state.orchestrator


def get_database_path(request: Request) -> str:
    return request.app.state.database_path
