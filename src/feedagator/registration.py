"""Registration — provision a user, a token, and a personal feed."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from feedagator.errors import ValidationError
from feedagator.sources import SourceTable
from feedagator.storage.feed_store import FeedRef, FeedStore

logger = logging.getLogger(__name__)

PERSONAL_FEED_GROUP = "user"

_WHITESPACE_RE = re.compile(r"\s")


def normalize_username(raw: str) -> str:
    """Trim, replace each whitespace character with '_', and lower-case.

    Idempotent: normalize_username(normalize_username(x)) == normalize_username(x).
    """
    return _WHITESPACE_RE.sub("_", raw.strip()).lower()


@dataclass(frozen=True)
class Registration:
    """Credentials handed back to a newly registered client."""

    user_token: str
    api_key: str
    app_id: str
    username: str


class RegistrationService:
    def __init__(
        self, store: FeedStore, sources: SourceTable, *, api_key: str, app_id: str
    ) -> None:
        self._store = store
        self._sources = sources
        self._api_key = api_key
        self._app_id = app_id

    async def register(self, raw_username: str | None) -> Registration:
        """Register a user and subscribe their personal feed to every source.

        Safe to call repeatedly for the same user: the identity, the feed,
        and each follow are created only if absent.

        Raises ValidationError if the username is missing or blank.
        """
        if not isinstance(raw_username, str) or not raw_username.strip():
            raise ValidationError("username is required and must be non-empty")

        username = normalize_username(raw_username)
        token = self._store.create_user_token(username)
        await self._store.get_or_create_user(username, {"name": username})

        personal = await self._store.get_or_create_feed(FeedRef(PERSONAL_FEED_GROUP, username))
        new_follows = 0
        for source in self._sources:
            if await self._store.follow(personal, source.feed):
                new_follows += 1

        logger.info(
            "Registered %s (%d new follows across %d sources)",
            username, new_follows, len(self._sources),
        )
        return Registration(
            user_token=token,
            api_key=self._api_key,
            app_id=self._app_id,
            username=username,
        )
