"""Source adapter interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from feedagator.activity import Activity


@dataclass(frozen=True)
class RawItem:
    """A native item as emitted by a source, before normalization."""

    source: str
    data: dict = field(default_factory=dict)


class SourceAdapter(ABC):
    """Abstract base class for source adapters.

    Every adapter knows how to turn a native item from one kind of source
    into a canonical Activity. The rest of the system is source-agnostic.
    """

    def __init__(self, source_name: str) -> None:
        self._source_name = source_name

    @property
    @abstractmethod
    def name(self) -> str:
        """Adapter type name."""

    @property
    def source_name(self) -> str:
        """The source this adapter instance serves; used as the activity actor."""
        return self._source_name

    def configure(self, config: dict) -> None:
        """Accept adapter-specific configuration."""

    @abstractmethod
    def normalize(self, raw: RawItem) -> Activity:
        """Map a raw item to an Activity. Raises MalformedSourceItem."""


class PollAdapter(SourceAdapter):
    """Adapter for sources that are pulled over HTTP."""

    def __init__(
        self,
        source_name: str,
        http_client: httpx.AsyncClient,
        max_items: int = 50,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(source_name)
        self._http = http_client
        self._max_items = max_items
        self._timeout = timeout

    @abstractmethod
    async def fetch(self) -> list[RawItem]:
        """Fetch the current window of items from the source.

        Raises UpstreamUnreachable (or FetchTimeout) when the source cannot
        be fetched or parsed at all.
        """


class PushAdapter(SourceAdapter):
    """Adapter for sources that push items to us (webhooks)."""

    @abstractmethod
    def parse(self, payload: dict) -> RawItem:
        """Validate an inbound payload. Raises MalformedSourceItem."""
