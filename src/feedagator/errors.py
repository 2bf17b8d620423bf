"""Error taxonomy shared by ingestion, registration, and the HTTP layer."""

from __future__ import annotations


class FeedagatorError(Exception):
    """Base class for all expected failures.

    Every subclass carries a stable ``kind`` (exposed to HTTP callers) and
    the HTTP status the web layer answers with.
    """

    kind = "InternalError"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FeedagatorError):
    """Request input is missing or invalid (e.g. empty username)."""

    kind = "ValidationError"
    status_code = 400


class UnknownSource(FeedagatorError):
    kind = "UnknownSource"
    status_code = 404


class MalformedSourceItem(FeedagatorError):
    """A raw source item cannot be turned into a valid Activity."""

    kind = "MalformedSourceItem"
    status_code = 422


class DuplicateWrite(FeedagatorError):
    """The feed already holds an activity with this foreign id."""

    kind = "DuplicateWrite"
    status_code = 200


class WriteFailed(FeedagatorError):
    """Storage or transport error while writing. Retryable."""

    kind = "WriteFailed"
    status_code = 503


class UpstreamUnreachable(FeedagatorError):
    """The upstream source could not be fetched or parsed."""

    kind = "UpstreamUnreachable"
    status_code = 502


class FetchTimeout(UpstreamUnreachable):
    kind = "FetchTimeout"
    status_code = 504
