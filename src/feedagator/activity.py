"""Canonical activity model — the record shape every source maps into."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import ClassVar

from feedagator.errors import MalformedSourceItem

_CORE_FIELDS = ("actor", "verb", "object", "foreign_id")


@dataclass(frozen=True)
class Activity:
    """Base activity. Concrete sources use one of the subclasses below.

    ``foreign_id`` is the origin system's identifier for the item and acts
    as the idempotency key within a source feed.
    """

    verb: ClassVar[str] = ""

    actor: str
    object: str
    foreign_id: str

    def __post_init__(self) -> None:
        errors = _validate(self)
        if errors:
            raise MalformedSourceItem(
                f"Invalid {type(self).__name__} from '{self.actor}': {'; '.join(errors)}"
            )

    def display_fields(self) -> dict:
        """Source-specific fields, excluding the core activity attributes."""
        data = asdict(self)
        for key in _CORE_FIELDS:
            data.pop(key, None)
        return data

    def to_record(self) -> dict:
        """Flatten to the record shape stored in a feed."""
        return {
            "actor": self.actor,
            "verb": self.verb,
            "object": self.object,
            "foreign_id": self.foreign_id,
            **self.display_fields(),
        }


@dataclass(frozen=True)
class Post(Activity):
    """A link post from a link-aggregation source."""

    verb: ClassVar[str] = "post"

    title: str | None = None
    url: str | None = None
    subreddit: str | None = None
    thumbnail: str | None = None
    author: str | None = None


@dataclass(frozen=True)
class Article(Activity):
    """A news article from a feed or a news webhook."""

    verb: ClassVar[str] = "article"

    title: str | None = None
    abstract: str | None = None
    published_at: str | None = None


ACTIVITY_TYPES: dict[str, type[Activity]] = {
    Post.verb: Post,
    Article.verb: Article,
}


def _validate(activity: Activity) -> list[str]:
    """Check the required activity attributes. Returns a list of errors."""
    errors: list[str] = []
    for name in _CORE_FIELDS:
        value = getattr(activity, name)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"{name} is required and must be non-empty")
    return errors


def activity_from_record(record: dict) -> Activity:
    """Rebuild the typed activity for a stored record, dispatching on verb.

    Unknown keys are ignored. Raises MalformedSourceItem for unknown verbs.
    """
    verb = record.get("verb", "")
    cls = ACTIVITY_TYPES.get(verb)
    if cls is None:
        raise MalformedSourceItem(f"Unknown activity verb '{verb}'")
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in record.items() if k in names})
