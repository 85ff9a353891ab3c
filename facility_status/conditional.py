"""If-Modified-Since / Last-Modified handling for single items and collections."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Generic, Sequence, TypeVar

import structlog

from facility_status.models import NamedObject

logger = structlog.get_logger()

T = TypeVar("T", bound=NamedObject)


def now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def parse_http_date(value: str | None) -> datetime | None:
    """Parse an RFC 1123 date.

    A malformed value is logged and treated as if the header were absent.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        logger.warning("Ignoring malformed If-Modified-Since", value=value)
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_http_date(value: datetime) -> str:
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def latest_modified(items: Sequence[NamedObject]) -> datetime:
    """Return the newest last_modified of the items, or now for an empty set."""
    stamps = [item.last_modified for item in items if item.last_modified is not None]
    return max(stamps) if stamps else now()


@dataclass
class SingleResult(Generic[T]):
    item: T
    last_modified: datetime
    not_modified: bool


@dataclass
class CollectionResult(Generic[T]):
    last_modified: datetime
    not_modified: bool
    items: list[T] = field(default_factory=list)


def evaluate_single(item: T, if_modified_since: str | None) -> SingleResult[T]:
    """Decide whether a single item is unchanged since the client's copy.

    Equality counts as not modified.
    """
    last_modified = item.last_modified or now()
    since = parse_http_date(if_modified_since)
    not_modified = since is not None and since >= last_modified
    logger.debug("Evaluated conditional request", id=item.id, since=since, not_modified=not_modified)
    return SingleResult(item=item, last_modified=last_modified, not_modified=not_modified)


def evaluate_collection(items: Sequence[T], if_modified_since: str | None) -> CollectionResult[T]:
    """Decide whether a collection changed and narrow it to the changed items.

    The latest timestamp is taken over the unfiltered items. When the client's
    date is older, only items modified strictly after it are returned.
    """
    latest = latest_modified(items)
    since = parse_http_date(if_modified_since)
    if since is None:
        return CollectionResult(last_modified=latest, not_modified=False, items=list(items))
    if latest <= since:
        logger.debug("Collection not modified", latest=latest, since=since)
        return CollectionResult(last_modified=latest, not_modified=True)
    fresh = [item for item in items if item.last_modified is None or item.last_modified > since]
    logger.debug("Collection narrowed to modified items", total=len(items), fresh=len(fresh))
    return CollectionResult(last_modified=latest, not_modified=False, items=fresh)
