"""Query parameter filters for collection endpoints.

Every filter left as None matches everything, so filters compose by
intersection. String values have surrounding quotes stripped and compare
case-insensitively.
"""

from datetime import datetime
from typing import Iterable, Sequence, TypeVar

import structlog

from facility_status.models import (
    MAX_TIME,
    MIN_TIME,
    Event,
    Incident,
    Location,
    NamedObject,
    Project,
    Resource,
    StatusType,
    UserAllocation,
    parse_timestamp,
)

logger = structlog.get_logger()

T = TypeVar("T", bound=NamedObject)


def strip_quotes(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip().strip('"').strip("'")


def _matches(actual: object, wanted: str | None) -> bool:
    if wanted is None:
        return True
    if actual is None:
        return False
    text = getattr(actual, "value", actual)
    return str(text).lower() == (strip_quotes(wanted) or "").lower()


def parse_time(value: str | None) -> datetime | None:
    """Parse an ISO 8601 query parameter; malformed values raise InvalidArgumentError."""
    return parse_timestamp(strip_quotes(value))


def _status_set(values: Iterable[str] | None) -> set[StatusType]:
    statuses = set()
    for value in values or []:
        try:
            statuses.add(StatusType((strip_quotes(value) or "").lower()))
        except ValueError:
            logger.debug("Ignoring unknown status filter", value=value)
    return statuses


def filter_named(items: Sequence[T], name: str | None = None, short_name: str | None = None) -> list[T]:
    return [item for item in items if _matches(item.name, name) and _matches(item.short_name, short_name)]


def filter_resources(
    resources: Sequence[Resource],
    group: str | None = None,
    resource_type: str | None = None,
    short_name: str | None = None,
    current_status: list[str] | None = None,
    capability: list[str] | None = None,
) -> list[Resource]:
    statuses = _status_set(current_status)
    capabilities = [(strip_quotes(c) or "").lower() for c in capability or []]
    result = []
    for resource in resources:
        if not _matches(resource.group, group):
            continue
        if not _matches(resource.resource_type, resource_type):
            continue
        if not _matches(resource.short_name, short_name):
            continue
        if statuses and resource.current_status not in statuses:
            continue
        if capabilities:
            uris = [uri.lower() for uri in resource.capability_uris]
            if not any(wanted in uri for wanted in capabilities for uri in uris):
                continue
        result.append(resource)
    return result


def filter_incidents(
    incidents: Sequence[Incident],
    status: str | None = None,
    incident_type: str | None = None,
    resolution: str | None = None,
    time: str | None = None,
    start: str | None = None,
    end: str | None = None,
    short_name: str | None = None,
    resources: list[str] | None = None,
) -> list[Incident]:
    instant = parse_time(time)
    window_start = parse_time(start)
    window_end = parse_time(end)
    resource_ids = [strip_quotes(r) or "" for r in resources or []]
    result = []
    for incident in incidents:
        if not _matches(incident.status, status):
            continue
        if not _matches(incident.type, incident_type):
            continue
        if not _matches(incident.resolution, resolution):
            continue
        if not _matches(incident.short_name, short_name):
            continue
        if instant is not None and not incident.is_overlap(instant):
            continue
        if (window_start or window_end) and not incident.is_conflict(window_start, window_end):
            continue
        if not incident.contains(resource_ids):
            continue
        result.append(incident)
    return result


def filter_events(
    events: Sequence[Event],
    status: str | None = None,
    short_name: str | None = None,
    start: str | None = None,
    end: str | None = None,
    resource_id: str | None = None,
    incident_id: str | None = None,
) -> list[Event]:
    window_start = parse_time(start) or MIN_TIME
    window_end = parse_time(end) or MAX_TIME
    resource_id = strip_quotes(resource_id)
    incident_id = strip_quotes(incident_id)
    result = []
    for event in events:
        if not _matches(event.status, status):
            continue
        if not _matches(event.short_name, short_name):
            continue
        if event.occurred_at is not None and not window_start <= event.occurred_at <= window_end:
            continue
        if resource_id and f"/resources/{resource_id}" not in (event.resource_uri or ""):
            continue
        if incident_id and f"/incidents/{incident_id}" not in (event.incident_uri or ""):
            continue
        result.append(event)
    return result


def filter_locations(
    locations: Sequence[Location],
    name: str | None = None,
    short_name: str | None = None,
    country_name: str | None = None,
) -> list[Location]:
    return [
        location
        for location in filter_named(locations, name, short_name)
        if _matches(location.country_name, country_name)
    ]


def filter_projects(projects: Sequence[Project], name: str | None = None, user_id: str | None = None) -> list[Project]:
    wanted = strip_quotes(user_id)
    return [project for project in filter_named(projects, name) if wanted is None or wanted in project.user_ids]


def filter_user_allocations(
    allocations: Sequence[UserAllocation],
    name: str | None = None,
    user_id: str | None = None,
) -> list[UserAllocation]:
    return [allocation for allocation in filter_named(allocations, name) if _matches(allocation.user_id, user_id)]
