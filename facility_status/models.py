"""Data models for the facility status API."""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Protocol, TypeVar

from facility_status.errors import InvalidArgumentError

MIN_TIME = datetime.min.replace(tzinfo=timezone.utc)
MAX_TIME = datetime.max.replace(tzinfo=timezone.utc)

E = TypeVar("E", bound=Enum)


class UriTransform(Protocol):
    def apply(self, uri: str | None) -> str | None: ...


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp, treating naive values as UTC.

    Raises:
        InvalidArgumentError: If the value is not a valid timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid timestamp: {value}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    """Format a timestamp as UTC with millisecond precision."""
    if value is None:
        return None
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def _enum(enum_cls: type[E], value: Any, default: E | None = None) -> E | None:
    if value is None:
        return default
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return default


class ResourceType(str, Enum):
    WEBSITE = "website"
    SERVICE = "service"
    COMPUTE = "compute"
    SYSTEM = "system"
    STORAGE = "storage"
    NETWORK = "network"
    UNKNOWN = "unknown"


class StatusType(str, Enum):
    UP = "up"
    DEGRADED = "degraded"
    DOWN = "down"
    UNKNOWN = "unknown"


class IncidentType(str, Enum):
    PLANNED = "planned"
    UNPLANNED = "unplanned"
    RESERVATION = "reservation"


class ResolutionType(str, Enum):
    UNRESOLVED = "unresolved"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    EXTENDED = "extended"
    PENDING = "pending"


class AllocationUnit(str, Enum):
    NODE_HOURS = "node_hours"
    BYTES = "bytes"
    INODES = "inodes"


@dataclass
class Link:
    """Represents a typed hyperlink from one entity to another."""

    relation: str
    href: str
    media_type: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Link":
        return cls(relation=data.get("rel", ""), href=data.get("href", ""), media_type=data.get("type"))

    def to_dict(self) -> dict[str, Any]:
        result = {"rel": self.relation, "href": self.href}
        if self.media_type:
            result["type"] = self.media_type
        return result


@dataclass
class AllocationEntry:
    """An allocation and its usage, measured in a single unit."""

    allocation: float | None = None
    usage: float | None = None
    unit: AllocationUnit | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AllocationEntry":
        return cls(
            allocation=data.get("allocation"),
            usage=data.get("usage"),
            unit=_enum(AllocationUnit, data.get("unit")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "allocation": self.allocation,
                "usage": self.usage,
                "unit": self.unit.value if self.unit else None,
            }
        )


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop None values and empty lists."""
    return {k: v for k, v in data.items() if v is not None and v != []}


@dataclass
class NamedObject:
    """Common base for every entity held by the repository.

    Subclasses declare their kind, the path template of their self URI and the
    names of their URI-valued fields. ``transform_uris`` walks those fields so a
    subclass only has to list them.
    """

    kind: ClassVar[str] = "named_object"
    url_template: ClassVar[str] = ""
    uri_fields: ClassVar[tuple[str, ...]] = ()
    uri_list_fields: ClassVar[tuple[str, ...]] = ()

    id: str
    name: str | None = None
    short_name: str | None = None
    description: str | None = None
    last_modified: datetime | None = None
    self_uri: str | None = None
    links: list[Link] = field(default_factory=list)

    @classmethod
    def _base_kwargs(cls, data: dict[str, Any]) -> dict[str, Any]:
        if not data.get("id"):
            raise InvalidArgumentError(f"{cls.__name__} is missing an id")
        last_modified = parse_timestamp(data.get("last_modified"))
        if last_modified is not None:
            # If-Modified-Since only carries whole seconds.
            last_modified = last_modified.replace(microsecond=0)
        return {
            "id": str(data["id"]),
            "name": data.get("name"),
            "short_name": data.get("short_name"),
            "description": data.get("description"),
            "last_modified": last_modified,
            "self_uri": data.get("self_uri"),
            "links": [Link.from_dict(link) for link in data.get("_links", data.get("links", [])) or []],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NamedObject":
        return cls(**cls._base_kwargs(data))

    def _extra_dict(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire representation."""
        base = {
            "id": self.id,
            "name": self.name,
            "short_name": self.short_name,
            "description": self.description,
            "last_modified": format_timestamp(self.last_modified),
            "self_uri": self.self_uri,
        }
        base.update(self._extra_dict())
        base["_links"] = [link.to_dict() for link in self.links]
        return _compact(base)

    def build_self_uri(self, root: str = "") -> str:
        return root.rstrip("/") + self.url_template.format(id=self.id)

    def links_for(self, relation: str) -> list[Link]:
        return [link for link in self.links if link.relation == relation]

    def copy(self) -> "NamedObject":
        """Return an independent copy safe to hand to a caller."""
        return copy.deepcopy(self)

    def transform_uris(self, transform: UriTransform) -> None:
        """Rewrite the self URI, every URI field and every link href in place."""
        self.self_uri = transform.apply(self.self_uri)
        for name in self.uri_fields:
            setattr(self, name, transform.apply(getattr(self, name)))
        for name in self.uri_list_fields:
            setattr(self, name, [transform.apply(uri) for uri in getattr(self, name)])
        for link in self.links:
            link.href = transform.apply(link.href)


@dataclass
class Facility(NamedObject):
    """A laboratory or production facility offering resources."""

    kind: ClassVar[str] = "facility"
    url_template: ClassVar[str] = "/api/v1/status/facility/{id}"
    uri_list_fields: ClassVar[tuple[str, ...]] = (
        "site_uris",
        "location_uris",
        "resource_uris",
        "event_uris",
        "incident_uris",
    )

    organization_name: str | None = None
    site_uris: list[str] = field(default_factory=list)
    location_uris: list[str] = field(default_factory=list)
    resource_uris: list[str] = field(default_factory=list)
    event_uris: list[str] = field(default_factory=list)
    incident_uris: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Facility":
        return cls(
            **cls._base_kwargs(data),
            organization_name=data.get("organization_name"),
            site_uris=list(data.get("site_uris", [])),
            location_uris=list(data.get("location_uris", [])),
            resource_uris=list(data.get("resource_uris", [])),
            event_uris=list(data.get("event_uris", [])),
            incident_uris=list(data.get("incident_uris", [])),
        )

    def _extra_dict(self) -> dict[str, Any]:
        return {
            "organization_name": self.organization_name,
            "site_uris": self.site_uris,
            "location_uris": self.location_uris,
            "resource_uris": self.resource_uris,
            "event_uris": self.event_uris,
            "incident_uris": self.incident_uris,
        }


@dataclass
class Site(NamedObject):
    """The physical and administrative context in which resources are operated."""

    kind: ClassVar[str] = "site"
    url_template: ClassVar[str] = "/api/v1/status/sites/{id}"
    uri_fields: ClassVar[tuple[str, ...]] = ("location_uri",)
    uri_list_fields: ClassVar[tuple[str, ...]] = ("resource_uris",)

    operating_organization: str | None = None
    location_uri: str | None = None
    resource_uris: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Site":
        return cls(
            **cls._base_kwargs(data),
            operating_organization=data.get("operating_organization"),
            location_uri=data.get("location_uri"),
            resource_uris=list(data.get("resource_uris", [])),
        )

    def _extra_dict(self) -> dict[str, Any]:
        return {
            "operating_organization": self.operating_organization,
            "location_uri": self.location_uri,
            "resource_uris": self.resource_uris,
        }


@dataclass
class Location(NamedObject):
    """A geographic location containing zero or more sites."""

    kind: ClassVar[str] = "location"
    url_template: ClassVar[str] = "/api/v1/status/locations/{id}"
    uri_list_fields: ClassVar[tuple[str, ...]] = ("site_uris",)

    country_name: str | None = None
    locality_name: str | None = None
    state_or_province_name: str | None = None
    street_address: str | None = None
    unlocode: str | None = None
    altitude: float | None = None
    latitude: float | None = None
    longitude: float | None = None
    site_uris: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Location":
        return cls(
            **cls._base_kwargs(data),
            country_name=data.get("country_name"),
            locality_name=data.get("locality_name"),
            state_or_province_name=data.get("state_or_province_name"),
            street_address=data.get("street_address"),
            unlocode=data.get("unlocode"),
            altitude=data.get("altitude"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            site_uris=list(data.get("site_uris", [])),
        )

    def _extra_dict(self) -> dict[str, Any]:
        return {
            "country_name": self.country_name,
            "locality_name": self.locality_name,
            "state_or_province_name": self.state_or_province_name,
            "street_address": self.street_address,
            "unlocode": self.unlocode,
            "altitude": self.altitude,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "site_uris": self.site_uris,
        }


@dataclass
class Resource(NamedObject):
    """A service, system or website whose status is reported."""

    kind: ClassVar[str] = "resource"
    url_template: ClassVar[str] = "/api/v1/status/resources/{id}"
    uri_list_fields: ClassVar[tuple[str, ...]] = ("capability_uris",)

    resource_type: ResourceType = ResourceType.UNKNOWN
    group: str | None = None
    current_status: StatusType = StatusType.UNKNOWN
    capability_uris: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Resource":
        return cls(
            **cls._base_kwargs(data),
            resource_type=_enum(ResourceType, data.get("type"), ResourceType.UNKNOWN),
            group=data.get("group"),
            current_status=_enum(StatusType, data.get("current_status"), StatusType.UNKNOWN),
            capability_uris=list(data.get("capability_uris", [])),
        )

    def _extra_dict(self) -> dict[str, Any]:
        return {
            "type": self.resource_type.value,
            "group": self.group,
            "current_status": self.current_status.value,
            "capability_uris": self.capability_uris,
        }


@dataclass
class Incident(NamedObject):
    """Groups events in time and across resources."""

    kind: ClassVar[str] = "incident"
    url_template: ClassVar[str] = "/api/v1/status/incidents/{id}"
    uri_list_fields: ClassVar[tuple[str, ...]] = ("resource_uris", "event_uris")

    status: StatusType | None = None
    type: IncidentType | None = None
    start: datetime | None = None
    end: datetime | None = None
    resolution: ResolutionType = ResolutionType.PENDING
    resource_uris: list[str] = field(default_factory=list)
    event_uris: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Incident":
        return cls(
            **cls._base_kwargs(data),
            status=_enum(StatusType, data.get("status")),
            type=_enum(IncidentType, data.get("type")),
            start=parse_timestamp(data.get("start")),
            end=parse_timestamp(data.get("end")),
            resolution=_enum(ResolutionType, data.get("resolution"), ResolutionType.PENDING),
            resource_uris=list(data.get("resource_uris", [])),
            event_uris=list(data.get("event_uris", [])),
        )

    def _extra_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value if self.status else None,
            "type": self.type.value if self.type else None,
            "start": format_timestamp(self.start),
            "end": format_timestamp(self.end),
            "resolution": self.resolution.value,
            "resource_uris": self.resource_uris,
            "event_uris": self.event_uris,
        }

    def is_overlap(self, time: datetime | None) -> bool:
        """True if the instant falls within [start, end]; open ends are unbounded."""
        instant = time or MIN_TIME
        start = self.start or MIN_TIME
        end = self.end or MAX_TIME
        return start <= instant <= end

    def is_conflict(self, start_filter: datetime | None, end_filter: datetime | None) -> bool:
        """True if this incident overlaps the window [start_filter, end_filter]."""
        window_start = start_filter or MIN_TIME
        window_end = end_filter or MAX_TIME
        start = self.start or MIN_TIME
        end = self.end or MAX_TIME
        if window_start > window_end or start > end:
            return False
        return window_start <= end and window_end >= start

    def contains(self, resources: list[str] | None) -> bool:
        """True if any of the resource ids is referenced by this incident."""
        if not resources:
            return True
        return any(f"/resources/{resource}" in uri for resource in resources for uri in self.resource_uris)


@dataclass
class Event(NamedObject):
    """A timestamped change in the state of a resource."""

    kind: ClassVar[str] = "event"
    url_template: ClassVar[str] = "/api/v1/status/events/{id}"
    uri_fields: ClassVar[tuple[str, ...]] = ("resource_uri", "incident_uri")

    status: StatusType | None = None
    occurred_at: datetime | None = None
    resource_uri: str | None = None
    incident_uri: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Event":
        return cls(
            **cls._base_kwargs(data),
            status=_enum(StatusType, data.get("status")),
            occurred_at=parse_timestamp(data.get("occurred_at")),
            resource_uri=data.get("resource_uri"),
            incident_uri=data.get("incident_uri"),
        )

    def _extra_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value if self.status else None,
            "occurred_at": format_timestamp(self.occurred_at),
            "resource_uri": self.resource_uri,
            "incident_uri": self.incident_uri,
        }


@dataclass
class Capability(NamedObject):
    """An allocatable aspect of a resource, such as GPU node hours."""

    kind: ClassVar[str] = "capability"
    url_template: ClassVar[str] = "/api/v1/account/capabilities/{id}"

    units: list[AllocationUnit] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Capability":
        units = [_enum(AllocationUnit, unit) for unit in data.get("units", [])]
        return cls(**cls._base_kwargs(data), units=[unit for unit in units if unit is not None])

    def _extra_dict(self) -> dict[str, Any]:
        return {"units": [unit.value for unit in self.units]}


@dataclass
class Project(NamedObject):
    """Groups user identifiers into a project."""

    kind: ClassVar[str] = "project"
    url_template: ClassVar[str] = "/api/v1/account/projects/{id}"
    uri_list_fields: ClassVar[tuple[str, ...]] = ("project_allocation_uris",)

    user_ids: list[str] = field(default_factory=list)
    project_allocation_uris: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            **cls._base_kwargs(data),
            user_ids=list(data.get("user_ids", [])),
            project_allocation_uris=list(data.get("project_allocation_uris", [])),
        )

    def _extra_dict(self) -> dict[str, Any]:
        return {"user_ids": self.user_ids, "project_allocation_uris": self.project_allocation_uris}


@dataclass
class ProjectAllocation(NamedObject):
    """A project's share of the total allocation of a capability."""

    kind: ClassVar[str] = "project_allocation"
    url_template: ClassVar[str] = "/api/v1/account/project_allocations/{id}"
    uri_fields: ClassVar[tuple[str, ...]] = ("project_uri", "capability_uri")
    uri_list_fields: ClassVar[tuple[str, ...]] = ("user_allocation_uris",)

    entries: list[AllocationEntry] = field(default_factory=list)
    project_uri: str | None = None
    capability_uri: str | None = None
    user_allocation_uris: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectAllocation":
        return cls(
            **cls._base_kwargs(data),
            entries=[AllocationEntry.from_dict(entry) for entry in data.get("entries", [])],
            project_uri=data.get("project_uri"),
            capability_uri=data.get("capability_uri"),
            user_allocation_uris=list(data.get("user_allocation_uris", [])),
        )

    def _extra_dict(self) -> dict[str, Any]:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "project_uri": self.project_uri,
            "capability_uri": self.capability_uri,
            "user_allocation_uris": self.user_allocation_uris,
        }


@dataclass
class UserAllocation(NamedObject):
    """A user's share of a project allocation."""

    kind: ClassVar[str] = "user_allocation"
    url_template: ClassVar[str] = "/api/v1/account/user_allocations/{id}"
    uri_fields: ClassVar[tuple[str, ...]] = ("project_allocation_uri",)

    user_id: str | None = None
    entries: list[AllocationEntry] = field(default_factory=list)
    project_allocation_uri: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserAllocation":
        return cls(
            **cls._base_kwargs(data),
            user_id=data.get("user_id"),
            entries=[AllocationEntry.from_dict(entry) for entry in data.get("entries", [])],
            project_allocation_uri=data.get("project_allocation_uri"),
        )

    def _extra_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "entries": [entry.to_dict() for entry in self.entries],
            "project_allocation_uri": self.project_allocation_uri,
        }


ENTITY_TYPES: dict[str, type[NamedObject]] = {
    cls.kind: cls
    for cls in (
        Facility,
        Site,
        Location,
        Resource,
        Incident,
        Event,
        Capability,
        Project,
        ProjectAllocation,
        UserAllocation,
    )
}
