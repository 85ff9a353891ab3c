"""Load facility status JSON sources into a repository."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Mapping

import structlog

from facility_status import relationships as rel
from facility_status.backend import Repository
from facility_status.config import Config
from facility_status.errors import FacilityStatusError
from facility_status.models import (
    Capability,
    Event,
    Facility,
    Incident,
    Location,
    NamedObject,
    Project,
    ProjectAllocation,
    Resource,
    Site,
    UserAllocation,
)

logger = structlog.get_logger()

SOURCE_TYPES: dict[str, type[NamedObject]] = {
    "facility": Facility,
    "locations": Location,
    "sites": Site,
    "resources": Resource,
    "incidents": Incident,
    "events": Event,
    "capabilities": Capability,
    "projects": Project,
    "project_allocations": ProjectAllocation,
    "user_allocations": UserAllocation,
}

FACILITY_URI_RELATIONS = {
    "site_uris": rel.HOSTED_AT,
    "location_uris": rel.HAS_LOCATION,
    "resource_uris": rel.HAS_RESOURCE,
    "event_uris": rel.HAS_EVENT,
    "incident_uris": rel.HAS_INCIDENT,
}


@dataclass
class FacilityData:
    """Typed entity lists parsed from the JSON sources."""

    facilities: list[Facility] = field(default_factory=list)
    locations: list[Location] = field(default_factory=list)
    sites: list[Site] = field(default_factory=list)
    resources: list[Resource] = field(default_factory=list)
    incidents: list[Incident] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    capabilities: list[Capability] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    project_allocations: list[ProjectAllocation] = field(default_factory=list)
    user_allocations: list[UserAllocation] = field(default_factory=list)

    def entities(self) -> Iterator[NamedObject]:
        """Iterate over every entity in load order."""
        yield from self.facilities
        yield from self.locations
        yield from self.sites
        yield from self.resources
        yield from self.incidents
        yield from self.events
        yield from self.capabilities
        yield from self.projects
        yield from self.project_allocations
        yield from self.user_allocations


def fix_links(entity: NamedObject) -> None:
    """Set each link's media type from its href."""
    for link in entity.links:
        link.media_type = rel.infer_media_type(link.href)


def _derive_facility_uris(facility: Facility) -> None:
    for name, relation in FACILITY_URI_RELATIONS.items():
        if not getattr(facility, name):
            setattr(facility, name, [link.href for link in facility.links_for(relation)])


def _read_json(path: Path) -> Any:
    logger.debug("Reading data source", path=str(path))
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to read data source", path=str(path), error=str(e))
        raise FacilityStatusError(f"Failed to read {path}: {e}") from e


def parse_source(kind: str, payload: Any, root: str = "") -> list[NamedObject]:
    """Parse one JSON payload into typed entities.

    A payload may be a single object or a list of objects.
    """
    entity_type = SOURCE_TYPES[kind]
    items = payload if isinstance(payload, list) else [payload]
    entities = []
    for item in items:
        entity = entity_type.from_dict(item)
        if not entity.self_uri:
            entity.self_uri = entity.build_self_uri(root)
        fix_links(entity)
        if isinstance(entity, Facility):
            _derive_facility_uris(entity)
        entities.append(entity)
    logger.debug("Parsed data source", kind=kind, count=len(entities))
    return entities


def load_sources(sources: Mapping[str, Path], root: str = "") -> FacilityData:
    """Load every configured source into a FacilityData."""
    data = FacilityData()
    for kind, path in sources.items():
        if kind not in SOURCE_TYPES:
            logger.warning("Ignoring unknown data source", kind=kind)
            continue
        entities = parse_source(kind, _read_json(path), root)
        target = "facilities" if kind == "facility" else kind
        getattr(data, target).extend(entities)
    return data


def load_config(config: Config) -> FacilityData:
    return load_sources(config.data_sources(), config.root)


def populate(repository: Repository, data: FacilityData) -> Repository:
    """Replace the repository contents with the loaded data in one swap."""
    repository.replace_all(data.entities())
    logger.info(
        "Data loaded",
        facilities=len(data.facilities),
        sites=len(data.sites),
        locations=len(data.locations),
        resources=len(data.resources),
        incidents=len(data.incidents),
        events=len(data.events),
    )
    return repository
