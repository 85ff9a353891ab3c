"""Relationship vocabulary, media types and relation target tables."""

import structlog

logger = structlog.get_logger()

# Link relations.
SELF = "self"
HAS_RESOURCE = "hasResource"
HAS_EVENT = "hasEvent"
GENERATED_BY = "generatedBy"
HAS_INCIDENT = "hasIncident"
LOCATED_AT = "locatedAt"
HOSTED_AT = "hostedAt"
HAS_LOCATION = "hasLocation"
HAS_SITE = "hasSite"
HAS_SUPPORT_URL = "hasSupportURL"
IMPACTS = "impacts"
IMPACTED_BY = "impactedBy"
MAY_IMPACT = "mayImpact"
DEPENDS_ON = "dependsOn"
HAS_DEPENDENT = "hasDependent"
MEMBER_OF = "memberOf"

STATUS_NAMESPACE = "https://schema.doe.gov/iri/facility/status#"

# Media types.
DISCOVERY = "application/vnd.doe.iri.discovery+json"
FACILITY = "application/vnd.doe.iri.facility+json"
INCIDENTS = "application/vnd.doe.iri.incident.collection+json"
INCIDENT = "application/vnd.doe.iri.incident+json"
EVENTS = "application/vnd.doe.iri.event.collection+json"
EVENT = "application/vnd.doe.iri.event+json"
RESOURCES = "application/vnd.doe.iri.resource.collection+json"
RESOURCE = "application/vnd.doe.iri.resource+json"
SITES = "application/vnd.doe.iri.site.collection+json"
SITE = "application/vnd.doe.iri.site+json"
LOCATIONS = "application/vnd.doe.iri.location.collection+json"
LOCATION = "application/vnd.doe.iri.location+json"
CAPABILITIES = "application/vnd.doe.iri.capability.collection+json"
CAPABILITY = "application/vnd.doe.iri.capability+json"
PROJECTS = "application/vnd.doe.iri.project.collection+json"
PROJECT = "application/vnd.doe.iri.project+json"
PROJECT_ALLOCATIONS = "application/vnd.doe.iri.project_allocation.collection+json"
PROJECT_ALLOCATION = "application/vnd.doe.iri.project_allocation+json"
USER_ALLOCATIONS = "application/vnd.doe.iri.user_allocation.collection+json"
USER_ALLOCATION = "application/vnd.doe.iri.user_allocation+json"

# Checked in order, first match wins.
HREF_MEDIA_TYPES: tuple[tuple[str, str], ...] = (
    ("resources", RESOURCE),
    ("sites", SITE),
    ("locations", LOCATION),
    ("events", EVENT),
    ("incidents", INCIDENT),
    ("facility", FACILITY),
    ("capabilities", CAPABILITY),
    ("project_allocations", PROJECT_ALLOCATION),
    ("user_allocations", USER_ALLOCATION),
    ("projects", PROJECT),
)

# Relation -> target entity kind, per source entity kind.
RELATIONSHIP_TARGETS: dict[str, dict[str, str]] = {
    "facility": {
        HOSTED_AT: "site",
        HAS_LOCATION: "location",
        HAS_INCIDENT: "incident",
        HAS_EVENT: "event",
        HAS_RESOURCE: "resource",
    },
    "resource": {
        MEMBER_OF: "facility",
        LOCATED_AT: "site",
        HAS_INCIDENT: "incident",
        IMPACTED_BY: "event",
        DEPENDS_ON: "resource",
        HAS_DEPENDENT: "resource",
    },
    "incident": {
        HAS_EVENT: "event",
        MAY_IMPACT: "resource",
    },
    "event": {
        GENERATED_BY: "incident",
        IMPACTS: "resource",
    },
    "site": {
        HAS_LOCATION: "location",
        LOCATED_AT: "location",
        HAS_RESOURCE: "resource",
    },
    "location": {
        HAS_SITE: "site",
    },
}


def local_name(relation: str | None) -> str:
    """Strip the status namespace (or any '#' prefix) from a relation."""
    if not relation:
        return ""
    return relation.rsplit("#", 1)[-1]


def infer_media_type(href: str | None) -> str | None:
    """Return the media type implied by the path of a link href.

    Returns None and logs an error when the href names no known collection.
    """
    if href:
        for segment, media_type in HREF_MEDIA_TYPES:
            if segment in href:
                return media_type
    logger.error("Link type unknown", href=href)
    return None


def target_kind(source_kind: str, relation: str) -> str | None:
    """Look up the entity kind a relation points at for the given source kind."""
    return RELATIONSHIP_TARGETS.get(source_kind, {}).get(local_name(relation))
