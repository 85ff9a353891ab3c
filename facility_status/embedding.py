"""Resolve an entity's links into an embedded bundle of related entities."""

from typing import Iterable

import structlog

from facility_status import relationships as rel
from facility_status.backend import Repository
from facility_status.errors import FacilityStatusError, InvalidArgumentError
from facility_status.models import ENTITY_TYPES, NamedObject

logger = structlog.get_logger()

Bundle = dict[str, list[NamedObject]]


def process_includes(
    entity: NamedObject,
    repository: Repository,
    includes: Iterable[str] | None,
) -> Bundle | None:
    """Dereference the links named by ``includes``.

    Relations are compared by local name, so ``hasResource`` also matches
    ``https://schema.doe.gov/iri/facility/status#hasResource``. Relations the
    source kind has no target for are logged and skipped.

    Returns:
        A mapping of relation name to related entities, or None when nothing
        was resolved.
    """
    bundle: Bundle = {}
    for include in includes or []:
        relation = rel.local_name(include.strip())
        if not relation:
            continue
        kind = rel.target_kind(entity.kind, relation)
        if kind is None:
            logger.error("Unknown relation for include", source=entity.kind, relation=include)
            continue
        target_type = ENTITY_TYPES[kind]
        bucket = bundle.setdefault(relation, [])
        for link in entity.links:
            if rel.local_name(link.relation) != relation:
                continue
            try:
                target = repository.get_by_href(link.href, target_type)
            except InvalidArgumentError as e:
                logger.error("Stored link has no identifier", source=entity.id, href=link.href)
                raise FacilityStatusError(f"Corrupt link on {entity.id}: {link.href}") from e
            if target is None:
                logger.warning("Link target not found", source=entity.id, href=link.href, kind=kind)
                continue
            if all(existing.id != target.id for existing in bucket):
                bucket.append(target)

    bundle = {relation: targets for relation, targets in bundle.items() if targets}
    return bundle or None
