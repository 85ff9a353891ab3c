"""Link inspection commands for the facility status CLI."""

from cyclopts import App

from facility_status import relationships as rel
from facility_status.backend import Repository, extract_uuid
from facility_status.errors import InvalidArgumentError
from facility_status.models import ENTITY_TYPES, NamedObject

link_app = App(name="link", help="Inspect links between entities")


def find_broken_links(repository: Repository, entities: list[NamedObject]) -> list[tuple[str, str, str]]:
    """Return (source id, relation, href) for every typed link that does not resolve."""
    broken = []
    for entity in entities:
        for link in entity.links:
            if link.relation == rel.SELF or link.media_type is None:
                continue
            try:
                target = repository.get_by_id(extract_uuid(link.href))
            except InvalidArgumentError:
                target = None
            if target is None:
                broken.append((entity.id, link.relation, link.href))
    return broken


@link_app.command(name="list")
def list_links(
    entity_id: str,
    type: str | None = None,
) -> None:
    """List all links for an entity."""
    from facility_status.cli import get_repository

    repository = get_repository()
    entity = repository.get_by_id(entity_id)
    if entity is None:
        print(f"Entity {entity_id} not found")
        return

    links = [link for link in entity.links if type is None or rel.local_name(link.relation) == type]
    if not links:
        print(f"No links found for entity {entity_id}")
        return

    print(f"Links for entity {entity_id}:\n")
    for link in links:
        print(f"  {entity_id} --[{link.relation}]--> {link.href}")


@link_app.command
def resolve(href: str, kind: str = "resource") -> None:
    """Resolve a href to the entity of the given kind it points at."""
    from facility_status.cli import get_repository

    if kind not in ENTITY_TYPES:
        print(f"Unknown kind: {kind}")
        return

    repository = get_repository()
    entity = repository.get_by_href(href, ENTITY_TYPES[kind])
    if entity is None:
        print(f"No {kind} found for {href}")
        return
    print(f"{entity.kind} {entity.id}: {entity.name}")


@link_app.command
def tree(entity_id: str) -> None:
    """Display the entities an entity links to, grouped by relation."""
    from facility_status.cli import get_repository

    repository = get_repository()
    entity = repository.get_by_id(entity_id)
    if entity is None:
        print(f"Entity {entity_id} not found")
        return

    print(f"Entity: {entity.id} {entity.name} ({entity.kind})\n")

    groups: dict[str, list[str]] = {}
    for link in entity.links:
        relation = rel.local_name(link.relation)
        if relation == rel.SELF:
            continue
        groups.setdefault(relation, []).append(link.href)

    for relation, hrefs in groups.items():
        print(f"{relation}:")
        kind = rel.target_kind(entity.kind, relation)
        for href in hrefs:
            target = repository.get_by_href(href, ENTITY_TYPES[kind]) if kind else None
            if target is not None:
                print(f"  - {target.id} {target.name}")
            else:
                print(f"  - {href}")
        print()


@link_app.command
def check() -> None:
    """Find links that do not resolve to a loaded entity."""
    from facility_status.cli import get_repository

    repository = get_repository()
    entities = [entity for kind in ENTITY_TYPES.values() for entity in repository.find_all_of_type(kind)]
    broken = find_broken_links(repository, entities)

    if not broken:
        print("No broken links found")
        return

    print(f"Found {len(broken)} broken link(s):\n")
    for source_id, relation, href in broken:
        print(f"  {source_id} --[{relation}]--> {href}")
