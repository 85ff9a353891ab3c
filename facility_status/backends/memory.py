"""In-memory repository backed by an atomically swapped snapshot."""

from types import MappingProxyType
from typing import Iterable, Mapping

import structlog

from facility_status.backend import Repository, T
from facility_status.models import NamedObject

logger = structlog.get_logger()


class MemoryRepository(Repository):
    """Repository holding every entity in a read-only id -> entity mapping.

    Readers take the current mapping without locking. Writers build a new
    mapping and swap it in with a single assignment, so a reader never sees a
    partially populated index.
    """

    def __init__(self, entities: Iterable[NamedObject] | None = None) -> None:
        self._snapshot: Mapping[str, NamedObject] = MappingProxyType({})
        if entities is not None:
            self.replace_all(entities)

    def _swap(self, entries: dict[str, NamedObject]) -> None:
        self._snapshot = MappingProxyType(entries)

    def insert(self, entity: NamedObject) -> NamedObject:
        entries = dict(self._snapshot)
        entries[entity.id] = entity.copy()
        self._swap(entries)
        logger.debug("Inserted entity", id=entity.id, kind=entity.kind)
        return entity

    def insert_all(self, entities: Iterable[NamedObject]) -> None:
        entries = dict(self._snapshot)
        for entity in entities:
            entries[entity.id] = entity.copy()
        self._swap(entries)

    def replace_all(self, entities: Iterable[NamedObject]) -> None:
        entries: dict[str, NamedObject] = {}
        for entity in entities:
            entries[entity.id] = entity.copy()
        self._swap(entries)
        logger.info("Repository loaded", count=len(entries))

    def get_by_id(self, entity_id: str) -> NamedObject | None:
        entity = self._snapshot.get(entity_id)
        return entity.copy() if entity is not None else None

    def find_all_of_type(self, entity_type: type[T]) -> list[T]:
        snapshot = self._snapshot
        return [entity.copy() for entity in snapshot.values() if entity.kind == entity_type.kind]  # type: ignore[misc]

    def find_one_of_type(self, entity_type: type[T]) -> T | None:
        for entity in self._snapshot.values():
            if entity.kind == entity_type.kind:
                return entity.copy()  # type: ignore[return-value]
        return None

    def count(self) -> int:
        return len(self._snapshot)

    def delete(self, entity_ids: list[str]) -> None:
        removed = set(entity_ids)
        entries = {key: value for key, value in self._snapshot.items() if key not in removed}
        self._swap(entries)
        logger.debug("Deleted entities", ids=entity_ids)
