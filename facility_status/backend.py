"""Repository interface for the facility status object index."""

import re
from abc import ABC, abstractmethod
from typing import Iterable, TypeVar

from facility_status.errors import InvalidArgumentError
from facility_status.models import NamedObject

T = TypeVar("T", bound=NamedObject)

UUID_PATTERN = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)


def extract_uuid(href: str | None) -> str:
    """Extract the trailing UUID from a href.

    Raises:
        InvalidArgumentError: If the href contains no UUID
    """
    matches = UUID_PATTERN.findall((href or "").replace('"', ""))
    if not matches:
        raise InvalidArgumentError(f"No identifier found in href: {href}")
    return matches[-1].lower()


class Repository(ABC):
    """Abstract base class for the object index.

    Absence is always reported as None, never raised. Typed accessors hand out
    copies so callers cannot mutate the stored entities.
    """

    @abstractmethod
    def insert(self, entity: NamedObject) -> NamedObject:
        """Insert or replace an entity by id."""
        pass

    @abstractmethod
    def insert_all(self, entities: Iterable[NamedObject]) -> None:
        """Insert or replace several entities in one step."""
        pass

    @abstractmethod
    def replace_all(self, entities: Iterable[NamedObject]) -> None:
        """Replace the whole index with the given entities."""
        pass

    @abstractmethod
    def get_by_id(self, entity_id: str) -> NamedObject | None:
        """Get a copy of the entity with the given id."""
        pass

    @abstractmethod
    def find_all_of_type(self, entity_type: type[T]) -> list[T]:
        """Get copies of every entity of a type, in insertion order."""
        pass

    @abstractmethod
    def find_one_of_type(self, entity_type: type[T]) -> T | None:
        """Get a copy of the first entity of a type."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Count the entities in the index."""
        pass

    @abstractmethod
    def delete(self, entity_ids: list[str]) -> None:
        """Remove entities by id."""
        pass

    def get_by_href(self, href: str, entity_type: type[T]) -> T | None:
        """Resolve a href to an entity of the expected type.

        Returns None when nothing is stored under the href's UUID or when the
        stored entity is of a different kind.

        Raises:
            InvalidArgumentError: If the href contains no UUID
        """
        entity = self.get_by_id(extract_uuid(href))
        if entity is None or entity.kind != entity_type.kind:
            return None
        return entity  # type: ignore[return-value]

    def get_of_type(self, entity_id: str, entity_type: type[T]) -> T | None:
        """Get an entity by id only if it is of the expected type."""
        entity = self.get_by_id(entity_id)
        if entity is None or entity.kind != entity_type.kind:
            return None
        return entity  # type: ignore[return-value]
