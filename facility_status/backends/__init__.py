"""Repository implementations."""

from facility_status.backends.memory import MemoryRepository

__all__ = ["MemoryRepository"]
