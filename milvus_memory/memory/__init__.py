"""Framework-side memory abstractions: records and the store interface."""

from .record import MemoryRecord, MemoryRecordMetadata
from .store import MemoryStore

__all__ = ["MemoryRecord", "MemoryRecordMetadata", "MemoryStore"]
