"""Abstract memory store consumed by the orchestration layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Iterable, Optional, Sequence, Tuple

import numpy as np

from .record import MemoryRecord


class MemoryStore(ABC):
    """Interface for vector-backed memory stores.

    Batch reads are async generators: results are produced as they are decoded
    and can be consumed once.
    """

    @abstractmethod
    async def create_collection(self, collection_name: str) -> None:
        """Create ``collection_name`` unless it already exists."""

    @abstractmethod
    async def delete_collection(self, collection_name: str) -> None:
        """Drop ``collection_name`` and every record in it."""

    @abstractmethod
    async def does_collection_exist(self, collection_name: str) -> bool:
        """Return ``True`` if ``collection_name`` exists."""

    @abstractmethod
    def get_collections(self) -> AsyncIterator[str]:
        """Yield every collection name known to the backend."""

    @abstractmethod
    async def upsert(self, collection_name: str, record: MemoryRecord) -> str:
        """Store ``record`` and return its id."""

    @abstractmethod
    def upsert_batch(
        self, collection_name: str, records: Iterable[MemoryRecord]
    ) -> AsyncIterator[str]:
        """Store ``records`` and yield their ids in insertion order."""

    @abstractmethod
    async def get(
        self, collection_name: str, key: str, with_embedding: bool = False
    ) -> Optional[MemoryRecord]:
        """Return the record stored under ``key`` or ``None``."""

    @abstractmethod
    def get_batch(
        self, collection_name: str, keys: Iterable[str], with_embeddings: bool = False
    ) -> AsyncIterator[MemoryRecord]:
        """Yield the records stored under ``keys``; missing keys are skipped."""

    @abstractmethod
    async def remove(self, collection_name: str, key: str) -> None:
        """Delete the record stored under ``key``. Missing keys are ignored."""

    @abstractmethod
    async def remove_batch(self, collection_name: str, keys: Iterable[str]) -> None:
        """Delete every record stored under ``keys``."""

    @abstractmethod
    async def get_nearest_match(
        self,
        collection_name: str,
        embedding: Sequence[float] | np.ndarray,
        min_relevance_score: float = 0.0,
        with_embedding: bool = False,
    ) -> Optional[Tuple[MemoryRecord, float]]:
        """Return the closest record and its score, or ``None``."""

    @abstractmethod
    def get_nearest_matches(
        self,
        collection_name: str,
        embedding: Sequence[float] | np.ndarray,
        limit: int,
        min_relevance_score: float = 0.0,
        with_embeddings: bool = False,
    ) -> AsyncIterator[Tuple[MemoryRecord, float]]:
        """Yield up to ``limit`` ``(record, score)`` pairs, best first."""
