"""Backend client capability interface.

``MilvusMemoryStore`` only talks to Milvus through :class:`MilvusClientBase`,
so the gRPC and HTTP transports (or a test fake) can be swapped freely.
Responses are field-oriented: one :class:`FieldData` column per requested
field, rows aligned by position.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pymilvus import CollectionSchema


@dataclass(slots=True)
class FieldData:
    """One column of a query, search or upsert payload."""

    name: str
    values: List[Any] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.values)


@dataclass(slots=True)
class SearchResult:
    """Hits for a single query vector, in the order the backend ranked them."""

    ids: List[str] = field(default_factory=list)
    scores: List[float] = field(default_factory=list)
    fields: List[FieldData] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.scores)


def find_field(fields: Sequence[FieldData] | None, name: str) -> Optional[FieldData]:
    """Return the column called ``name`` or ``None``."""
    for column in fields or ():
        if column.name == name:
            return column
    return None


def rows_to_fields(rows: Sequence[Dict[str, Any]], names: Sequence[str]) -> List[FieldData]:
    """Pivot row dicts into columns; a name absent from any row gets no column."""
    columns: List[FieldData] = []
    for name in names:
        if rows and not all(name in row for row in rows):
            continue
        columns.append(FieldData(name, [row[name] for row in rows]))
    return columns


class MilvusClientBase(ABC):
    """Operations the memory store needs from a Milvus transport.

    Every method is a coroutine. Failures raised by the transport propagate
    unchanged.
    """

    @abstractmethod
    async def has_collection(self, collection_name: str) -> bool: ...

    @abstractmethod
    async def create_collection(self, collection_name: str, schema: CollectionSchema) -> None: ...

    @abstractmethod
    async def create_index(
        self,
        collection_name: str,
        field_name: str,
        index_name: str,
        index_params: Dict[str, Any],
    ) -> None: ...

    @abstractmethod
    async def load_collection(self, collection_name: str) -> None: ...

    @abstractmethod
    async def drop_collection(self, collection_name: str) -> None: ...

    @abstractmethod
    async def list_collections(self) -> List[str]: ...

    @abstractmethod
    async def upsert(self, collection_name: str, fields: Sequence[FieldData]) -> List[str]:
        """
        Write column-oriented rows, replacing any row with the same primary
        key, and return the primary keys in order.
        """

    @abstractmethod
    async def query(
        self,
        collection_name: str,
        expr: str,
        output_fields: Sequence[str],
        consistency_level: str = "Strong",
    ) -> List[FieldData]: ...

    @abstractmethod
    async def search(
        self,
        collection_name: str,
        anns_field: str,
        vector: Sequence[float],
        limit: int,
        param: Dict[str, Any],
        output_fields: Sequence[str],
        consistency_level: str = "Strong",
    ) -> SearchResult: ...

    @abstractmethod
    async def delete(self, collection_name: str, expr: str) -> None: ...

    @abstractmethod
    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""
