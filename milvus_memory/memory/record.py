"""Dataclass models for memory records.

Metadata schema (output of :meth:`MemoryRecordMetadata.to_json`):

```
{"is_reference": false, "external_source_name": "", "id": "doc-1",
 "description": "greeting", "text": "Hello world!", "additional_metadata": ""}
```

Key order is fixed, so a blob written by :meth:`MemoryRecord.serialized_metadata`
parses and re-serializes to the same string.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

import numpy as np


def as_embedding(values: Sequence[float] | np.ndarray | None) -> Optional[np.ndarray]:
    """Return ``values`` as a flat float32 array, or ``None``."""
    if values is None:
        return None
    return np.array(values, dtype=np.float32, copy=True).reshape(-1)


@dataclass(slots=True)
class MemoryRecordMetadata:
    """Descriptive part of a record, persisted as a JSON string."""

    id: str
    text: str = ""
    description: str = ""
    is_reference: bool = False
    external_source_name: str = ""
    additional_metadata: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_reference": self.is_reference,
            "external_source_name": self.external_source_name,
            "id": self.id,
            "description": self.description,
            "text": self.text,
            "additional_metadata": self.additional_metadata,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryRecordMetadata":
        """Build metadata from a decoded blob. ``id`` is required."""
        if not isinstance(data, dict):
            raise TypeError(f"metadata must be a JSON object, got {type(data).__name__}")
        return cls(
            id=str(data["id"]),
            text=str(data.get("text") or ""),
            description=str(data.get("description") or ""),
            is_reference=bool(data.get("is_reference", False)),
            external_source_name=str(data.get("external_source_name") or ""),
            additional_metadata=str(data.get("additional_metadata") or ""),
        )

    @classmethod
    def from_json(cls, blob: str) -> "MemoryRecordMetadata":
        return cls.from_dict(json.loads(blob))


@dataclass(slots=True)
class MemoryRecord:
    """A unit of memory: metadata, an optional embedding and a storage key."""

    metadata: MemoryRecordMetadata
    embedding: Optional[np.ndarray] = None
    key: str = ""
    timestamp: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.embedding = as_embedding(self.embedding)
        if not self.key:
            self.key = self.metadata.id

    @property
    def id(self) -> str:
        return self.metadata.id

    def serialized_metadata(self) -> str:
        """Return the JSON blob stored alongside the vector."""
        return self.metadata.to_json()

    @classmethod
    def local_record(
        cls,
        id: str,
        text: str,
        description: str = "",
        embedding: Sequence[float] | np.ndarray | None = None,
        additional_metadata: str = "",
        key: str = "",
        timestamp: Optional[datetime] = None,
    ) -> "MemoryRecord":
        """Record whose text lives in the store itself."""
        metadata = MemoryRecordMetadata(
            id=id,
            text=text,
            description=description,
            is_reference=False,
            external_source_name="",
            additional_metadata=additional_metadata,
        )
        return cls(metadata=metadata, embedding=embedding, key=key, timestamp=timestamp)

    @classmethod
    def reference_record(
        cls,
        external_id: str,
        source_name: str,
        description: str = "",
        embedding: Sequence[float] | np.ndarray | None = None,
        additional_metadata: str = "",
        key: str = "",
        timestamp: Optional[datetime] = None,
    ) -> "MemoryRecord":
        """Record pointing at content held by an external source."""
        metadata = MemoryRecordMetadata(
            id=external_id,
            text="",
            description=description,
            is_reference=True,
            external_source_name=source_name,
            additional_metadata=additional_metadata,
        )
        return cls(metadata=metadata, embedding=embedding, key=key, timestamp=timestamp)

    @classmethod
    def from_metadata(
        cls,
        metadata: MemoryRecordMetadata,
        embedding: Sequence[float] | np.ndarray | None = None,
        key: str = "",
        timestamp: Optional[datetime] = None,
    ) -> "MemoryRecord":
        return cls(metadata=metadata, embedding=embedding, key=key, timestamp=timestamp)

    @classmethod
    def from_json_metadata(
        cls,
        json_metadata: str,
        embedding: Sequence[float] | np.ndarray | None = None,
        key: str = "",
        timestamp: Optional[datetime] = None,
    ) -> "MemoryRecord":
        """
        Parse a stored metadata blob into a record.

        :raises ValueError: if the blob is not valid JSON.
        :raises KeyError: if the blob has no ``id``.
        :raises TypeError: if the blob is not a JSON object.
        """
        metadata = MemoryRecordMetadata.from_json(json_metadata)
        return cls(metadata=metadata, embedding=embedding, key=key, timestamp=timestamp)

    def __str__(self) -> str:
        return self.serialized_metadata()
