"""Fixed collection schema and index parameters for memory collections.

Every collection holds three fields:

- ``id``: ``VARCHAR`` primary key (max 100 chars), supplied by the caller
- ``embedding``: ``FLOAT_VECTOR`` with the store's dimensionality
- ``metadata``: ``VARCHAR`` (max 1000 chars) holding the JSON metadata blob
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict

from pymilvus import CollectionSchema, DataType, FieldSchema

ID_FIELD = "id"
EMBEDDING_FIELD = "embedding"
METADATA_FIELD = "metadata"

ID_MAX_LENGTH = 100
METADATA_MAX_LENGTH = 1000

DEFAULT_INDEX_NAME = "_default_idx"
METRIC_TYPE = "IP"


class IndexType(str, Enum):
    AUTOINDEX = "AUTOINDEX"
    FLAT = "FLAT"
    IVF_FLAT = "IVF_FLAT"
    IVF_SQ8 = "IVF_SQ8"
    IVF_PQ = "IVF_PQ"
    HNSW = "HNSW"

    @classmethod
    def parse(cls, value: "str | IndexType") -> "IndexType":
        try:
            return cls(str(getattr(value, "value", value)).upper())
        except ValueError as exc:
            known = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown index type {value!r} (expected one of: {known})") from exc


def build_fields(vector_size: int) -> list[FieldSchema]:
    """Return the three field definitions for a memory collection."""
    if vector_size <= 0:
        raise ValueError(f"vector_size must be positive, got {vector_size}")
    return [
        FieldSchema(
            name=ID_FIELD,
            dtype=DataType.VARCHAR,
            max_length=ID_MAX_LENGTH,
            is_primary=True,
            auto_id=False,
        ),
        FieldSchema(name=EMBEDDING_FIELD, dtype=DataType.FLOAT_VECTOR, dim=vector_size),
        FieldSchema(name=METADATA_FIELD, dtype=DataType.VARCHAR, max_length=METADATA_MAX_LENGTH),
    ]


def build_schema(vector_size: int) -> CollectionSchema:
    return CollectionSchema(build_fields(vector_size), description="Memory records")


def index_params(index_type: IndexType | str = IndexType.AUTOINDEX, nlist: int = 1024) -> Dict[str, Any]:
    """Build-time parameters for the vector index."""
    index_type = IndexType.parse(index_type)
    if index_type in (IndexType.IVF_FLAT, IndexType.IVF_SQ8):
        params: Dict[str, Any] = {"nlist": nlist}
    elif index_type is IndexType.IVF_PQ:
        params = {"nlist": nlist, "m": 8, "nbits": 8}
    elif index_type is IndexType.HNSW:
        params = {"M": 16, "efConstruction": 200}
    else:
        params = {}
    return {"index_type": index_type.value, "metric_type": METRIC_TYPE, "params": params}


def search_params(nprobe: int = 10) -> Dict[str, Any]:
    """Search-time parameters; ``nprobe`` is ignored by non-IVF indexes."""
    return {"metric_type": METRIC_TYPE, "params": {"nprobe": nprobe}}
