"""Conversion between :class:`MemoryRecord` and Milvus field columns."""

from __future__ import annotations

import json
import logging
from numbers import Real
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from milvus_memory.memory.record import MemoryRecord, as_embedding
from .client import FieldData, SearchResult, find_field
from .schema import (
    EMBEDDING_FIELD,
    ID_FIELD,
    ID_MAX_LENGTH,
    METADATA_FIELD,
    METADATA_MAX_LENGTH,
)

logger = logging.getLogger(__name__)

_DECODE_ERRORS = (ValueError, KeyError, TypeError)


def key_filter(keys: Iterable[str], field_name: str = ID_FIELD) -> str:
    """
    Build ``<field> in ["k1", "k2"]``.

    Each key is emitted as a JSON string literal, so embedded quotes and
    backslashes are escaped rather than terminating the literal.
    """
    literals = ", ".join(json.dumps(str(k), ensure_ascii=False) for k in keys)
    return f"{field_name} in [{literals}]"


def check_vector(vector: Sequence[float] | np.ndarray, vector_size: int) -> List[float]:
    """Return ``vector`` as a list of floats, enforcing the store's dimensionality."""
    arr = as_embedding(vector)
    if arr is None or arr.shape[0] != vector_size:
        got = 0 if arr is None else arr.shape[0]
        raise ValueError(f"Expected embedding of dim {vector_size}, got {got}")
    return arr.tolist()


def _check_length(record_id: str, field_name: str, value: str, limit: int) -> None:
    # VARCHAR limits are enforced in UTF-8 bytes server-side
    size = len(value.encode("utf-8"))
    if size > limit:
        raise ValueError(
            f"Record {record_id!r}: {field_name} is {size} bytes, limit is {limit}"
        )


def unique_by_id(records: Iterable[MemoryRecord]) -> List[MemoryRecord]:
    """Drop repeated ids, keeping the last record for each at its first position."""
    latest: Dict[str, MemoryRecord] = {}
    for record in records:
        latest[record.id] = record
    return list(latest.values())


def to_insert_fields(records: Sequence[MemoryRecord], vector_size: int) -> List[FieldData]:
    """
    Encode ``records`` as the id, embedding and metadata columns, in schema order.

    :raises ValueError: if a record has no embedding, the wrong dimensionality,
        or an id or metadata blob longer than its column allows.
    """
    ids: List[str] = []
    vectors: List[List[float]] = []
    blobs: List[str] = []
    for record in records:
        if record.embedding is None:
            raise ValueError(f"Record {record.id!r} has no embedding")
        blob = record.serialized_metadata()
        _check_length(record.id, ID_FIELD, record.id, ID_MAX_LENGTH)
        _check_length(record.id, METADATA_FIELD, blob, METADATA_MAX_LENGTH)
        ids.append(record.id)
        vectors.append(check_vector(record.embedding, vector_size))
        blobs.append(blob)
    return [
        FieldData(ID_FIELD, ids),
        FieldData(EMBEDDING_FIELD, vectors),
        FieldData(METADATA_FIELD, blobs),
    ]


def _is_vector(value: Any) -> bool:
    if isinstance(value, np.ndarray):
        return value.ndim == 1
    if isinstance(value, (list, tuple)):
        return all(isinstance(v, Real) for v in value)
    return False


def decode_record(blob: Any, embedding: Any = None) -> Optional[MemoryRecord]:
    """Parse one row, returning ``None`` when the row is malformed."""
    if not isinstance(blob, str):
        logger.warning("Skipping row: metadata is %s, not a string", type(blob).__name__)
        return None
    if embedding is not None and not _is_vector(embedding):
        logger.warning("Skipping row: embedding is %s, not a vector", type(embedding).__name__)
        return None
    try:
        return MemoryRecord.from_json_metadata(blob, embedding)
    except _DECODE_ERRORS as exc:
        logger.warning("Skipping row with unreadable metadata: %s", exc)
        return None


def metadata_id(blob: Any) -> Optional[str]:
    """Return the record id stored in a metadata blob, or ``None``."""
    record = decode_record(blob)
    return record.id if record is not None else None


def records_from_fields(
    fields: Sequence[FieldData] | None, with_embeddings: bool = False
) -> Iterator[MemoryRecord]:
    """
    Zip the metadata and embedding columns of a query response into records.

    Yields nothing when either column is missing or empty; rows that fail to
    decode are skipped.
    """
    meta_col = find_field(fields, METADATA_FIELD)
    emb_col = find_field(fields, EMBEDDING_FIELD)
    if meta_col is None or meta_col.row_count == 0:
        return
    if with_embeddings and (emb_col is None or emb_col.row_count != meta_col.row_count):
        return

    for i, blob in enumerate(meta_col.values):
        embedding = emb_col.values[i] if with_embeddings else None
        record = decode_record(blob, embedding)
        if record is not None:
            yield record


def first_record(fields: Sequence[FieldData] | None, with_embedding: bool = False) -> Optional[MemoryRecord]:
    return next(records_from_fields(fields, with_embedding), None)


def matches_from_search(result: SearchResult, min_score: float = 0.0) -> Iterator[Tuple[str, float]]:
    """
    Yield ``(metadata_blob, score)`` for hits at or above ``min_score``,
    best score first.
    """
    meta_col = find_field(result.fields, METADATA_FIELD)
    if meta_col is None or meta_col.row_count == 0:
        return
    rows = sorted(
        zip(meta_col.values, result.scores),
        key=lambda row: row[1],
        reverse=True,
    )
    for blob, score in rows:
        if score < min_score:
            continue
        yield blob, float(score)


__all__ = [
    "key_filter",
    "check_vector",
    "to_insert_fields",
    "unique_by_id",
    "records_from_fields",
    "first_record",
    "matches_from_search",
    "metadata_id",
    "decode_record",
]
