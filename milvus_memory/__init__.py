"""
Public façade for the Milvus memory connector
=============================================

Import from here::

    from milvus_memory import MilvusMemoryStore, MemoryRecord

    async with MilvusMemoryStore.from_config() as store:
        await store.create_collection("notes")
        await store.upsert("notes", MemoryRecord.local_record("n1", "hello", embedding=vec))
"""

from __future__ import annotations

from .memory import MemoryRecord, MemoryRecordMetadata, MemoryStore
from .milvus import (
    FieldData,
    IndexType,
    MilvusClientBase,
    MilvusGrpcClient,
    MilvusMemoryStore,
    MilvusRestClient,
    SearchResult,
)

__all__ = [
    "MemoryRecord",
    "MemoryRecordMetadata",
    "MemoryStore",
    "FieldData",
    "IndexType",
    "MilvusClientBase",
    "MilvusGrpcClient",
    "MilvusMemoryStore",
    "MilvusRestClient",
    "SearchResult",
]
