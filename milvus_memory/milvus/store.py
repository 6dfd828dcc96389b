"""
Milvus memory store
===================

:class:`MilvusMemoryStore` maps the :class:`MemoryStore` operations onto a
:class:`MilvusClientBase` transport.  Each collection uses the fixed schema
from :mod:`.schema`; rows are encoded and decoded by :mod:`.codec`.

Not-found conditions (missing record, empty result, unreadable row) come back
as ``None`` or an empty iteration.  Transport errors propagate unchanged; no
call is retried here.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from milvus_memory.memory.record import MemoryRecord
from milvus_memory.memory.store import MemoryStore
from . import codec
from .client import MilvusClientBase, SearchResult
from .grpc_client import MilvusGrpcClient
from .rest_client import MilvusRestClient
from .schema import (
    DEFAULT_INDEX_NAME,
    EMBEDDING_FIELD,
    METADATA_FIELD,
    IndexType,
    build_schema,
    index_params,
    search_params,
)

logger = logging.getLogger(__name__)


class MilvusMemoryStore(MemoryStore):
    """
    Memory store persisted in Milvus.

    :param client: Transport used for every backend call.
    :param vector_size: Dimensionality of every stored embedding.
    :param index_type: Vector index built for new collections. ``AUTOINDEX``
        suits Zilliz Cloud and Milvus 2.2.9 or later.
    :param nlist: Cluster count for IVF index types.
    :param nprobe: Clusters probed per search.
    :param consistency_level: Consistency level for searches and lookups by id.
    :param chunk_size: Maximum number of ids in one filter expression.
    """

    def __init__(
        self,
        client: MilvusClientBase,
        vector_size: int,
        index_type: IndexType | str = IndexType.AUTOINDEX,
        *,
        nlist: int = 1024,
        nprobe: int = 10,
        consistency_level: str = "Strong",
        chunk_size: int = 800,
    ) -> None:
        if vector_size <= 0:
            raise ValueError(f"vector_size must be positive, got {vector_size}")
        self._client = client
        self._vector_size = int(vector_size)
        self._index_type = IndexType.parse(index_type)
        self._nlist = nlist
        self._nprobe = nprobe
        self._consistency_level = consistency_level
        self._chunk_size = max(1, int(chunk_size))
        self._closed = False

    @classmethod
    def from_config(
        cls,
        settings=None,
        *,
        vector_size: int | None = None,
        alias: str | None = None,
        session=None,
    ) -> "MilvusMemoryStore":
        """
        Build a store and its transport from :class:`milvus_memory.config.Milvus`
        settings (the process-wide ones by default).

        ``alias`` reuses an existing ``pymilvus`` connection for the gRPC
        transport; ``session`` reuses an ``aiohttp.ClientSession`` for HTTP.
        """
        if settings is None:
            from milvus_memory.config import milvus as settings

        transport = settings.MILVUS_TRANSPORT
        if transport == "grpc":
            client: MilvusClientBase = MilvusGrpcClient(
                settings.MILVUS_HOST,
                settings.MILVUS_PORT,
                settings.MILVUS_USER,
                settings.MILVUS_PASSWORD,
                alias=alias,
                timeout=settings.MILVUS_TIMEOUT,
            )
        elif transport in ("http", "rest"):
            client = MilvusRestClient(
                settings.MILVUS_HOST,
                settings.MILVUS_PORT,
                settings.MILVUS_USER,
                settings.MILVUS_PASSWORD,
                session=session,
                timeout=settings.MILVUS_TIMEOUT,
            )
        else:
            raise ValueError(f"Unknown Milvus transport {transport!r} (expected 'grpc' or 'http')")

        return cls(
            client,
            vector_size or settings.MILVUS_VECTOR_SIZE,
            settings.MILVUS_INDEX_TYPE,
            nlist=settings.MILVUS_NLIST,
            nprobe=settings.MILVUS_NPROBE,
            consistency_level=settings.MILVUS_CONSISTENCY,
            chunk_size=settings.MILVUS_DELETE_CHUNK,
        )

    @property
    def client(self) -> MilvusClientBase:
        return self._client

    @property
    def vector_size(self) -> int:
        return self._vector_size

    # --- Collections ---------------------------------------------------------

    async def create_collection(self, collection_name: str) -> None:
        if await self._client.has_collection(collection_name):
            return

        logger.info(
            "Creating collection %s (dim=%d, index=%s)",
            collection_name,
            self._vector_size,
            self._index_type.value,
        )
        await self._client.create_collection(collection_name, build_schema(self._vector_size))
        await self._client.create_index(
            collection_name,
            EMBEDDING_FIELD,
            DEFAULT_INDEX_NAME,
            index_params(self._index_type, self._nlist),
        )
        await self._client.load_collection(collection_name)

    async def delete_collection(self, collection_name: str) -> None:
        logger.info("Dropping collection %s", collection_name)
        await self._client.drop_collection(collection_name)

    async def does_collection_exist(self, collection_name: str) -> bool:
        return await self._client.has_collection(collection_name)

    async def get_collections(self) -> AsyncIterator[str]:
        for name in await self._client.list_collections():
            yield name

    # --- Writes --------------------------------------------------------------

    async def upsert(self, collection_name: str, record: MemoryRecord) -> str:
        ids = await self._write(collection_name, [record])
        return ids[0]

    async def upsert_batch(
        self, collection_name: str, records: Iterable[MemoryRecord]
    ) -> AsyncIterator[str]:
        records = codec.unique_by_id(records or [])
        if not records:
            return
        for rid in await self._write(collection_name, records):
            yield rid

    async def _write(self, collection_name: str, records: List[MemoryRecord]) -> List[str]:
        """Upsert ``records``; rows sharing an id are replaced by the backend."""
        fields = codec.to_insert_fields(records, self._vector_size)
        ids = await self._client.upsert(collection_name, fields)
        logger.debug("Upserted %d record(s) into %s", len(ids), collection_name)
        return ids

    async def remove(self, collection_name: str, key: str) -> None:
        await self._delete_keys(collection_name, [key])

    async def remove_batch(self, collection_name: str, keys: Iterable[str]) -> None:
        await self._delete_keys(collection_name, list(keys or []))

    async def _delete_keys(self, collection_name: str, keys: List[str]) -> None:
        # Delete in chunks to avoid overly long expressions
        for i in range(0, len(keys), self._chunk_size):
            await self._client.delete(collection_name, codec.key_filter(keys[i : i + self._chunk_size]))

    # --- Reads ---------------------------------------------------------------

    @staticmethod
    def _output_fields(with_embeddings: bool) -> List[str]:
        return [METADATA_FIELD, EMBEDDING_FIELD] if with_embeddings else [METADATA_FIELD]

    async def get(
        self, collection_name: str, key: str, with_embedding: bool = False
    ) -> Optional[MemoryRecord]:
        fields = await self._client.query(
            collection_name,
            codec.key_filter([key]),
            self._output_fields(with_embedding),
            consistency_level=self._consistency_level,
        )
        return codec.first_record(fields, with_embedding)

    async def get_batch(
        self, collection_name: str, keys: Iterable[str], with_embeddings: bool = False
    ) -> AsyncIterator[MemoryRecord]:
        keys = list(keys or [])
        for i in range(0, len(keys), self._chunk_size):
            fields = await self._client.query(
                collection_name,
                codec.key_filter(keys[i : i + self._chunk_size]),
                self._output_fields(with_embeddings),
                consistency_level=self._consistency_level,
            )
            for record in codec.records_from_fields(fields, with_embeddings):
                yield record

    async def _search(
        self,
        collection_name: str,
        embedding: Sequence[float] | np.ndarray,
        limit: int,
    ) -> SearchResult:
        # Milvus cannot return the vector field from a search
        return await self._client.search(
            collection_name,
            EMBEDDING_FIELD,
            codec.check_vector(embedding, self._vector_size),
            limit,
            search_params(self._nprobe),
            [METADATA_FIELD],
            consistency_level=self._consistency_level,
        )

    async def _resolve(
        self, collection_name: str, blob, with_embedding: bool
    ) -> Optional[MemoryRecord]:
        """Turn a search hit into a record, fetching its embedding if asked to."""
        if not with_embedding:
            return codec.decode_record(blob)
        key = codec.metadata_id(blob)
        if key is None:
            return None
        return await self.get(collection_name, key, with_embedding=True)

    async def get_nearest_match(
        self,
        collection_name: str,
        embedding: Sequence[float] | np.ndarray,
        min_relevance_score: float = 0.0,
        with_embedding: bool = False,
    ) -> Optional[Tuple[MemoryRecord, float]]:
        result = await self._search(collection_name, embedding, 1)
        best = next(codec.matches_from_search(result, min_relevance_score), None)
        if best is None:
            return None
        blob, score = best
        record = await self._resolve(collection_name, blob, with_embedding)
        return (record, score) if record is not None else None

    async def get_nearest_matches(
        self,
        collection_name: str,
        embedding: Sequence[float] | np.ndarray,
        limit: int,
        min_relevance_score: float = 0.0,
        with_embeddings: bool = False,
    ) -> AsyncIterator[Tuple[MemoryRecord, float]]:
        if limit <= 0:
            return
        result = await self._search(collection_name, embedding, limit)
        for blob, score in codec.matches_from_search(result, min_relevance_score):
            record = await self._resolve(collection_name, blob, with_embeddings)
            if record is not None:
                yield record, score

    # --- Lifecycle -----------------------------------------------------------

    async def close(self) -> None:
        """Release the backend connection. Later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        await self._client.close()

    async def __aenter__(self) -> "MilvusMemoryStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


__all__ = ["MilvusMemoryStore"]
