"""gRPC transport backed by the ``pymilvus`` ORM API.

``pymilvus`` calls block, so each one runs in a worker thread via
``asyncio.to_thread``.  Cancelling the awaiting task abandons the result; the
configured ``timeout`` bounds how long the worker keeps the request open.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Dict, List, Sequence

from pymilvus import Collection, CollectionSchema, connections, utility

from .client import FieldData, MilvusClientBase, SearchResult, rows_to_fields

logger = logging.getLogger(__name__)

_alias_counter = itertools.count(1)


class MilvusGrpcClient(MilvusClientBase):
    """
    :param host: Milvus server address.
    :param port: gRPC port.
    :param user: Username, ignored when authentication is disabled server-side.
    :param password: Password.
    :param alias: Name of an already established ``pymilvus`` connection to
        reuse. Such a connection is left open by :meth:`close`.
    :param timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 19530,
        user: str = "root",
        password: str = "milvus",
        *,
        alias: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._timeout = timeout
        self._closed = False
        if alias is not None:
            self._alias = alias
            self._owns_connection = False
        else:
            self._alias = f"milvus-memory-{next(_alias_counter)}"
            self._owns_connection = True
            connections.connect(
                alias=self._alias,
                uri=f"http://{host}:{port}",
                user=user,
                password=password,
            )
            logger.info("Connected to Milvus at %s:%s (alias=%s)", host, port, self._alias)

    @property
    def alias(self) -> str:
        return self._alias

    def _collection(self, collection_name: str) -> Collection:
        return Collection(collection_name, using=self._alias)

    async def has_collection(self, collection_name: str) -> bool:
        def _run() -> bool:
            return bool(utility.has_collection(collection_name, using=self._alias, timeout=self._timeout))

        return await asyncio.to_thread(_run)

    async def create_collection(self, collection_name: str, schema: CollectionSchema) -> None:
        def _run() -> None:
            Collection(collection_name, schema=schema, using=self._alias, timeout=self._timeout)

        await asyncio.to_thread(_run)

    async def create_index(
        self,
        collection_name: str,
        field_name: str,
        index_name: str,
        index_params: Dict[str, Any],
    ) -> None:
        def _run() -> None:
            self._collection(collection_name).create_index(
                field_name=field_name,
                index_params=index_params,
                index_name=index_name,
                timeout=self._timeout,
            )

        await asyncio.to_thread(_run)

    async def load_collection(self, collection_name: str) -> None:
        def _run() -> None:
            self._collection(collection_name).load(timeout=self._timeout)

        await asyncio.to_thread(_run)

    async def drop_collection(self, collection_name: str) -> None:
        def _run() -> None:
            utility.drop_collection(collection_name, timeout=self._timeout, using=self._alias)

        await asyncio.to_thread(_run)

    async def list_collections(self) -> List[str]:
        def _run() -> List[str]:
            return list(utility.list_collections(timeout=self._timeout, using=self._alias))

        return await asyncio.to_thread(_run)

    async def upsert(self, collection_name: str, fields: Sequence[FieldData]) -> List[str]:
        # Column order must follow the schema, which the codec guarantees
        data = [list(column.values) for column in fields]

        def _run() -> List[str]:
            res = self._collection(collection_name).upsert(data, timeout=self._timeout)
            return [str(pk) for pk in res.primary_keys]

        return await asyncio.to_thread(_run)

    async def query(
        self,
        collection_name: str,
        expr: str,
        output_fields: Sequence[str],
        consistency_level: str = "Strong",
    ) -> List[FieldData]:
        def _run() -> List[Dict[str, Any]]:
            return self._collection(collection_name).query(
                expr=expr,
                output_fields=list(output_fields),
                consistency_level=consistency_level,
                timeout=self._timeout,
            )

        rows = await asyncio.to_thread(_run)
        return rows_to_fields(rows, output_fields)

    async def search(
        self,
        collection_name: str,
        anns_field: str,
        vector: Sequence[float],
        limit: int,
        param: Dict[str, Any],
        output_fields: Sequence[str],
        consistency_level: str = "Strong",
    ) -> SearchResult:
        def _run():
            return self._collection(collection_name).search(
                data=[list(vector)],
                anns_field=anns_field,
                param=param,
                limit=limit,
                output_fields=list(output_fields),
                consistency_level=consistency_level,
                timeout=self._timeout,
            )

        res = await asyncio.to_thread(_run)
        hits = res[0] if res else []
        columns = [
            FieldData(name, [hit.entity.get(name) for hit in hits]) for name in output_fields
        ]
        return SearchResult(
            ids=[str(hit.id) for hit in hits],
            scores=[float(hit.score) for hit in hits],
            fields=columns,
        )

    async def delete(self, collection_name: str, expr: str) -> None:
        def _run() -> None:
            self._collection(collection_name).delete(expr, timeout=self._timeout)

        await asyncio.to_thread(_run)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_connection:
            await asyncio.to_thread(connections.disconnect, self._alias)
            logger.info("Disconnected from Milvus (alias=%s)", self._alias)


__all__ = ["MilvusGrpcClient"]
