"""HTTP transport for the Milvus RESTful v2 API.

Every endpoint is a ``POST`` under ``/v2/vectordb`` answering with
``{"code": 0, "data": ...}``.  A non-zero ``code`` is raised as
:class:`pymilvus.exceptions.MilvusException` so callers see the same error
type regardless of transport.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import aiohttp
from pymilvus import CollectionSchema, DataType
from pymilvus.exceptions import MilvusException

from .client import FieldData, MilvusClientBase, SearchResult, rows_to_fields

logger = logging.getLogger(__name__)

_REST_TYPES = {
    DataType.BOOL: "Bool",
    DataType.INT8: "Int8",
    DataType.INT16: "Int16",
    DataType.INT32: "Int32",
    DataType.INT64: "Int64",
    DataType.FLOAT: "Float",
    DataType.DOUBLE: "Double",
    DataType.VARCHAR: "VarChar",
    DataType.JSON: "JSON",
    DataType.FLOAT_VECTOR: "FloatVector",
}

# Search rows carry the similarity under this key
_SCORE_KEY = "distance"


def schema_to_json(schema: CollectionSchema) -> Dict[str, Any]:
    """Translate a ``pymilvus`` schema into the REST ``schema`` object."""
    fields = []
    for f in schema.fields:
        try:
            data_type = _REST_TYPES[f.dtype]
        except KeyError as exc:
            raise ValueError(f"Field {f.name!r} has unsupported type {f.dtype!r}") from exc
        entry: Dict[str, Any] = {"fieldName": f.name, "dataType": data_type}
        if f.is_primary:
            entry["isPrimary"] = True
        params = {k: str(v) for k, v in (f.params or {}).items() if k in ("dim", "max_length")}
        if params:
            entry["elementTypeParams"] = params
        fields.append(entry)
    return {"autoId": bool(schema.auto_id), "enableDynamicField": False, "fields": fields}


class MilvusRestClient(MilvusClientBase):
    """
    :param host: Milvus server address.
    :param port: HTTP port (Milvus serves REST on the gRPC port by default).
    :param user: Username.
    :param password: Password.
    :param session: Existing ``aiohttp.ClientSession`` to reuse. A supplied
        session is left open by :meth:`close`.
    :param timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 19530,
        user: str = "root",
        password: str = "milvus",
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: float | None = None,
        scheme: str = "http",
    ) -> None:
        self._base_url = f"{scheme}://{host}:{port}/v2/vectordb"
        self._headers = {
            "Authorization": f"Bearer {user}:{password}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
        self._session = session
        self._owns_session = session is None
        self._closed = False

    def _get_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise RuntimeError("MilvusRestClient is closed")
        if self._session is None:
            # Created lazily: aiohttp sessions must be built inside a running loop
            self._session = aiohttp.ClientSession(headers=self._headers)
        return self._session

    async def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        session = self._get_session()
        url = f"{self._base_url}/{path}"
        logger.debug("POST %s", url)
        kwargs: Dict[str, Any] = {"json": payload}
        if not self._owns_session:
            kwargs["headers"] = self._headers
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout
        async with session.post(url, **kwargs) as resp:
            resp.raise_for_status()
            body = await resp.json(content_type=None)
        code = body.get("code", 0)
        if code != 0:
            raise MilvusException(code=code, message=str(body.get("message", "")))
        return body.get("data")

    async def has_collection(self, collection_name: str) -> bool:
        data = await self._post("collections/has", {"collectionName": collection_name})
        return bool((data or {}).get("has"))

    async def create_collection(self, collection_name: str, schema: CollectionSchema) -> None:
        await self._post(
            "collections/create",
            {"collectionName": collection_name, "schema": schema_to_json(schema)},
        )

    async def create_index(
        self,
        collection_name: str,
        field_name: str,
        index_name: str,
        index_params: Dict[str, Any],
    ) -> None:
        entry = {
            "fieldName": field_name,
            "indexName": index_name,
            "metricType": index_params.get("metric_type"),
            "indexType": index_params.get("index_type"),
            "params": {"index_type": index_params.get("index_type"), **index_params.get("params", {})},
        }
        await self._post(
            "indexes/create",
            {"collectionName": collection_name, "indexParams": [entry]},
        )

    async def load_collection(self, collection_name: str) -> None:
        await self._post("collections/load", {"collectionName": collection_name})

    async def drop_collection(self, collection_name: str) -> None:
        await self._post("collections/drop", {"collectionName": collection_name})

    async def list_collections(self) -> List[str]:
        data = await self._post("collections/list", {})
        return [str(name) for name in data or []]

    async def upsert(self, collection_name: str, fields: Sequence[FieldData]) -> List[str]:
        rows = [dict(zip((f.name for f in fields), values)) for values in zip(*(f.values for f in fields))]
        data = await self._post("entities/upsert", {"collectionName": collection_name, "data": rows})
        return [str(pk) for pk in (data or {}).get("upsertIds", [])]

    async def query(
        self,
        collection_name: str,
        expr: str,
        output_fields: Sequence[str],
        consistency_level: str = "Strong",
    ) -> List[FieldData]:
        payload = {
            "collectionName": collection_name,
            "filter": expr,
            "outputFields": list(output_fields),
            "consistencyLevel": consistency_level,
        }
        data = await self._post("entities/query", payload)
        return rows_to_fields(data or [], output_fields)

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
        payload = {
            "collectionName": collection_name,
            "data": [list(vector)],
            "annsField": anns_field,
            "limit": limit,
            "outputFields": list(output_fields),
            "searchParams": {"metricType": param.get("metric_type"), "params": param.get("params", {})},
            "consistencyLevel": consistency_level,
        }
        rows = await self._post("entities/search", payload) or []
        scored = [row for row in rows if _SCORE_KEY in row]
        if len(scored) != len(rows):
            logger.warning("Dropping %d search row(s) without a %s", len(rows) - len(scored), _SCORE_KEY)
        rows = scored
        return SearchResult(
            ids=[str(row.get("id", "")) for row in rows],
            scores=[float(row[_SCORE_KEY]) for row in rows],
            fields=rows_to_fields(rows, output_fields),
        )

    async def delete(self, collection_name: str, expr: str) -> None:
        await self._post("entities/delete", {"collectionName": collection_name, "filter": expr})

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_session and self._session is not None:
            await self._session.close()


__all__ = ["MilvusRestClient", "schema_to_json"]
