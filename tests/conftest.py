import json
import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from milvus_memory.milvus.client import (  # noqa: E402
    FieldData,
    MilvusClientBase,
    SearchResult,
    rows_to_fields,
)


def _parse_in_expr(expr: str) -> tuple[str, list[str]]:
    """Parse ``field in [...]``; the list is valid JSON by construction."""
    field, _, values = expr.partition(" in ")
    return field.strip(), json.loads(values)


class FakeMilvusClient(MilvusClientBase):
    """In-memory stand-in for a Milvus transport that records every call."""

    def __init__(self):
        self.collections: dict[str, list[dict]] = {}
        self.calls: list[tuple] = []
        self.closed = 0

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    async def has_collection(self, collection_name):
        self.calls.append(("has_collection", collection_name))
        return collection_name in self.collections

    async def create_collection(self, collection_name, schema):
        self.calls.append(("create_collection", collection_name, schema))
        self.collections.setdefault(collection_name, [])

    async def create_index(self, collection_name, field_name, index_name, index_params):
        self.calls.append(("create_index", collection_name, field_name, index_name, index_params))

    async def load_collection(self, collection_name):
        self.calls.append(("load_collection", collection_name))

    async def drop_collection(self, collection_name):
        self.calls.append(("drop_collection", collection_name))
        if collection_name not in self.collections:
            raise RuntimeError(f"collection not found: {collection_name}")
        del self.collections[collection_name]

    async def list_collections(self):
        self.calls.append(("list_collections",))
        return list(self.collections)

    async def upsert(self, collection_name, fields):
        self.calls.append(("upsert", collection_name, fields))
        rows = self.collections.setdefault(collection_name, [])
        names = [f.name for f in fields]
        ids = []
        for values in zip(*(f.values for f in fields)):
            row = dict(zip(names, values))
            rows[:] = [existing for existing in rows if existing["id"] != row["id"]]
            rows.append(row)
            ids.append(row["id"])
        return ids

    def _matching(self, collection_name, expr):
        field, values = _parse_in_expr(expr)
        return [row for row in self.collections.get(collection_name, []) if row[field] in values]

    async def query(self, collection_name, expr, output_fields, consistency_level="Strong"):
        self.calls.append(("query", collection_name, expr, list(output_fields), consistency_level))
        return rows_to_fields(self._matching(collection_name, expr), output_fields)

    async def search(self, collection_name, anns_field, vector, limit, param, output_fields, consistency_level="Strong"):
        self.calls.append(("search", collection_name, anns_field, list(vector), limit, param, list(output_fields), consistency_level))
        query = np.asarray(vector, dtype=np.float32)
        scored = [
            (float(np.dot(query, np.asarray(row[anns_field], dtype=np.float32))), row)
            for row in self.collections.get(collection_name, [])
        ]
        scored.sort(key=lambda item: item[0], reverse=True)
        scored = scored[:limit]
        return SearchResult(
            ids=[row["id"] for _, row in scored],
            scores=[score for score, _ in scored],
            fields=[FieldData(name, [row[name] for _, row in scored]) for name in output_fields],
        )

    async def delete(self, collection_name, expr):
        self.calls.append(("delete", collection_name, expr))
        doomed = self._matching(collection_name, expr)
        rows = self.collections.get(collection_name, [])
        self.collections[collection_name] = [row for row in rows if row not in doomed]

    async def close(self):
        self.closed += 1


@pytest.fixture
def fake_client():
    return FakeMilvusClient()
