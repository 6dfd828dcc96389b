import numpy as np
import pytest

from milvus_memory.memory.record import MemoryRecord
from milvus_memory.milvus import codec
from milvus_memory.milvus.client import FieldData, SearchResult


def _blob(rid: str, text: str = "text") -> str:
    return MemoryRecord.local_record(id=rid, text=text).serialized_metadata()


def test_key_filter_quotes_each_key():
    assert codec.key_filter(["Id", "Id2"]) == 'id in ["Id", "Id2"]'


def test_key_filter_escapes_embedded_quotes():
    expr = codec.key_filter(['say "hi"', "back\\slash"])
    assert expr == 'id in ["say \\"hi\\"", "back\\\\slash"]'


def test_to_insert_fields_builds_parallel_columns():
    records = [
        MemoryRecord.local_record(id="a", text="first", embedding=[1, 2]),
        MemoryRecord.local_record(id="b", text="second", embedding=np.array([3, 4])),
    ]

    ids, vectors, blobs = codec.to_insert_fields(records, 2)

    assert (ids.name, vectors.name, blobs.name) == ("id", "embedding", "metadata")
    assert ids.values == ["a", "b"]
    assert vectors.values == [[1.0, 2.0], [3.0, 4.0]]
    assert blobs.values == [r.serialized_metadata() for r in records]


def test_to_insert_fields_rejects_wrong_dimension():
    record = MemoryRecord.local_record(id="a", text="x", embedding=[1, 2, 3])
    with pytest.raises(ValueError):
        codec.to_insert_fields([record], 4)


def test_to_insert_fields_requires_embedding():
    with pytest.raises(ValueError):
        codec.to_insert_fields([MemoryRecord.local_record(id="a", text="x")], 3)


def test_to_insert_fields_rejects_long_id():
    record = MemoryRecord.local_record(id="i" * 101, text="x", embedding=[1, 2])
    with pytest.raises(ValueError, match="id"):
        codec.to_insert_fields([record], 2)


def test_to_insert_fields_rejects_long_metadata():
    record = MemoryRecord.local_record(id="a", text="x" * 1000, embedding=[1, 2])
    with pytest.raises(ValueError, match="metadata"):
        codec.to_insert_fields([record], 2)


def test_to_insert_fields_counts_metadata_in_utf8_bytes():
    # 400 three-byte characters fit in 1000 chars but not in 1000 bytes
    record = MemoryRecord.local_record(id="a", text="€" * 400, embedding=[1, 2])
    with pytest.raises(ValueError):
        codec.to_insert_fields([record], 2)


def test_unique_by_id_keeps_last_record_at_first_position():
    first = MemoryRecord.local_record(id="a", text="first")
    other = MemoryRecord.local_record(id="b", text="other")
    last = MemoryRecord.local_record(id="a", text="last")

    unique = codec.unique_by_id([first, other, last])

    assert [(r.id, r.metadata.text) for r in unique] == [("a", "last"), ("b", "other")]


def test_records_from_fields_zips_rows():
    fields = [
        FieldData("metadata", [_blob("a"), _blob("b")]),
        FieldData("embedding", [[1.0, 0.0], [0.0, 1.0]]),
    ]

    records = list(codec.records_from_fields(fields, with_embeddings=True))

    assert [r.id for r in records] == ["a", "b"]
    assert records[1].embedding.tolist() == [0.0, 1.0]


def test_records_from_fields_skips_bad_rows_only():
    fields = [
        FieldData("metadata", [_blob("a"), 42, "{not json", '{"text": "no id"}', _blob("e")]),
    ]

    records = list(codec.records_from_fields(fields))

    assert [r.id for r in records] == ["a", "e"]


def test_records_from_fields_skips_row_with_mistyped_vector():
    fields = [
        FieldData("metadata", [_blob("a"), _blob("b")]),
        FieldData("embedding", ["oops", [1.0, 2.0]]),
    ]

    assert [r.id for r in codec.records_from_fields(fields, with_embeddings=True)] == ["b"]


@pytest.mark.parametrize(
    "fields",
    [
        None,
        [],
        [FieldData("metadata", [])],
        [FieldData("other", ["x"])],
    ],
)
def test_records_from_fields_yields_nothing_for_empty_or_missing(fields):
    assert list(codec.records_from_fields(fields)) == []


def test_records_from_fields_needs_embedding_column_when_requested():
    fields = [FieldData("metadata", [_blob("a")])]
    assert codec.first_record(fields, with_embedding=True) is None
    assert codec.first_record(fields).id == "a"


def test_matches_from_search_orders_and_filters():
    result = SearchResult(
        ids=["a", "b", "c"],
        scores=[0.2, 0.9, 0.5],
        fields=[FieldData("metadata", [_blob("a"), _blob("b"), _blob("c")])],
    )

    matches = list(codec.matches_from_search(result, min_score=0.3))

    assert [codec.metadata_id(blob) for blob, _ in matches] == ["b", "c"]
    assert [score for _, score in matches] == [0.9, 0.5]


def test_matches_from_search_without_metadata_column():
    result = SearchResult(ids=["a"], scores=[1.0], fields=[])
    assert list(codec.matches_from_search(result)) == []


def test_metadata_id_handles_garbage():
    assert codec.metadata_id(_blob("abc")) == "abc"
    assert codec.metadata_id("[]") is None
    assert codec.metadata_id(None) is None
