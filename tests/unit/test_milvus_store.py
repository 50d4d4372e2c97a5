"""Tests for the Milvus REST store."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from notevec.database.milvus_store import MilvusVectorStore
from notevec.database.vector_store import CollectionSchema
from notevec.errors import ConnectivityError, VectorStoreError
from notevec.models import VectorRecord

BASE_URL = "http://milvus.test:19530"


def _make_store(
    handler: Callable[[httpx.Request], httpx.Response],
) -> MilvusVectorStore:
    return MilvusVectorStore(
        BASE_URL + "/", "notes", transport=httpx.MockTransport(handler)
    )


class Recorder:
    """MockTransport handler that records requests and replies from a table."""

    def __init__(self, replies: dict[str, Any]) -> None:
        self.replies = replies
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.removeprefix("/v2/vectordb/")
        self.requests.append((endpoint, json.loads(request.content or b"{}")))
        reply = self.replies.get(endpoint, {"code": 0, "data": {}})
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    def body(self, endpoint: str) -> dict[str, Any]:
        for name, body in self.requests:
            if name == endpoint:
                return body
        raise AssertionError(f"{endpoint} was not called")


@pytest.mark.asyncio
async def test_has_collection_posts_collection_name() -> None:
    """The base URL's trailing slash is dropped and the name is sent."""
    recorder = Recorder({"collections/has": {"code": 0, "data": {"has": True}}})
    store = _make_store(recorder)

    assert await store.has_collection() is True
    assert recorder.body("collections/has") == {"collectionName": "notes"}
    await store.close()


@pytest.mark.asyncio
async def test_create_collection_sends_five_field_schema() -> None:
    """Schema carries the key, path, preview, time and vector fields."""
    recorder = Recorder({})
    store = _make_store(recorder)
    schema = CollectionSchema(name="notes", dimension=768)

    await store.create_collection(schema)
    await store.create_index(schema)

    body = recorder.body("collections/create")
    fields = {f["fieldName"]: f for f in body["schema"]["fields"]}
    assert list(fields) == ["id", "file_path", "content_preview", "modified_time", "vector"]
    assert fields["id"]["isPrimary"] is True
    assert fields["id"]["elementTypeParams"] == {"max_length": "512"}
    assert fields["file_path"]["elementTypeParams"] == {"max_length": "1024"}
    assert fields["content_preview"]["elementTypeParams"] == {"max_length": "2048"}
    assert fields["modified_time"]["dataType"] == "Int64"
    assert fields["vector"]["elementTypeParams"] == {"dim": "768"}
    assert body["metricType"] == "COSINE"

    index = recorder.body("indexes/create")["indexParams"][0]
    assert index["fieldName"] == "vector"
    assert index["metricType"] == "COSINE"


@pytest.mark.asyncio
async def test_describe_dimension_reads_vector_param() -> None:
    """The dim param of the vector field is parsed as an int."""
    recorder = Recorder(
        {
            "collections/describe": {
                "code": 0,
                "data": {
                    "fields": [
                        {"name": "id", "params": [{"key": "max_length", "value": "512"}]},
                        {"name": "vector", "params": [{"key": "dim", "value": "1024"}]},
                    ]
                },
            }
        }
    )
    store = _make_store(recorder)

    assert await store.describe_dimension() == 1024


@pytest.mark.asyncio
async def test_insert_sends_full_record() -> None:
    """Insert posts every field of the record."""
    recorder = Recorder({})
    store = _make_store(recorder)
    record = VectorRecord(
        id="a.md",
        file_path="a.md",
        content_preview="hello",
        modified_time=1_700_000_000_000,
        vector=[0.1, 0.2],
    )

    await store.insert(record)

    assert recorder.body("entities/insert") == {
        "collectionName": "notes",
        "data": [
            {
                "id": "a.md",
                "file_path": "a.md",
                "content_preview": "hello",
                "modified_time": 1_700_000_000_000,
                "vector": [0.1, 0.2],
            }
        ],
    }


@pytest.mark.asyncio
async def test_key_filters_quote_special_characters() -> None:
    """Quotes inside a key cannot break out of the filter literal."""
    recorder = Recorder({"entities/query": {"code": 0, "data": []}})
    store = _make_store(recorder)
    key = 'notes/say "hi".md'

    await store.delete_by_key(key)
    assert await store.get_by_key(key, ["modified_time"]) is None

    assert recorder.body("entities/delete")["filter"] == 'id == "notes/say \\"hi\\".md"'
    query = recorder.body("entities/query")
    assert query["filter"] == 'id == "notes/say \\"hi\\".md"'
    assert query["outputFields"] == ["modified_time"]
    assert query["limit"] == 1


@pytest.mark.asyncio
async def test_get_by_key_returns_first_row() -> None:
    recorder = Recorder(
        {"entities/query": {"code": 0, "data": [{"id": "a.md", "modified_time": 42}]}}
    )
    store = _make_store(recorder)

    assert await store.get_by_key("a.md", ["modified_time"]) == {
        "id": "a.md",
        "modified_time": 42,
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data",
    [
        [
            {"distance": 0.9, "file_path": "a.md", "content_preview": "A"},
            {"distance": 0.5, "file_path": "b.md"},
        ],
        [
            [
                {"distance": 0.9, "file_path": "a.md", "content_preview": "A"},
                {"distance": 0.5, "file_path": "b.md"},
            ]
        ],
    ],
    ids=["flat", "nested"],
)
async def test_search_parses_hits(data: list[Any]) -> None:
    """Flat and per-query nested hit lists both parse."""
    recorder = Recorder({"entities/search": {"code": 0, "data": data}})
    store = _make_store(recorder)

    candidates = await store.search([0.1, 0.2], top_k=6)

    assert [(c.file_path, c.raw_score, c.content_preview) for c in candidates] == [
        ("a.md", 0.9, "A"),
        ("b.md", 0.5, ""),
    ]
    body = recorder.body("entities/search")
    assert body["limit"] == 6
    assert body["annsField"] == "vector"
    assert body["outputFields"] == ["file_path", "content_preview"]


@pytest.mark.asyncio
async def test_nonzero_code_raises_store_error() -> None:
    """An application error code in a 200 reply is still an error."""
    recorder = Recorder(
        {"collections/load": {"code": 700, "message": "index not found"}}
    )
    store = _make_store(recorder)

    with pytest.raises(VectorStoreError, match="index not found"):
        await store.load_collection()


@pytest.mark.asyncio
async def test_http_error_raises_store_error() -> None:
    recorder = Recorder({"collections/list": httpx.Response(503, text="unavailable")})
    store = _make_store(recorder)

    with pytest.raises(VectorStoreError, match="HTTP 503"):
        await store.list_collections()


@pytest.mark.asyncio
async def test_malformed_body_raises_store_error() -> None:
    recorder = Recorder({"collections/list": httpx.Response(200, text="<html>")})
    store = _make_store(recorder)

    with pytest.raises(VectorStoreError, match="malformed"):
        await store.list_collections()


@pytest.mark.asyncio
async def test_unreachable_server_raises_connectivity_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = _make_store(handler)

    with pytest.raises(ConnectivityError, match="Cannot reach Milvus"):
        await store.has_collection()


def test_reports_similarity_and_no_native_upsert() -> None:
    store = _make_store(Recorder({}))
    assert store.score_kind == "similarity"
    assert store.supports_upsert is False
