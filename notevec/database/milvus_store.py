"""Milvus vector store over the v2 REST API."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from notevec.errors import ConnectivityError, VectorStoreError
from notevec.models import VectorRecord
from notevec.utils.embedding.constants import HTTP_KEEPALIVE_TIMEOUT, HTTP_MAX_CONNECTIONS

from .vector_store import (
    FIELD_FILE_PATH,
    FIELD_ID,
    FIELD_MODIFIED_TIME,
    FIELD_PREVIEW,
    FIELD_VECTOR,
    CollectionSchema,
    SearchCandidate,
)

logger = logging.getLogger(__name__)

# Default timeout for store requests (seconds)
MILVUS_TIMEOUT = 30.0


def _quote(value: str) -> str:
    """Quote a string literal for a Milvus boolean filter expression."""
    return json.dumps(value, ensure_ascii=False)


class MilvusVectorStore:
    """Milvus collection accessed through /v2/vectordb endpoints.

    The COSINE metric makes Milvus return similarity in the `distance`
    field, so scores are passed through unchanged. Records are replaced
    with delete-by-key followed by insert.
    """

    score_kind = "similarity"
    supports_upsert = False

    def __init__(
        self,
        base_url: str,
        collection_name: str,
        timeout: float = MILVUS_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self.collection_name = collection_name
        self._timeout = timeout
        self._transport = transport
        self._async_client: Optional[httpx.AsyncClient] = None

    def _get_async_client(self) -> httpx.AsyncClient:
        if self._async_client is None:
            limits = httpx.Limits(
                max_connections=HTTP_MAX_CONNECTIONS,
                max_keepalive_connections=HTTP_MAX_CONNECTIONS,
                keepalive_expiry=HTTP_KEEPALIVE_TIMEOUT,
            )
            self._async_client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=limits,
                transport=self._transport,
            )
        return self._async_client

    async def close(self) -> None:
        if self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None

    async def _post(self, endpoint: str, body: dict[str, Any]) -> Any:
        """POST to a v2 endpoint and return the `data` member of the reply.

        Raises:
            ConnectivityError: Milvus is not reachable.
            VectorStoreError: HTTP error, malformed body, or non-zero `code`.
        """
        client = self._get_async_client()
        url = f"{self._base_url}/v2/vectordb/{endpoint}"
        try:
            response = await client.post(url, json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.TransportError as e:
            raise ConnectivityError(f"Cannot reach Milvus at {self._base_url}: {e}") from e
        except httpx.HTTPStatusError as e:
            raise VectorStoreError(
                f"Milvus {endpoint} failed: HTTP {e.response.status_code}"
            ) from e
        except ValueError as e:
            raise VectorStoreError(f"Milvus {endpoint} returned malformed JSON: {e}") from e

        if not isinstance(payload, dict):
            raise VectorStoreError(f"Milvus {endpoint} returned unexpected body: {payload!r}")
        code = payload.get("code", 0)
        if code not in (0, 200):
            message = payload.get("message") or "Unknown error"
            raise VectorStoreError(f"Milvus {endpoint} failed ({code}): {message}")
        return payload.get("data")

    async def has_collection(self) -> bool:
        data = await self._post("collections/has", {"collectionName": self.collection_name})
        return bool(isinstance(data, dict) and data.get("has"))

    async def list_collections(self) -> list[str]:
        data = await self._post("collections/list", {})
        return [str(name) for name in data or []]

    async def create_collection(self, schema: CollectionSchema) -> None:
        logger.info("Creating Milvus collection %s (dim=%d)", schema.name, schema.dimension)
        await self._post(
            "collections/create",
            {
                "collectionName": schema.name,
                "dimension": schema.dimension,
                "metricType": schema.metric,
                "schema": {
                    "fields": [
                        {
                            "fieldName": FIELD_ID,
                            "dataType": "VarChar",
                            "isPrimary": True,
                            "elementTypeParams": {"max_length": str(schema.id_max_length)},
                        },
                        {
                            "fieldName": FIELD_FILE_PATH,
                            "dataType": "VarChar",
                            "elementTypeParams": {"max_length": str(schema.path_max_length)},
                        },
                        {
                            "fieldName": FIELD_PREVIEW,
                            "dataType": "VarChar",
                            "elementTypeParams": {
                                "max_length": str(schema.preview_max_length)
                            },
                        },
                        {
                            "fieldName": FIELD_MODIFIED_TIME,
                            "dataType": "Int64",
                        },
                        {
                            "fieldName": FIELD_VECTOR,
                            "dataType": "FloatVector",
                            "elementTypeParams": {"dim": str(schema.dimension)},
                        },
                    ]
                },
            },
        )

    async def create_index(self, schema: CollectionSchema) -> None:
        """Build the vector index; a custom-schema collection cannot load without one."""
        await self._post(
            "indexes/create",
            {
                "collectionName": schema.name,
                "indexParams": [
                    {
                        "fieldName": FIELD_VECTOR,
                        "indexName": FIELD_VECTOR,
                        "metricType": schema.metric,
                        "indexType": "AUTOINDEX",
                    }
                ],
            },
        )

    async def describe_dimension(self) -> Optional[int]:
        data = await self._post("collections/describe", {"collectionName": self.collection_name})
        if not isinstance(data, dict):
            return None
        for field in data.get("fields", []):
            if field.get("name") != FIELD_VECTOR:
                continue
            for param in field.get("params", []):
                if param.get("key") == "dim":
                    return int(param["value"])
        return None

    async def load_collection(self) -> None:
        await self._post("collections/load", {"collectionName": self.collection_name})

    async def insert(self, record: VectorRecord) -> None:
        await self._post(
            "entities/insert",
            {"collectionName": self.collection_name, "data": [record.to_payload()]},
        )

    async def upsert(self, record: VectorRecord) -> None:
        await self._post(
            "entities/upsert",
            {"collectionName": self.collection_name, "data": [record.to_payload()]},
        )

    async def delete_by_key(self, key: str) -> None:
        await self._post(
            "entities/delete",
            {
                "collectionName": self.collection_name,
                "filter": f"{FIELD_ID} == {_quote(key)}",
            },
        )

    async def get_by_key(self, key: str, fields: list[str]) -> Optional[dict[str, Any]]:
        data = await self._post(
            "entities/query",
            {
                "collectionName": self.collection_name,
                "filter": f"{FIELD_ID} == {_quote(key)}",
                "outputFields": fields,
                "limit": 1,
            },
        )
        if not data:
            return None
        row = data[0]
        if not isinstance(row, dict):
            raise VectorStoreError(f"Milvus query returned unexpected row: {row!r}")
        return row

    async def search(self, vector: list[float], top_k: int) -> list[SearchCandidate]:
        data = await self._post(
            "entities/search",
            {
                "collectionName": self.collection_name,
                "data": [vector],
                "annsField": FIELD_VECTOR,
                "limit": top_k,
                "outputFields": [FIELD_FILE_PATH, FIELD_PREVIEW],
            },
        )
        candidates: list[SearchCandidate] = []
        for item in data or []:
            # Older servers nest hits per query vector
            hits = item if isinstance(item, list) else [item]
            for hit in hits:
                if not isinstance(hit, dict):
                    continue
                candidates.append(
                    SearchCandidate(
                        file_path=hit.get(FIELD_FILE_PATH),
                        raw_score=float(hit.get("distance") or 0.0),
                        content_preview=hit.get(FIELD_PREVIEW) or "",
                    )
                )
        return candidates
