"""ChromaDB-backed local vector store."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from notevec.errors import VectorStoreError
from notevec.models import VectorRecord

from .vector_store import (
    FIELD_FILE_PATH,
    FIELD_MODIFIED_TIME,
    FIELD_PREVIEW,
    CollectionSchema,
    SearchCandidate,
)

logger = logging.getLogger(__name__)


class ChromaVectorStore:
    """Persistent local Chroma collection.

    Chroma has a native upsert and reports cosine distance, so scores are
    converted by the query engine. The client is synchronous; every call
    runs in a worker thread.
    """

    score_kind = "distance"
    supports_upsert = True

    def __init__(self, store_path: Path, collection_name: str) -> None:
        self._store_path = Path(store_path)
        self.collection_name = collection_name
        self._client: Any = None
        self._collection: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            import chromadb
            from chromadb.config import Settings

            self._store_path.mkdir(parents=True, exist_ok=True)
            self._client = chromadb.PersistentClient(
                path=str(self._store_path),
                settings=Settings(anonymized_telemetry=False),
            )
        return self._client

    def _require_collection(self) -> Any:
        if self._collection is None:
            raise VectorStoreError(
                f"Chroma collection {self.collection_name!r} is not loaded"
            )
        return self._collection

    async def _run(self, action: str, fn: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(f"Chroma {action} failed: {e}") from e

    async def close(self) -> None:
        self._collection = None
        self._client = None

    def _list_names(self) -> list[str]:
        # chromadb < 0.6 returns Collection objects, newer versions names
        return [
            c if isinstance(c, str) else c.name
            for c in self._get_client().list_collections()
        ]

    async def has_collection(self) -> bool:
        return self.collection_name in await self._run("list", self._list_names)

    async def list_collections(self) -> list[str]:
        return await self._run("list", self._list_names)

    async def create_collection(self, schema: CollectionSchema) -> None:
        logger.info("Creating Chroma collection %s", schema.name)
        space = "cosine" if schema.metric.upper() == "COSINE" else schema.metric.lower()
        self._collection = await self._run(
            "create",
            lambda: self._get_client().create_collection(
                name=schema.name,
                metadata={"hnsw:space": space, "dimension": schema.dimension},
            ),
        )

    async def create_index(self, schema: CollectionSchema) -> None:
        # HNSW index is built implicitly
        return None

    async def describe_dimension(self) -> Optional[int]:
        collection = await self._run(
            "describe", lambda: self._get_client().get_collection(name=self.collection_name)
        )
        dimension = (collection.metadata or {}).get("dimension")
        return int(dimension) if dimension is not None else None

    async def load_collection(self) -> None:
        self._collection = await self._run(
            "load", lambda: self._get_client().get_collection(name=self.collection_name)
        )

    def _write(self, method: str, record: VectorRecord) -> None:
        getattr(self._require_collection(), method)(
            ids=[record.id],
            embeddings=[record.vector],
            documents=[record.content_preview],
            metadatas=[
                {
                    FIELD_FILE_PATH: record.file_path,
                    FIELD_PREVIEW: record.content_preview,
                    FIELD_MODIFIED_TIME: record.modified_time,
                }
            ],
        )

    async def insert(self, record: VectorRecord) -> None:
        await self._run("insert", self._write, "add", record)

    async def upsert(self, record: VectorRecord) -> None:
        await self._run("upsert", self._write, "upsert", record)

    async def delete_by_key(self, key: str) -> None:
        await self._run("delete", lambda: self._require_collection().delete(ids=[key]))

    async def get_by_key(self, key: str, fields: list[str]) -> Optional[dict[str, Any]]:
        result = await self._run(
            "get",
            lambda: self._require_collection().get(ids=[key], include=["metadatas"]),
        )
        ids = result.get("ids") or []
        if not ids:
            return None
        metas = result.get("metadatas") or [{}]
        meta = metas[0] or {}
        return {name: meta.get(name) for name in fields}

    async def search(self, vector: list[float], top_k: int) -> list[SearchCandidate]:
        result = await self._run(
            "search",
            lambda: self._require_collection().query(
                query_embeddings=[vector],
                n_results=max(1, top_k),
                include=["metadatas", "distances"],
            ),
        )
        metas = (result.get("metadatas") or [[]])[0] or []
        distances = (result.get("distances") or [[]])[0] or []
        candidates: list[SearchCandidate] = []
        for idx, meta in enumerate(metas):
            meta = meta or {}
            distance = distances[idx] if idx < len(distances) else 1.0
            candidates.append(
                SearchCandidate(
                    file_path=meta.get(FIELD_FILE_PATH),
                    raw_score=float(distance),
                    content_preview=str(meta.get(FIELD_PREVIEW) or ""),
                )
            )
        return candidates
