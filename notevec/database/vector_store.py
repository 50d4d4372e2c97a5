"""Vector store interfaces for note similarity search."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Optional, Protocol

from notevec.models import VectorRecord

# How a backend reports closeness: "similarity" is higher-is-better,
# "distance" is cosine distance (similarity = 1 - distance).
ScoreKind = Literal["similarity", "distance"]

# Fields stored alongside each vector
FIELD_ID = "id"
FIELD_FILE_PATH = "file_path"
FIELD_PREVIEW = "content_preview"
FIELD_MODIFIED_TIME = "modified_time"
FIELD_VECTOR = "vector"


@dataclass(frozen=True)
class CollectionSchema:
    """Fixed schema of a notes collection, set at creation time."""

    name: str
    dimension: int = 768
    metric: str = "COSINE"
    id_max_length: int = 512
    path_max_length: int = 1024
    preview_max_length: int = 2048


@dataclass
class SearchCandidate:
    """Raw nearest-neighbour hit as returned by a backend."""

    file_path: Optional[str]
    raw_score: float
    content_preview: str = ""


class VectorStore(Protocol):
    """Protocol for vector store backends bound to one collection.

    Backends raise ConnectivityError when the store cannot be reached and
    VectorStoreError when it rejects a request.
    """

    collection_name: str
    score_kind: ScoreKind
    # True if `upsert` replaces by key in one call; otherwise callers
    # delete-by-key before `insert`.
    supports_upsert: bool

    async def has_collection(self) -> bool:
        ...

    async def list_collections(self) -> list[str]:
        ...

    async def create_collection(self, schema: CollectionSchema) -> None:
        ...

    async def create_index(self, schema: CollectionSchema) -> None:
        ...

    async def describe_dimension(self) -> Optional[int]:
        """Vector dimension of the existing collection, or None if unknown."""
        ...

    async def load_collection(self) -> None:
        ...

    async def insert(self, record: VectorRecord) -> None:
        ...

    async def upsert(self, record: VectorRecord) -> None:
        ...

    async def delete_by_key(self, key: str) -> None:
        """Delete the record with this key. A missing record is not an error."""
        ...

    async def get_by_key(self, key: str, fields: list[str]) -> Optional[dict[str, Any]]:
        ...

    async def search(self, vector: list[float], top_k: int) -> list[SearchCandidate]:
        ...

    async def close(self) -> None:
        ...
