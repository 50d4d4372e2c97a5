"""Global fixtures: temp vault, in-memory vector store, fake embedder."""

from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from notevec.core.collection import CollectionManager
from notevec.database.vault import NoteVault
from notevec.database.vector_store import CollectionSchema, SearchCandidate
from notevec.errors import ConnectivityError, EmbeddingError, VectorStoreError
from notevec.models import SimilarNote, VectorRecord
from notevec.utils.embedding import ConnectionStatus, EmbeddingProvider

DIM = 3


def write_note(root: Path, key: str, content: str, mtime_ms: int) -> Path:
    """Create a note with an exact modification time."""
    path = root / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    os.utime(path, ns=(mtime_ms * 1_000_000, mtime_ms * 1_000_000))
    return path


class FakeEmbedder(EmbeddingProvider):
    """Deterministic embedder; texts listed in `fail_on` raise EmbeddingError."""

    def __init__(self, dimension: int = DIM) -> None:
        self._dimension = dimension
        self.calls: list[str] = []
        self.fail_on: set[str] = set()
        self.vectors: dict[str, list[float]] = {}
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    @property
    def model(self) -> str:
        return "fake-embed"

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingError("Failed to generate embedding: model not found")
        if text in self.vectors:
            return list(self.vectors[text])
        # Stable pseudo-vector from the text
        seed = sum(ord(ch) for ch in text) or 1
        return [float((seed % 7) + 1), float((seed % 5) + 1), float((seed % 3) + 1)][
            : self._dimension
        ]

    async def check_connection(self) -> ConnectionStatus:
        return ConnectionStatus(True, 'Connected! Model "fake-embed" is available.')

    async def close(self) -> None:
        self.closed = True


def _cosine_distance(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return 1.0 - (dot / norm if norm else 0.0)


class InMemoryVectorStore:
    """Vector store double that records every call.

    Inserts never dedupe, so a missing delete-before-insert shows up as a
    duplicate record.
    """

    def __init__(
        self,
        *,
        score_kind: str = "distance",
        supports_upsert: bool = False,
        exists: bool = False,
        dimension: Optional[int] = None,
    ) -> None:
        self.collection_name = "notes"
        self.score_kind = score_kind
        self.supports_upsert = supports_upsert
        self.exists = exists
        self.dimension = dimension
        self.records: list[VectorRecord] = []
        self.calls: list[str] = []
        self.fail: dict[str, Exception] = {}
        self.delete_missing_raises = False
        self.canned_search: Optional[list[SearchCandidate]] = None
        self.last_top_k: Optional[int] = None
        self.closed = False

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise self.fail[name]

    def keys(self) -> list[str]:
        return [record.id for record in self.records]

    def get(self, key: str) -> Optional[VectorRecord]:
        for record in self.records:
            if record.id == key:
                return record
        return None

    async def has_collection(self) -> bool:
        self._call("has_collection")
        return self.exists

    async def list_collections(self) -> list[str]:
        self._call("list_collections")
        return [self.collection_name] if self.exists else []

    async def create_collection(self, schema: CollectionSchema) -> None:
        self._call("create_collection")
        self.exists = True
        self.dimension = schema.dimension

    async def create_index(self, schema: CollectionSchema) -> None:
        self._call("create_index")

    async def describe_dimension(self) -> Optional[int]:
        self._call("describe_dimension")
        return self.dimension

    async def load_collection(self) -> None:
        self._call("load_collection")

    async def insert(self, record: VectorRecord) -> None:
        self._call("insert")
        self.records.append(record)

    async def upsert(self, record: VectorRecord) -> None:
        self._call("upsert")
        self.records = [r for r in self.records if r.id != record.id]
        self.records.append(record)

    async def delete_by_key(self, key: str) -> None:
        self._call("delete_by_key")
        before = len(self.records)
        self.records = [r for r in self.records if r.id != key]
        if self.delete_missing_raises and len(self.records) == before:
            raise VectorStoreError(f"Milvus entities/delete failed (1100): no entity {key}")

    async def get_by_key(self, key: str, fields: list[str]) -> Optional[dict[str, Any]]:
        self._call("get_by_key")
        record = self.get(key)
        if record is None:
            return None
        return {name: getattr(record, name, None) for name in fields}

    async def search(self, vector: list[float], top_k: int) -> list[SearchCandidate]:
        self._call("search")
        self.last_top_k = top_k
        if self.canned_search is not None:
            return self.canned_search[:top_k]
        scored = sorted(
            (
                (_cosine_distance(vector, record.vector), record)
                for record in self.records
            ),
            key=lambda pair: pair[0],
        )
        candidates = []
        for distance, record in scored[:top_k]:
            raw = distance if self.score_kind == "distance" else 1.0 - distance
            candidates.append(
                SearchCandidate(
                    file_path=record.file_path,
                    raw_score=raw,
                    content_preview=record.content_preview,
                )
            )
        return candidates

    async def close(self) -> None:
        self.closed = True


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []
        self.results: list[list[SimilarNote]] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)

    def show_results(self, results: list[SimilarNote]) -> None:
        self.results.append(results)


class ScriptedPrompter:
    def __init__(self, confirm: bool = True, text: str = "") -> None:
        self._confirm = confirm
        self._text = text
        self.confirm_calls: list[tuple[str, str]] = []
        self.prompt_calls: list[str] = []

    async def confirm(self, title: str, message: str) -> bool:
        self.confirm_calls.append((title, message))
        return self._confirm

    async def prompt_text(self, label: str) -> str:
        self.prompt_calls.append(label)
        return self._text


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    """Vault with three notes and some non-note files."""
    root = tmp_path / "vault"
    write_note(root, "alpha.md", "Alpha note about gardening\nTomatoes and basil", 1_000)
    write_note(root, "beta.md", "Beta note about cooking", 2_000)
    write_note(root, "projects/gamma.md", "Gamma project plan", 3_000)
    write_note(root, ".obsidian/workspace.md", "ignored", 4_000)
    (root / "image.png").write_bytes(b"\x89PNG")
    return root


@pytest.fixture
def vault(vault_dir: Path) -> NoteVault:
    return NoteVault(vault_dir)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def schema() -> CollectionSchema:
    return CollectionSchema(name="notes", dimension=DIM)


@pytest.fixture
def collections(store: InMemoryVectorStore, schema: CollectionSchema) -> CollectionManager:
    return CollectionManager(store, schema)


@pytest.fixture
def make_unreachable() -> Callable[[str], ConnectivityError]:
    def _make(target: str) -> ConnectivityError:
        return ConnectivityError(f"Cannot reach {target}")

    return _make
