"""Similarity search: embed a note or query text and rank the neighbours."""

from __future__ import annotations

import logging
import math
from typing import Optional

from notevec.core.collection import CollectionManager
from notevec.database.vault import NoteVault
from notevec.database.vector_store import ScoreKind, SearchCandidate, VectorStore
from notevec.errors import ValidationError
from notevec.models import SimilarNote
from notevec.utils.embedding import EmbeddingProvider

logger = logging.getLogger(__name__)

DEFAULT_RESULT_LIMIT = 10


def normalize_score(raw: float, kind: ScoreKind) -> float:
    """Convert a backend score to higher-is-better similarity."""
    score = float(raw) if kind == "similarity" else max(0.0, 1.0 - float(raw))
    if math.isnan(score):
        return 0.0
    return score


def rank_candidates(
    candidates: list[SearchCandidate],
    kind: ScoreKind,
    limit: int,
    exclude_key: Optional[str] = None,
) -> list[SimilarNote]:
    """Drop the excluded note and keyless hits, keep at most `limit`."""
    results: list[SimilarNote] = []
    for candidate in candidates:
        if len(results) >= limit:
            break
        if not candidate.file_path:
            continue
        if exclude_key is not None and candidate.file_path == exclude_key:
            continue
        results.append(
            SimilarNote(
                file_path=candidate.file_path,
                score=normalize_score(candidate.raw_score, kind),
                content=candidate.content_preview,
            )
        )
    return results


class QueryEngine:
    """Turns a note or free text into a ranked list of similar notes."""

    def __init__(
        self,
        vault: NoteVault,
        embedder: EmbeddingProvider,
        store: VectorStore,
        collections: CollectionManager,
        *,
        default_limit: int = DEFAULT_RESULT_LIMIT,
    ) -> None:
        self._vault = vault
        self._embedder = embedder
        self._store = store
        self._collections = collections
        self._default_limit = default_limit

    async def search(
        self,
        vector: list[float],
        limit: Optional[int] = None,
        exclude_key: Optional[str] = None,
    ) -> list[SimilarNote]:
        """Nearest notes to `vector`, never including `exclude_key`.

        Raises:
            NotReadyError: The collection could not be made ready.
        """
        limit = limit or self._default_limit
        await self._collections.ensure_ready()

        # One extra slot for the excluded self-match
        top_k = limit + (1 if exclude_key is not None else 0)
        candidates = await self._store.search(vector, top_k)
        return rank_candidates(candidates, self._store.score_kind, limit, exclude_key)

    async def find_similar_to_note(
        self, key: str, limit: Optional[int] = None
    ) -> list[SimilarNote]:
        """Notes similar to the full content of note `key`, excluding itself."""
        content = self._vault.read(key)
        vector = await self._embedder.embed(content)
        return await self.search(vector, limit, exclude_key=key)

    async def query_text(self, text: str, limit: Optional[int] = None) -> list[SimilarNote]:
        """Notes similar to free text.

        Raises:
            ValidationError: Empty or whitespace-only text.
        """
        if not text or not text.strip():
            raise ValidationError("Please enter a query")
        vector = await self._embedder.embed(text)
        return await self.search(vector, limit)
