"""Keeps the vector store in agreement with the notes in the vault.

Two passes are supported:

* refresh: re-embed only notes whose stored record is stale
* recompute: re-embed every note unconditionally

Notes are processed strictly one at a time. A failure on one note is
logged and counted and never stops the pass; only a configuration error
(e.g. the model returns vectors of the wrong size) aborts it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from notevec.core.collection import CollectionManager
from notevec.database.vault import NoteVault
from notevec.database.vector_store import FIELD_MODIFIED_TIME, VectorStore
from notevec.errors import ConfigurationError, VectorStoreError
from notevec.models import Note, VectorRecord
from notevec.utils.embedding import EmbeddingProvider

logger = logging.getLogger(__name__)

# Stored preview length (characters)
PREVIEW_LENGTH = 500

# Progress callback cadence during a full recompute
PROGRESS_INTERVAL = 10

ProgressCallback = Callable[[int, int], None]


def make_preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    """Single-line, size-bounded excerpt of note content."""
    return content[:length].replace("\n", " ")


@dataclass
class SyncReport:
    """Outcome of a sync pass."""

    total: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    failed: list[str] = field(default_factory=list)

    def record_failure(self, key: str) -> None:
        self.errors += 1
        self.failed.append(key)


class SyncEngine:
    """Decides staleness per note and re-embeds/re-writes stale records."""

    def __init__(
        self,
        vault: NoteVault,
        embedder: EmbeddingProvider,
        store: VectorStore,
        collections: CollectionManager,
        *,
        reindex_on_equal_mtime: bool = False,
    ) -> None:
        self._vault = vault
        self._embedder = embedder
        self._store = store
        self._collections = collections
        self._reindex_on_equal_mtime = reindex_on_equal_mtime

    async def needs_update(self, note: Note) -> bool:
        """Return True if the note must be (re-)embedded.

        Missing record, missing stored time, and lookup errors all count as
        stale.
        """
        try:
            record = await self._store.get_by_key(note.path, [FIELD_MODIFIED_TIME])
        except Exception as e:
            logger.warning("Staleness check failed for %s, re-indexing: %s", note.path, e)
            return True

        if record is None:
            return True
        stored = record.get(FIELD_MODIFIED_TIME)
        if stored is None:
            return True
        try:
            stored_time = int(stored)
        except (TypeError, ValueError):
            logger.warning("Malformed stored time %r for %s, re-indexing", stored, note.path)
            return True

        if self._reindex_on_equal_mtime:
            return note.mtime >= stored_time
        return note.mtime > stored_time

    async def vectorize_note(self, note: Note) -> VectorRecord:
        """Embed one note and replace its record in the store."""
        content = self._vault.read(note.path)
        vector = await self._embedder.embed(content)
        record = VectorRecord(
            id=note.path,
            file_path=note.path,
            content_preview=make_preview(content),
            modified_time=note.mtime,
            vector=vector,
        )

        if self._store.supports_upsert:
            await self._store.upsert(record)
            return record

        try:
            await self._store.delete_by_key(note.path)
        except VectorStoreError as e:
            # Nothing to delete is fine; the insert below still runs
            logger.debug("Delete before insert failed for %s: %s", note.path, e)
        await self._store.insert(record)
        return record

    async def refresh_modified(self) -> SyncReport:
        """Re-embed notes whose stored record is missing or older than the file.

        Raises:
            NotReadyError: The collection could not be made ready.
            ConfigurationError: Aborts the pass.
        """
        await self._collections.ensure_ready()

        notes = self._vault.list_notes()
        report = SyncReport(total=len(notes))
        for note in notes:
            try:
                if await self.needs_update(note):
                    await self.vectorize_note(note)
                    report.processed += 1
                else:
                    report.skipped += 1
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error("Error processing %s: %s", note.path, e)
                report.record_failure(note.path)

        logger.info(
            "Refresh finished: %d updated, %d unchanged, %d errors",
            report.processed,
            report.skipped,
            report.errors,
        )
        return report

    async def recompute_all(
        self, on_progress: Optional[ProgressCallback] = None
    ) -> SyncReport:
        """Re-embed every note regardless of staleness.

        Args:
            on_progress: Called as on_progress(processed, total) every
                PROGRESS_INTERVAL successfully processed notes.

        Raises:
            NotReadyError: The collection could not be made ready.
            ConfigurationError: Aborts the pass.
        """
        await self._collections.ensure_ready()

        notes = self._vault.list_notes()
        report = SyncReport(total=len(notes))
        for note in notes:
            try:
                await self.vectorize_note(note)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error("Error processing %s: %s", note.path, e)
                report.record_failure(note.path)
                continue

            report.processed += 1
            if on_progress is not None and report.processed % PROGRESS_INTERVAL == 0:
                on_progress(report.processed, report.total)

        logger.info(
            "Recompute finished: %d processed, %d errors", report.processed, report.errors
        )
        return report

    async def remove_note(self, key: str) -> None:
        """Delete the stored record for a note."""
        await self._collections.ensure_ready()
        await self._store.delete_by_key(key)
        logger.info("Removed vector for %s", key)
