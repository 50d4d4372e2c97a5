"""User-facing commands wired to the sync and query engines.

The service never depends on a UI toolkit. It reports through a Notifier
and asks the user through a Prompter; the CLI supplies both.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from notevec.config import Settings
from notevec.core.collection import CollectionManager
from notevec.core.query import QueryEngine
from notevec.core.sync import SyncEngine, SyncReport
from notevec.database import NoteVault, VectorStore, create_vector_store, schema_for
from notevec.errors import NoteIndexError
from notevec.models import SimilarNote
from notevec.utils.embedding import ConnectionStatus, EmbeddingProvider, create_embedder

logger = logging.getLogger(__name__)

RECOMPUTE_TITLE = "Recompute All Vectors"
RECOMPUTE_MESSAGE = (
    "This will recompute embeddings for all notes in your vault. "
    "This may take a while. Continue?"
)


class Notifier(Protocol):
    """Reports status and results to the user."""

    def notify(self, message: str) -> None:
        ...

    def show_results(self, results: list[SimilarNote]) -> None:
        ...


class Prompter(Protocol):
    """Asks the user for input."""

    async def confirm(self, title: str, message: str) -> bool:
        ...

    async def prompt_text(self, label: str) -> str:
        ...


def _with_errors(message: str, errors: int) -> str:
    return f"{message}, {errors} errors" if errors > 0 else message


class NoteIndexService:
    """Find-similar, query, refresh and recompute commands."""

    def __init__(
        self,
        settings: Settings,
        notifier: Notifier,
        prompter: Prompter,
        *,
        vault: Optional[NoteVault] = None,
        embedder: Optional[EmbeddingProvider] = None,
        store: Optional[VectorStore] = None,
    ) -> None:
        self._notifier = notifier
        self._prompter = prompter
        self._settings = settings
        self._vault = vault or NoteVault(settings.vault_path)
        self._embedder = embedder or create_embedder(settings)
        self._store = store or create_vector_store(settings)
        self._collections = CollectionManager(self._store, schema_for(settings))
        self._build_engines()

    def _build_engines(self) -> None:
        self._sync = SyncEngine(
            self._vault,
            self._embedder,
            self._store,
            self._collections,
            reindex_on_equal_mtime=self._settings.reindex_on_equal_mtime,
        )
        self._query = QueryEngine(
            self._vault,
            self._embedder,
            self._store,
            self._collections,
            default_limit=self._settings.result_limit,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def collections(self) -> CollectionManager:
        return self._collections

    @property
    def sync(self) -> SyncEngine:
        return self._sync

    @property
    def query(self) -> QueryEngine:
        return self._query

    async def update_settings(self, settings: Settings) -> None:
        """Swap in a new settings snapshot.

        Readiness is invalidated before anything else when the store
        connection changes, so the next operation re-verifies the collection.
        """
        previous = self._settings
        if (
            previous.connection_changed(settings)
            or previous.embedding_dim != settings.embedding_dim
        ):
            self._collections.invalidate()
            await self._store.close()
            self._store = create_vector_store(settings)
            self._collections = CollectionManager(self._store, schema_for(settings))

        if (
            previous.ollama_url != settings.ollama_url
            or previous.embedding_model != settings.embedding_model
            or previous.embedding_dim != settings.embedding_dim
            or previous.ollama_timeout != settings.ollama_timeout
        ):
            await self._embedder.close()
            self._embedder = create_embedder(settings)

        if previous.vault_path != settings.vault_path:
            self._vault = NoteVault(settings.vault_path)

        self._settings = settings
        self._build_engines()
        logger.info("Settings updated")

    async def close(self) -> None:
        await self._embedder.close()
        await self._store.close()

    def _show(self, results: list[SimilarNote]) -> list[SimilarNote]:
        if not results:
            self._notifier.notify("No similar notes found")
        else:
            self._notifier.show_results(results)
        return results

    async def find_similar_to_current(self, path: Optional[str]) -> list[SimilarNote]:
        """Notes similar to the given (currently open) note."""
        if not path:
            self._notifier.notify("No active note found")
            return []

        self._notifier.notify("Finding similar notes...")
        try:
            note = self._vault.get_note(path)
            results = await self._query.find_similar_to_note(note.path)
        except NoteIndexError as e:
            logger.error("Error finding similar notes: %s", e)
            self._notifier.notify(f"Error: {e}")
            raise
        return self._show(results)

    async def query_similar_notes(self, query: Optional[str] = None) -> list[SimilarNote]:
        """Notes similar to free text; prompts for the text if not given."""
        if query is None:
            query = await self._prompter.prompt_text("Enter your search query")

        if not query or not query.strip():
            self._notifier.notify("Please enter a query")
            return []

        self._notifier.notify("Searching for similar notes...")
        try:
            results = await self._query.query_text(query)
        except NoteIndexError as e:
            logger.error("Error querying similar notes: %s", e)
            self._notifier.notify(f"Error: {e}")
            raise
        return self._show(results)

    async def refresh_modified_vectors(self) -> SyncReport:
        """Re-embed notes that changed since their last sync."""
        self._notifier.notify("Refreshing vectors for modified notes...")
        try:
            report = await self._sync.refresh_modified()
        except NoteIndexError as e:
            logger.error("Error refreshing vectors: %s", e)
            self._notifier.notify(f"Error: {e}")
            raise

        self._notifier.notify(_with_errors(f"Updated {report.processed} notes", report.errors))
        return report

    async def recompute_all_vectors(self) -> Optional[SyncReport]:
        """Re-embed every note after explicit confirmation.

        Returns:
            The report, or None if the user declined.
        """
        if not await self._prompter.confirm(RECOMPUTE_TITLE, RECOMPUTE_MESSAGE):
            logger.info("Recompute cancelled by user")
            return None

        self._notifier.notify("Recomputing all vectors...")

        def on_progress(processed: int, total: int) -> None:
            self._notifier.notify(f"Processed {processed}/{total} notes...")

        try:
            report = await self._sync.recompute_all(on_progress=on_progress)
        except NoteIndexError as e:
            logger.error("Error recomputing vectors: %s", e)
            self._notifier.notify(f"Error: {e}")
            raise

        self._notifier.notify(
            _with_errors(f"Completed! Processed {report.processed} notes", report.errors)
        )
        return report

    async def remove_note(self, path: str) -> None:
        """Remove a note's vector from the index."""
        try:
            key = self._vault.get_note(path).path
        except NoteIndexError:
            # Note already deleted from disk; treat the argument as the key
            key = path
        try:
            await self._sync.remove_note(key)
        except NoteIndexError as e:
            logger.error("Error removing %s: %s", key, e)
            self._notifier.notify(f"Error: {e}")
            raise
        self._notifier.notify(f"Removed {key} from the index")

    async def check_connections(self) -> list[ConnectionStatus]:
        """Check the embedding service and the vector store."""
        statuses = [await self._embedder.check_connection(), await self._check_store()]
        for status in statuses:
            self._notifier.notify(status.message)
        return statuses

    async def _check_store(self) -> ConnectionStatus:
        name = self._settings.collection_name
        try:
            collections = await self._store.list_collections()
        except NoteIndexError as e:
            return ConnectionStatus(False, f"Failed to connect to vector store: {e}")
        if name in collections:
            return ConnectionStatus(True, f'Connected! Collection "{name}" exists.')
        return ConnectionStatus(
            True, f'Connected! Collection "{name}" will be created on first use.'
        )
