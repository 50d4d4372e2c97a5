"""Collection lifecycle: make sure the notes collection exists and is loaded."""

import logging
from enum import Enum

from notevec.database.vector_store import CollectionSchema, VectorStore
from notevec.errors import ConfigurationError, NoteIndexError, NotReadyError

logger = logging.getLogger(__name__)


class CollectionState(str, Enum):
    UNKNOWN = "unknown"
    CREATING = "creating"
    READY = "ready"


class CollectionManager:
    """Ensures the collection is created, schema-correct and query-ready.

    Readiness is memoised after the first success so sync and query passes
    do not repeat the has/create/load round-trips. `invalidate()` must be
    called when the store connection settings change.
    """

    def __init__(self, store: VectorStore, schema: CollectionSchema) -> None:
        self._store = store
        self._schema = schema
        self._state = CollectionState.UNKNOWN

    @property
    def state(self) -> CollectionState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is CollectionState.READY

    @property
    def schema(self) -> CollectionSchema:
        return self._schema

    def invalidate(self) -> None:
        """Force re-verification on next use."""
        self._state = CollectionState.UNKNOWN

    async def ensure_ready(self) -> None:
        """Create and load the collection if needed.

        Raises:
            ConfigurationError: The existing collection has a different dimension.
            NotReadyError: Any store failure while checking, creating or loading.
        """
        if self._state is CollectionState.READY:
            return

        try:
            if await self._store.has_collection():
                await self._check_dimension()
            else:
                self._state = CollectionState.CREATING
                logger.info("Creating collection %s", self._schema.name)
                await self._store.create_collection(self._schema)
                await self._store.create_index(self._schema)
            await self._store.load_collection()
        except ConfigurationError:
            self._state = CollectionState.UNKNOWN
            raise
        except NoteIndexError as e:
            self._state = CollectionState.UNKNOWN
            logger.error("Error ensuring collection %s: %s", self._schema.name, e)
            raise NotReadyError(f"Error connecting to vector store: {e}") from e

        self._state = CollectionState.READY
        logger.debug("Collection %s is ready", self._schema.name)

    async def _check_dimension(self) -> None:
        dimension = await self._store.describe_dimension()
        if dimension is not None and dimension != self._schema.dimension:
            raise ConfigurationError(
                f"Collection {self._schema.name!r} stores {dimension}-dimensional vectors "
                f"but the embedding model produces {self._schema.dimension}. "
                "Use a different collection name or embedding_dim."
            )
