"""Error taxonomy shared by the sync and query engines."""


class NoteIndexError(Exception):
    """Base class for all notevec errors."""


class ConfigurationError(NoteIndexError):
    """Invalid settings or a collection schema that does not match the model.

    Not recoverable by the engine; the running operation is aborted.
    """


class ConnectivityError(NoteIndexError):
    """Embedding service or vector store could not be reached."""


class EmbeddingError(NoteIndexError):
    """Embedding service answered but returned no usable vector."""


class VectorStoreError(NoteIndexError):
    """Vector store answered but rejected the request."""


class NotReadyError(NoteIndexError):
    """Collection could not be created or loaded."""


class ValidationError(NoteIndexError):
    """User input rejected before any network call."""


class NoteNotFoundError(NoteIndexError):
    """Note vanished between listing and reading."""


class NoteReadError(NoteIndexError):
    """Note exists but could not be read or decoded as UTF-8."""
