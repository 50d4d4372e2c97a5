"""Database layer - vector store backends and the note vault."""

from notevec.config import Settings

from .chroma_store import ChromaVectorStore
from .milvus_store import MilvusVectorStore
from .vault import NoteVault
from .vector_store import CollectionSchema, SearchCandidate, VectorStore


def create_vector_store(settings: Settings) -> VectorStore:
    """Build the vector store backend described by a settings snapshot."""
    if settings.vector_backend == "chroma":
        return ChromaVectorStore(settings.chroma_path, settings.collection_name)
    return MilvusVectorStore(
        settings.milvus_url,
        settings.collection_name,
        timeout=settings.store_timeout,
    )


def schema_for(settings: Settings) -> CollectionSchema:
    return CollectionSchema(name=settings.collection_name, dimension=settings.embedding_dim)


__all__ = [
    "ChromaVectorStore",
    "CollectionSchema",
    "MilvusVectorStore",
    "NoteVault",
    "SearchCandidate",
    "VectorStore",
    "create_vector_store",
    "schema_for",
]
