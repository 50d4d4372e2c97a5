"""Embedding providers.

Provides a single factory for the configured embedding backend.
"""

from notevec.config import Settings

from .ollama import OllamaEmbedder
from .provider import ConnectionStatus, EmbeddingProvider


def create_embedder(settings: Settings) -> EmbeddingProvider:
    """Build the embedding provider described by a settings snapshot."""
    return OllamaEmbedder(
        base_url=settings.ollama_url,
        model=settings.embedding_model,
        dimension=settings.embedding_dim,
        timeout=settings.ollama_timeout,
    )


__all__ = ["ConnectionStatus", "EmbeddingProvider", "OllamaEmbedder", "create_embedder"]
