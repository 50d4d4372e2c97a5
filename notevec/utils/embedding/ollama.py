"""Ollama embedding provider using httpx for API calls."""

import logging
from typing import Any, Optional

import httpx

from notevec.errors import ConnectivityError, EmbeddingError

from .constants import (
    DEFAULT_EMBEDDING_DIM,
    DEFAULT_EMBEDDING_MODEL,
    HTTP_KEEPALIVE_TIMEOUT,
    HTTP_MAX_CONNECTIONS,
    OLLAMA_TIMEOUT,
    VALIDATION_TIMEOUT,
)
from .provider import ConnectionStatus, EmbeddingProvider

logger = logging.getLogger(__name__)


class OllamaEmbedder(EmbeddingProvider):
    """Embedding provider for Ollama local models.

    Uses httpx for direct API calls to the Ollama server.
    No SDK dependency required.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimension: int = DEFAULT_EMBEDDING_DIM,
        timeout: float = OLLAMA_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize Ollama embedder.

        Args:
            base_url: Ollama server URL (default: http://localhost:11434).
            model: Embedding model name (nomic-embed-text recommended).
            dimension: Expected output size of the model.
            timeout: Request timeout in seconds (higher for local inference).
            transport: Optional httpx transport, used by tests.
        """
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._dimension = dimension
        self._timeout = timeout
        self._transport = transport
        # Reusable async client for connection pooling
        self._async_client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_async_client(self) -> httpx.AsyncClient:
        """Get or create reusable async HTTP client for connection pooling."""
        if self._async_client is None:
            limits = httpx.Limits(
                max_connections=HTTP_MAX_CONNECTIONS,
                max_keepalive_connections=HTTP_MAX_CONNECTIONS,
                keepalive_expiry=HTTP_KEEPALIVE_TIMEOUT,
            )
            self._async_client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=limits,
                transport=self._transport,
            )
        return self._async_client

    async def close(self) -> None:
        """Close the async HTTP client and release resources."""
        if self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None

    async def embed(self, text: str) -> list[float]:
        """Embed text with the configured model via /api/embed.

        Raises:
            ConnectivityError: Ollama is not reachable.
            EmbeddingError: Ollama answered without a usable embedding.
            ConfigurationError: The embedding has the wrong dimension.
        """
        client = self._get_async_client()
        try:
            response = await client.post(
                f"{self._base_url}/api/embed",
                json={"model": self._model, "input": text},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TransportError as e:
            raise ConnectivityError(
                f"Failed to generate embedding: cannot reach Ollama at {self._base_url}: {e}"
            ) from e
        except httpx.HTTPStatusError as e:
            raise EmbeddingError(
                f"Failed to generate embedding: {_error_detail(e.response)}"
            ) from e
        except ValueError as e:
            raise EmbeddingError(f"Failed to generate embedding: malformed response: {e}") from e

        vector = _extract_embedding(data)
        if vector is None:
            raise EmbeddingError("Failed to generate embedding: No embedding returned from Ollama")
        return self._check_dimension(vector)

    async def check_connection(self) -> ConnectionStatus:
        """Check Ollama is reachable and the configured model is pulled."""
        client = self._get_async_client()
        try:
            response = await client.get(
                f"{self._base_url}/api/tags", timeout=VALIDATION_TIMEOUT
            )
            response.raise_for_status()
            models = response.json().get("models", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Ollama connection check failed: %s: %s", type(e).__name__, e)
            return ConnectionStatus(False, f"Failed to connect to Ollama: {e}")

        names = [str(m.get("name", "")) for m in models if isinstance(m, dict)]
        if self._model in names or f"{self._model}:latest" in names:
            return ConnectionStatus(
                True, f'Connected! Model "{self._model}" is available.'
            )
        return ConnectionStatus(
            False,
            f'Connected, but model "{self._model}" not found. '
            f"Available models: {', '.join(names)}",
        )


def _extract_embedding(data: Any) -> Optional[list[float]]:
    """Pull the vector out of an /api/embed (or legacy /api/embeddings) body."""
    if not isinstance(data, dict):
        return None
    embeddings = data.get("embeddings")
    if isinstance(embeddings, list) and embeddings and isinstance(embeddings[0], list):
        return [float(x) for x in embeddings[0]]
    embedding = data.get("embedding")
    if isinstance(embedding, list) and embedding:
        return [float(x) for x in embedding]
    return None


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("error")
    except ValueError:
        detail = None
    return f"HTTP {response.status_code}: {detail or response.text or response.reason_phrase}"
