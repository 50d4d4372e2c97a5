"""Abstract base class for embedding providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from notevec.errors import ConfigurationError


@dataclass
class ConnectionStatus:
    """Result of a connection check against an external service."""

    success: bool
    message: str


class EmbeddingProvider(ABC):
    """Maps text to a fixed-length vector.

    Implementations raise ConnectivityError when the service cannot be
    reached, EmbeddingError when it returns no usable vector, and
    ConfigurationError when the vector length does not match `dimension`.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name (e.g., 'ollama')."""
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        """Return the embedding model in use."""
        ...

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the expected vector length."""
        ...

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text: The text to embed.

        Returns:
            Vector of length `dimension`.
        """
        ...

    @abstractmethod
    async def check_connection(self) -> ConnectionStatus:
        """Check that the service is reachable and the model is available."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        return None

    def _check_dimension(self, vector: list[float]) -> list[float]:
        if len(vector) != self.dimension:
            raise ConfigurationError(
                f"Model {self.model!r} returned a {len(vector)}-dimensional vector, "
                f"collection expects {self.dimension}"
            )
        return vector
