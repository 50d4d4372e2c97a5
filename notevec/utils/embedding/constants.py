"""Constants for the embedding module."""

# =============================================================================
# Timeout Settings (seconds)
# =============================================================================

# Default timeout for Ollama (local inference)
# Higher timeout because the model may be loaded into memory on first request.
OLLAMA_TIMEOUT = 120.0

# Short timeout for connection checks
VALIDATION_TIMEOUT = 10.0

# =============================================================================
# Default Models
# =============================================================================

DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"

# Output size of nomic-embed-text
DEFAULT_EMBEDDING_DIM = 768

# =============================================================================
# HTTP Client Settings
# =============================================================================

# Connection pool size for async HTTP clients
# Kept small since notes are embedded one at a time.
HTTP_MAX_CONNECTIONS = 10

# Keep-alive timeout for connection reuse (seconds)
HTTP_KEEPALIVE_TIMEOUT = 30.0
