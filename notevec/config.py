"""Environment and settings (Pydantic Settings).

Settings are loaded from ~/.notevec/config.toml and NOTEVEC_* environment
variables. Environment variables take precedence over config file values.
Each Settings instance is frozen: a settings change produces a new snapshot.
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import ValidationError as PydanticValidationError
from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from notevec.errors import ConfigurationError

# Default data directory: ~/.notevec/data/
_data_dir = Path.home() / ".notevec" / "data"

# Default config file location
DEFAULT_CONFIG_PATH = Path.home() / ".notevec" / "config.toml"

# Section holding notevec options inside config.toml
CONFIG_SECTION = "notevec"

ENV_PREFIX = "NOTEVEC_"

VectorBackend = Literal["milvus", "chroma"]

# Options persisted to config.toml by `notevec config set`
PERSISTED_FIELDS = (
    "vault_path",
    "embedding_model",
    "ollama_url",
    "milvus_url",
    "collection_name",
    "vector_backend",
    "chroma_path",
    "embedding_dim",
    "result_limit",
    "reindex_on_equal_mtime",
)

# Options whose change invalidates the collection readiness cache
CONNECTION_FIELDS = ("vector_backend", "milvus_url", "chroma_path", "collection_name")


class Settings(BaseSettings):
    """notevec settings snapshot."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Vault (directory of markdown notes)
    vault_path: Path = Path(".")

    # Embedding service (Ollama)
    embedding_model: str = "nomic-embed-text"
    ollama_url: str = "http://localhost:11434"
    ollama_timeout: float = 120.0
    embedding_dim: int = 768

    # Vector store
    vector_backend: VectorBackend = "milvus"
    milvus_url: str = "http://localhost:19530"
    chroma_path: Path = _data_dir / "chroma"
    collection_name: str = "obsidian_notes"
    store_timeout: float = 30.0

    # Retrieval and sync behaviour
    result_limit: int = 10
    reindex_on_equal_mtime: bool = False

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: Path = _data_dir / "notevec.log"

    @field_validator(
        "embedding_model",
        "ollama_url",
        "milvus_url",
        "collection_name",
        "vector_backend",
        mode="before",
    )
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        """Substitute the documented default for empty or unset values."""
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("ollama_url", "milvus_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"expected an http(s) URL, got {value!r}")
        return value.rstrip("/")

    @field_validator("embedding_dim", "result_limit")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    def connection_changed(self, other: "Settings") -> bool:
        """Return True if `other` points at a different store or collection."""
        return any(getattr(self, name) != getattr(other, name) for name in CONNECTION_FIELDS)


def _load_toml(path: Path) -> dict:
    """Load and parse a TOML configuration file.

    Returns:
        Parsed TOML content as dict, or empty dict if the file doesn't exist.

    Raises:
        ConfigurationError: If the file exists but is not valid TOML.
    """
    if not path.exists():
        return {}

    import tomllib

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}") from e


def _env_overridden(name: str) -> bool:
    return f"{ENV_PREFIX}{name.upper()}" in os.environ


def load_settings(
    config_path: Optional[Path] = None,
    **overrides: Any,
) -> Settings:
    """Load settings from file and environment.

    Configuration sources (in order of precedence):
    1. Explicit keyword overrides (e.g. CLI options)
    2. Environment variables (NOTEVEC_*)
    3. Config file (~/.notevec/config.toml, [notevec] section)
    4. Default values

    Raises:
        ConfigurationError: If any value fails validation.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    section = _load_toml(path).get(CONFIG_SECTION, {})

    values = {
        name: value
        for name, value in section.items()
        if name in Settings.model_fields and not _env_overridden(name)
    }
    values.update({name: value for name, value in overrides.items() if value is not None})

    try:
        return Settings(**values)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _write_section(values: dict[str, Any], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "# notevec configuration",
        "",
        f"[{CONFIG_SECTION}]",
    ]
    for name, value in values.items():
        lines.append(f"{name} = {_toml_value(value)}")

    path.write_text("\n".join(lines) + "\n")

    # Owner read/write only
    os.chmod(path, 0o600)
    return path


def save_settings(settings: Settings, config_path: Optional[Path] = None) -> Path:
    """Write persisted settings to TOML file with secure permissions.

    Returns:
        Path of the written file.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    return _write_section({name: getattr(settings, name) for name in PERSISTED_FIELDS}, path)


def update_setting(
    settings: Settings,
    name: str,
    value: Any,
    config_path: Optional[Path] = None,
) -> Settings:
    """Return a new snapshot with one option changed and persist that option.

    Only the option being set is written; the rest of the file's [notevec]
    section is kept as is, so environment and command-line overrides never
    leak into the file. A blank value removes the option, restoring its
    default.

    Raises:
        ConfigurationError: If the option is unknown or the value is invalid.
    """
    if name not in PERSISTED_FIELDS:
        raise ConfigurationError(
            f"Unknown option {name!r}. Known options: {', '.join(PERSISTED_FIELDS)}"
        )
    reset = isinstance(value, str) and not value.strip()
    values = {field: getattr(settings, field) for field in Settings.model_fields}
    values[name] = Settings.model_fields[name].default if reset else value
    try:
        updated = Settings(**values)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid value for {name}: {e}") from e

    path = config_path or DEFAULT_CONFIG_PATH
    section = dict(_load_toml(path).get(CONFIG_SECTION, {}))
    if reset:
        section.pop(name, None)
    else:
        section[name] = getattr(updated, name)
    _write_section(section, path)
    return updated


def get_example_config() -> str:
    """Return example config.toml content with documented options."""
    return """# notevec configuration
# Place this file at ~/.notevec/config.toml

[notevec]
# Directory containing the markdown notes to index
vault_path = "."

# Ollama embedding model and server
embedding_model = "nomic-embed-text"
ollama_url = "http://localhost:11434"
embedding_dim = 768  # Must match the model's output size

# Vector store backend: "milvus" (REST API) or "chroma" (local, persistent)
vector_backend = "milvus"
milvus_url = "http://localhost:19530"
collection_name = "obsidian_notes"

# Number of similar notes returned per search
result_limit = 10

# Re-embed notes whose modified time equals the stored one
reindex_on_equal_mtime = false
"""
