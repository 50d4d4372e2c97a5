"""Notes, stored vector records, and similarity results."""

from typing import Any

from pydantic import BaseModel, Field


class Note(BaseModel):
    """A markdown note in the vault.

    Content is not held on the model; it is read from the vault on demand so
    that listing a large vault stays cheap.
    """

    path: str = Field(description="Vault-relative POSIX path, unique and stable")
    mtime: int = Field(description="Last-modified time in epoch milliseconds")


class VectorRecord(BaseModel):
    """Indexed representation of one note in the vector store."""

    id: str
    file_path: str
    content_preview: str = ""
    modified_time: int
    vector: list[float]

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump()


class SimilarNote(BaseModel):
    """A single similarity search hit (higher score is more similar)."""

    file_path: str
    score: float
    content: str = ""

    @property
    def percent(self) -> str:
        return f"{self.score * 100:.1f}%"
