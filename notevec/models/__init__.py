"""Domain models."""

from .note import Note, SimilarNote, VectorRecord

__all__ = ["Note", "SimilarNote", "VectorRecord"]
