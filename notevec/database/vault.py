"""Filesystem vault of markdown notes (the document store)."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from notevec.errors import NoteNotFoundError, NoteReadError
from notevec.models import Note

logger = logging.getLogger(__name__)

NOTE_SUFFIXES = (".md",)

# Vault-internal directories that never hold notes
IGNORED_DIRS = frozenset({".obsidian", ".trash", ".git"})


class NoteVault:
    """Markdown notes under a root directory, keyed by vault-relative path."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _key(self, path: Path) -> str:
        return path.relative_to(self._root).as_posix()

    def _resolve(self, key: str) -> Path:
        """Map a key (or a path given on the command line) to a file in the vault."""
        candidate = Path(key).expanduser()
        if not candidate.is_absolute():
            candidate = self._root / PurePosixPath(key)
        candidate = candidate.resolve()
        if not candidate.is_relative_to(self._root):
            raise NoteNotFoundError(f"{key} is outside the vault {self._root}")
        return candidate

    def _is_note(self, path: Path) -> bool:
        if path.suffix.lower() not in NOTE_SUFFIXES or not path.is_file():
            return False
        parts = path.relative_to(self._root).parts
        return not any(part in IGNORED_DIRS for part in parts[:-1])

    def _to_note(self, path: Path) -> Note:
        return Note(path=self._key(path), mtime=path.stat().st_mtime_ns // 1_000_000)

    def list_notes(self) -> list[Note]:
        """Return all notes in the vault, sorted by key."""
        if not self._root.is_dir():
            logger.warning("Vault directory %s does not exist", self._root)
            return []
        notes: list[Note] = []
        for path in sorted(self._root.rglob("*")):
            if not self._is_note(path):
                continue
            try:
                notes.append(self._to_note(path))
            except FileNotFoundError:
                # Deleted while listing
                continue
        return notes

    def get_note(self, key: str) -> Note:
        """Return the note for a key or path.

        Raises:
            NoteNotFoundError: If no such note exists in the vault.
        """
        path = self._resolve(key)
        if not self._is_note(path):
            raise NoteNotFoundError(f"Note not found: {key}")
        try:
            return self._to_note(path)
        except FileNotFoundError as e:
            raise NoteNotFoundError(f"Note not found: {key}") from e

    def read(self, key: str) -> str:
        """Read note content.

        Raises:
            NoteNotFoundError: If the note vanished since it was listed.
            NoteReadError: If the note is unreadable or not valid UTF-8.
        """
        path = self._resolve(key)
        try:
            return path.read_text(encoding="utf-8")
        except (FileNotFoundError, IsADirectoryError) as e:
            raise NoteNotFoundError(f"Note not found: {key}") from e
        except (UnicodeDecodeError, OSError) as e:
            raise NoteReadError(f"Cannot read note {key}: {e}") from e
