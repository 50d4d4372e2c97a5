"""Application logic layer."""

from .collection import CollectionManager, CollectionState
from .query import QueryEngine, normalize_score, rank_candidates
from .service import NoteIndexService, Notifier, Prompter
from .sync import SyncEngine, SyncReport, make_preview

__all__ = [
    "CollectionManager",
    "CollectionState",
    "NoteIndexService",
    "Notifier",
    "Prompter",
    "QueryEngine",
    "SyncEngine",
    "SyncReport",
    "make_preview",
    "normalize_score",
    "rank_candidates",
]
