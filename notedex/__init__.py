"""
notedex - local full-text search over your notes.

Pulls notes from a note source (Apple Notes, or a JSON export), keeps them
in a local SQLite store, and answers queries like:

    meeting notes folder:"Work" date:"2023-01-01 to 2023-12-31" sort:dateNewest

Example:
    from notedex import NoteIndexer

    with NoteIndexer() as ix:
        ix.build_index()
        for result in ix.search('groceries folder:"Home"'):
            print(result.score, result.note.name)
"""

from .api import IndexState, IndexStatus, NoteIndexer
from .errors import (
    FetchError,
    IndexNotBuiltError,
    InconsistentStateError,
    NotedexError,
    StorageError,
)
from .query import parse_query
from .search_index import SearchIndex, build_index, execute_query
from .types import (
    BuildResult,
    DateRange,
    IndexMetadata,
    IndexProgress,
    IndexStats,
    Note,
    ScoredNote,
    SortMode,
    StructuredQuery,
)

__version__ = "0.1.0"

__all__ = [
    "NoteIndexer",
    "IndexState",
    "IndexStatus",
    "SearchIndex",
    "build_index",
    "execute_query",
    "parse_query",
    "Note",
    "ScoredNote",
    "SortMode",
    "DateRange",
    "StructuredQuery",
    "IndexMetadata",
    "IndexProgress",
    "IndexStats",
    "BuildResult",
    "NotedexError",
    "FetchError",
    "StorageError",
    "IndexNotBuiltError",
    "InconsistentStateError",
]
