"""
Core API for the note index.

- build_index(): fetch from the note source → store → rebuild index
- search(): parse query → rank → filter → sort
- get_stats(): store and index status

The in-memory index lives in an explicit IndexState owned by the
NoteIndexer; a build swaps in a new state only after it fully succeeds.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .config import StoreConfig, load_or_create_config
from .errors import IndexNotBuiltError, InconsistentStateError, NotedexError
from .note_store import MetadataStore, NoteStore
from .providers.base import NoteSource, get_registry
from .query import parse_query
from .search_index import SearchIndex, build_index as build_search_index, execute_query
from .types import (
    BuildResult,
    IndexMetadata,
    IndexProgress,
    IndexStats,
    Note,
    ScoredNote,
    utc_now,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[IndexProgress], None]


class IndexStatus(str, Enum):
    EMPTY = "empty"
    BUILDING = "building"
    READY = "ready"


@dataclass(frozen=True)
class IndexState:
    """
    What the indexer currently holds in memory.

    READY always carries an index; EMPTY and BUILDING never expose one
    to queries.
    """
    status: IndexStatus
    index: Optional[SearchIndex] = None

    @classmethod
    def empty(cls) -> "IndexState":
        return cls(IndexStatus.EMPTY)

    @classmethod
    def ready(cls, index: SearchIndex) -> "IndexState":
        return cls(IndexStatus.READY, index)

    @property
    def is_ready(self) -> bool:
        return self.status == IndexStatus.READY


class NoteIndexer:
    """
    Local note index - persistent note storage with full-text search.

    Example:
        with NoteIndexer() as ix:
            ix.build_index(progress=print)
            results = ix.search('groceries folder:"Home" sort:dateNewest')
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        source: Optional[NoteSource] = None,
        note_store: Optional[NoteStore] = None,
        metadata_store: Optional[MetadataStore] = None,
    ) -> None:
        """
        Initialize or open an existing note index store.

        Args:
            store_path: Path to store directory. Uses default if not specified.
            config: Pre-loaded StoreConfig (skips filesystem config discovery).
            source: Injected note source (skips creating one from config).
            note_store: Injected note store.
            metadata_store: Injected metadata store.
        """
        if config is not None:
            self._config = config
        else:
            path = Path(store_path).expanduser().resolve() if store_path is not None else None
            self._config = load_or_create_config(path)
        self._store_path = self._config.path

        self._source = source

        # Builds and searches are recorded in the store's ops log
        from .logging_config import configure_ops_log
        self._ops_log_handler = configure_ops_log(self._store_path)

        self._notes = note_store or NoteStore(self._config.notes_db_path)
        self._metadata = metadata_store or MetadataStore(self._config.metadata_db_path)

        self._state = IndexState.empty()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> StoreConfig:
        """The store configuration this indexer was opened with."""
        return self._config

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def note_store(self) -> NoteStore:
        return self._notes

    @property
    def metadata_store(self) -> MetadataStore:
        return self._metadata

    def _get_source(self) -> NoteSource:
        """Create the configured note source on first use."""
        if self._source is None:
            self._source = get_registry().create(
                self._config.source.name,
                self._config.source.params,
            )
        return self._source

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def build_index(self, progress: Optional[ProgressCallback] = None) -> BuildResult:
        """
        Fetch every note, persist it, and rebuild the search index.

        Notes are saved one at a time in fetch order, and ``progress``
        receives one event per note after it is saved. The new index and
        metadata are installed only after every step succeeded; on failure
        the previous state stays in place and metadata is not touched.

        Raises:
            FetchError: If the note source fails
            StorageError: If saving a note fails (earlier saves are kept)
        """
        previous = self._state
        self._state = IndexState(IndexStatus.BUILDING)
        try:
            notes = self._get_source().fetch()
            logger.info("Indexing %d notes", len(notes))

            total = len(notes)
            for position, note in enumerate(notes, start=1):
                self._notes.upsert(note)
                if progress is not None:
                    progress(IndexProgress(current=position, total=total, name=note.name))

            index = build_search_index(notes, boosts=self._config.boosts)
            finished = utc_now()
            self._metadata.save(IndexMetadata(
                last_indexed=finished,
                note_count=total,
                indexed=True,
            ))
        except Exception:
            self._state = previous
            logger.warning("Index build failed; keeping %s state", previous.status.value)
            raise

        self._state = IndexState.ready(index)
        logger.info("Indexed %d notes", total)
        return BuildResult(indexed=total, last_updated=finished)

    def load_index_from_storage(self) -> bool:
        """
        Rebuild the in-memory index from stored notes (cold start).

        Does not contact the note source.

        Returns:
            True if an index was loaded, False if nothing was ever indexed

        Raises:
            InconsistentStateError: If metadata records indexed notes but
                the note store is empty
        """
        metadata = self._metadata.load()
        if not metadata.indexed:
            return False

        notes = self._notes.get_all()
        # An empty source indexes to an empty store; only lost notes are an error
        if not notes and metadata.note_count > 0:
            raise InconsistentStateError(
                f"Index metadata records {metadata.note_count} notes indexed at "
                f"{metadata.last_indexed}, but the note store is empty. "
                "Run the index command to rebuild."
            )

        self._state = IndexState.ready(build_search_index(notes, boosts=self._config.boosts))
        logger.info("Loaded index from storage: %d notes", len(notes))
        return True

    def _require_index(self) -> SearchIndex:
        """The current index, attempting one cold-start recovery if empty."""
        if not self._state.is_ready:
            self.load_index_from_storage()
        if not self._state.is_ready:
            raise IndexNotBuiltError(
                "Index not built yet. Run the index command first."
            )
        return self._state.index

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def search(self, query_string: str) -> list[ScoredNote]:
        """
        Search notes with free text and directives.

        Args:
            query_string: e.g. ``'budget folder:"Work" sort:dateNewest'``

        Raises:
            IndexNotBuiltError: If no index is built and none can be recovered
        """
        index = self._require_index()
        query = parse_query(query_string)
        logger.debug("Parsed query: %s", query.to_dict())
        results = execute_query(index, index.notes, query)
        logger.info("Search %r: %d results", query_string, len(results))
        return results

    def get_stats(self) -> IndexStats:
        """Store and index status; attempts a cold-start load first."""
        if not self._state.is_ready:
            try:
                self.load_index_from_storage()
            except InconsistentStateError as e:
                logger.warning("%s", e)

        metadata = self._metadata.load()
        index = self._state.index
        return IndexStats(
            total_notes=self._notes.count(),
            indexed=len(index) if index is not None else 0,
            is_indexed=self._state.is_ready,
            last_indexed=metadata.last_indexed,
            folders=self._notes.distinct_folders(),
        )

    def folders(self) -> list[str]:
        """Distinct folder names across stored notes."""
        return self._notes.distinct_folders()

    def get_note(self, id: str) -> Optional[Note]:
        """Get a stored note by ID."""
        return self._notes.get(id)

    def delete_note(self, id: str) -> int:
        """
        Delete a stored note.

        The in-memory index keeps its snapshot until the next build.

        Returns:
            Number of notes removed (0 or 1)
        """
        removed = self._notes.delete(id)
        if removed:
            logger.info("Deleted note %s", id)
        return removed

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close stores and detach the operations log."""
        if getattr(self, "_notes", None) is not None:
            self._notes.close()
        if getattr(self, "_metadata", None) is not None:
            self._metadata.close()

        # Each indexer adds its own handler to the shared "notedex" logger
        if getattr(self, "_ops_log_handler", None) is not None:
            logging.getLogger("notedex").removeHandler(self._ops_log_handler)
            self._ops_log_handler.close()
            self._ops_log_handler = None

    def __enter__(self):
        """Use as ``with NoteIndexer() as ix:``."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Close the stores on leaving the block."""
        self.close()
        return False

    def __del__(self):
        """Best-effort close for indexers never closed explicitly."""
        try:
            self.close()
        except NotedexError:
            pass  # Stores already gone during interpreter shutdown
