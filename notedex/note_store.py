"""
Note store using SQLite.

Stores note records keyed by the source-assigned note ID, plus the
singleton index-metadata record in a database of its own.

The note store is the source of truth for cold starts: when the process
restarts, the in-memory search index is rebuilt from here without going
back to the note source.
"""

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .errors import StorageError
from .types import IndexMetadata, Note, utc_now, validate_note

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    """A saved note, annotated with whether it was new or replaced."""
    note: Note
    created: bool

    @property
    def replaced(self) -> bool:
        return not self.created


def _row_to_note(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        name=row["name"],
        body=row["body"],
        folder=row["folder"],
        creation_date=row["creation_date"],
        modification_date=row["modification_date"],
    )


class _SqliteStore:
    """Connection handling shared by the note and metadata stores."""

    def __init__(self, db_path: Path):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        try:
            self._init_db()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {db_path}: {e}") from e

    def _connect(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

    def _init_db(self) -> None:
        """
        Open the connection and create the store's tables.

        Each store subclass overrides this with its own schema; the base
        class has no tables of its own.
        """
        raise NotImplementedError(f"{type(self).__name__} must define its schema")

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError(f"Store is closed: {self._db_path}")
        return self._conn

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()


class NoteStore(_SqliteStore):
    """
    SQLite-backed store for note records.

    Upserts keep the row in place (no history). Every sqlite3 failure
    surfaces as StorageError.
    """

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._connect()
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS notes (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                body TEXT NOT NULL DEFAULT '',
                folder TEXT,
                creation_date TEXT NOT NULL DEFAULT '',
                modification_date TEXT NOT NULL,
                stored_at TEXT NOT NULL
            )
        """)

        # Index for folder filters
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_notes_folder
            ON notes(folder)
        """)

        # Index for date queries
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_notes_modified
            ON notes(modification_date)
        """)

        self._conn.commit()

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def upsert(self, note: Note) -> UpsertResult:
        """
        Insert or replace a note record.

        All fields are replaced on update; nothing is merged.

        Args:
            note: The note to save

        Returns:
            UpsertResult with the saved note and whether it was new

        Raises:
            ValueError: If the note fails validation
            StorageError: If the write fails
        """
        validate_note(note)
        conn = self._require_conn()
        try:
            created = not self.exists(note.id)
            conn.execute("""
                INSERT INTO notes
                (id, name, body, folder, creation_date, modification_date, stored_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    body = excluded.body,
                    folder = excluded.folder,
                    creation_date = excluded.creation_date,
                    modification_date = excluded.modification_date,
                    stored_at = excluded.stored_at
            """, (
                note.id,
                note.name,
                note.body,
                note.folder,
                note.creation_date,
                note.modification_date,
                utc_now(),
            ))
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save note {note.id!r}: {e}") from e

        return UpsertResult(note=note, created=created)

    def upsert_many(self, notes: Iterable[Note]) -> list[UpsertResult]:
        """
        Save notes one at a time, in order.

        Not atomic: a failure stops the batch, and notes saved before it
        stay saved.
        """
        return [self.upsert(note) for note in notes]

    def delete(self, id: str) -> int:
        """
        Delete a note record.

        Returns:
            Number of notes removed (0 if the ID was not stored)
        """
        conn = self._require_conn()
        try:
            cursor = conn.execute("DELETE FROM notes WHERE id = ?", (id,))
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete note {id!r}: {e}") from e
        return cursor.rowcount

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        conn = self._require_conn()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Query failed on {self._db_path}: {e}") from e

    def get(self, id: str) -> Optional[Note]:
        """Get a note by ID, or None if it is not stored."""
        rows = self._query("""
            SELECT id, name, body, folder, creation_date, modification_date
            FROM notes
            WHERE id = ?
        """, (id,))
        return _row_to_note(rows[0]) if rows else None

    def exists(self, id: str) -> bool:
        """Check if a note is stored."""
        return bool(self._query("SELECT 1 FROM notes WHERE id = ?", (id,)))

    def get_all(self) -> list[Note]:
        """All stored notes. Callers must not rely on the order."""
        rows = self._query("""
            SELECT id, name, body, folder, creation_date, modification_date
            FROM notes
        """)
        return [_row_to_note(row) for row in rows]

    def get_by_folder(self, folder: str) -> list[Note]:
        """Notes whose folder equals the argument exactly."""
        rows = self._query("""
            SELECT id, name, body, folder, creation_date, modification_date
            FROM notes
            WHERE folder = ?
        """, (folder,))
        return [_row_to_note(row) for row in rows]

    def distinct_folders(self) -> list[str]:
        """Unique non-null folder names, sorted."""
        rows = self._query("""
            SELECT DISTINCT folder FROM notes
            WHERE folder IS NOT NULL
            ORDER BY folder
        """)
        return [row["folder"] for row in rows]

    def count(self) -> int:
        """Count stored notes."""
        return self._query("SELECT COUNT(*) FROM notes")[0][0]


METADATA_KEY = "index_metadata"


class MetadataStore(_SqliteStore):
    """SQLite-backed singleton record describing the last successful build."""

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._connect()
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                last_indexed TEXT,
                note_count INTEGER NOT NULL DEFAULT 0,
                indexed INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.commit()

    def save(self, metadata: IndexMetadata) -> IndexMetadata:
        """
        Overwrite the metadata record in full.

        Returns:
            The saved record, with updated_at stamped
        """
        saved = IndexMetadata(
            last_indexed=metadata.last_indexed,
            note_count=metadata.note_count,
            indexed=metadata.indexed,
            updated_at=utc_now(),
        )
        conn = self._require_conn()
        try:
            conn.execute("""
                INSERT OR REPLACE INTO metadata
                (key, last_indexed, note_count, indexed, updated_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                METADATA_KEY,
                saved.last_indexed,
                saved.note_count,
                int(saved.indexed),
                saved.updated_at,
            ))
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save index metadata: {e}") from e
        return saved

    def load(self) -> IndexMetadata:
        """Current metadata, or the never-indexed default if none was saved."""
        conn = self._require_conn()
        try:
            row = conn.execute("""
                SELECT last_indexed, note_count, indexed, updated_at
                FROM metadata
                WHERE key = ?
            """, (METADATA_KEY,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to load index metadata: {e}") from e

        if row is None:
            return IndexMetadata()
        return IndexMetadata(
            last_indexed=row["last_indexed"],
            note_count=row["note_count"],
            indexed=bool(row["indexed"]),
            updated_at=row["updated_at"],
        )
