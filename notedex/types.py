"""
Data types for the note index.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def parse_utc_timestamp(ts: str) -> datetime:
    """Parse a stored timestamp string to a timezone-aware UTC datetime.

    Accepts the canonical format (no suffix) and the forms note sources
    emit: fractional seconds, a 'Z' suffix, or an explicit offset.
    """
    ts = ts.strip().replace("Z", "+00:00")
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


MAX_ID_LENGTH = 1024

# Control characters never appear in source-assigned note IDs
_ID_BLOCKED_RE = re.compile(r'[\x00-\x1f\x7f]')


@dataclass
class Note:
    """
    A single note record as delivered by a note source.

    The id is assigned by the source and is stable across fetches.
    """
    id: str
    name: str
    body: str = ""
    folder: Optional[str] = None
    creation_date: str = ""
    modification_date: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Note":
        """Build a Note from a source record (camelCase or snake_case keys)."""
        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return default

        return cls(
            id=str(pick("id", default="")),
            name=str(pick("name", default="")),
            body=str(pick("body", default="")),
            folder=pick("folder"),
            creation_date=str(pick("creationDate", "creation_date", default="")),
            modification_date=str(pick("modificationDate", "modification_date", default="")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase record shape used for JSON output."""
        return {
            "id": self.id,
            "name": self.name,
            "body": self.body,
            "folder": self.folder,
            "creationDate": self.creation_date,
            "modificationDate": self.modification_date,
        }

    @property
    def modified_at(self) -> datetime:
        return parse_utc_timestamp(self.modification_date)


def validate_note(note: Note) -> None:
    """Validate a note before it is persisted.

    Raises:
        ValueError: If the id is empty or malformed, or a timestamp
            cannot be parsed.
    """
    if not note.id or len(note.id) > MAX_ID_LENGTH:
        raise ValueError(f"Note ID must be 1-{MAX_ID_LENGTH} characters")
    if _ID_BLOCKED_RE.search(note.id):
        raise ValueError(f"Note ID contains control characters: {note.id!r}")
    for label, value in (
        ("creation_date", note.creation_date),
        ("modification_date", note.modification_date),
    ):
        # creation_date is informational only; an absent one is tolerated
        if label == "creation_date" and not value:
            continue
        try:
            parse_utc_timestamp(value)
        except (ValueError, TypeError, AttributeError):
            raise ValueError(f"Note {note.id!r} has an invalid {label}: {value!r}")


@dataclass
class ScoredNote:
    """A note resolved from a search hit, with its relevance score."""
    note: Note
    score: float = 0.0

    @property
    def id(self) -> str:
        return self.note.id

    @property
    def name(self) -> str:
        return self.note.name

    def to_dict(self) -> dict[str, Any]:
        result = self.note.to_dict()
        result["score"] = self.score
        return result


class SortMode(str, Enum):
    """Result ordering requested by a query."""
    RELEVANCE = "relevance"
    DATE_NEWEST = "dateNewest"
    DATE_OLDEST = "dateOldest"
    ALPHABETICAL = "alphabetical"

    @classmethod
    def lookup(cls, value: str) -> Optional["SortMode"]:
        """Case-insensitive lookup; None for unknown modes."""
        wanted = value.lower()
        for mode in cls:
            if mode.value.lower() == wanted:
                return mode
        return None


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days (YYYY-MM-DD)."""
    start: str
    end: str

    @property
    def start_date(self) -> date:
        return date.fromisoformat(self.start)

    @property
    def end_date(self) -> date:
        return date.fromisoformat(self.end)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass
class StructuredQuery:
    """A raw query string split into free text, filters and sort order."""
    text: str = ""
    folder: Optional[str] = None
    date_range: Optional[DateRange] = None
    sort_by: SortMode = SortMode.RELEVANCE

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.text,
            "folder": self.folder,
            "dateRange": self.date_range.to_dict() if self.date_range else None,
            "sortBy": self.sort_by.value,
        }


@dataclass
class IndexMetadata:
    """
    The singleton index-status record.

    Always saved whole; there is no partial update.
    """
    last_indexed: Optional[str] = None
    note_count: int = 0
    indexed: bool = False
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class IndexProgress:
    """One progress event per note during a build (1-based)."""
    current: int
    total: int
    name: str


@dataclass
class BuildResult:
    indexed: int
    last_updated: str

    def to_dict(self) -> dict[str, Any]:
        return {"indexed": self.indexed, "lastUpdated": self.last_updated}


@dataclass
class IndexStats:
    total_notes: int
    indexed: int
    is_indexed: bool
    last_indexed: Optional[str] = None
    folders: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalNotes": self.total_notes,
            "indexed": self.indexed,
            "isIndexed": self.is_indexed,
            "lastIndexed": self.last_indexed,
            "folders": list(self.folders),
        }
