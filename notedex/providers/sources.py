"""
Built-in note sources.

- apple-notes: reads every folder of Apple Notes through JXA (macOS only)
- json: reads a JSON export, an array of note records
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Optional

from ..errors import FetchError
from ..types import Note, validate_note
from .base import get_registry

logger = logging.getLogger(__name__)


def _notes_from_records(records: Any, origin: str) -> list[Note]:
    """Convert decoded JSON records to validated notes."""
    if not isinstance(records, list):
        raise FetchError(f"{origin}: expected a list of notes, got {type(records).__name__}")
    notes = []
    for position, record in enumerate(records):
        if not isinstance(record, dict):
            raise FetchError(f"{origin}: note #{position} is not an object")
        note = Note.from_dict(record)
        try:
            validate_note(note)
        except ValueError as e:
            raise FetchError(f"{origin}: note #{position}: {e}") from e
        notes.append(note)
    return notes


# Runs under osascript's JavaScript engine, which prints the value of the
# last expression. Dates go through toISOString() so they cross the process
# boundary as UTC ISO-8601 strings.
APPLE_NOTES_JXA = """
const app = Application('Notes');
const notes = [];
app.folders().forEach(folder => {
    const folderName = folder.name();
    folder.notes().forEach(note => {
        notes.push({
            id: note.id(),
            name: note.name(),
            body: note.body(),
            creationDate: note.creationDate().toISOString(),
            modificationDate: note.modificationDate().toISOString(),
            folder: folderName
        });
    });
});
JSON.stringify(notes);
"""


class AppleNotesSource:
    """
    Fetch notes from the Apple Notes application via ``osascript``.

    One blocking call returns every note in every folder.
    """

    def __init__(self, osascript: str = "osascript", timeout: Optional[float] = None):
        """
        Args:
            osascript: Path to the osascript executable
            timeout: Seconds to wait for Notes to answer (None waits forever)
        """
        self._osascript = osascript
        self._timeout = timeout

    def fetch(self) -> list[Note]:
        logger.info("Fetching notes from Apple Notes")
        try:
            proc = subprocess.run(
                [self._osascript, "-l", "JavaScript", "-e", APPLE_NOTES_JXA],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=True,
            )
        except FileNotFoundError as e:
            raise FetchError(f"osascript not found ({self._osascript}); Apple Notes needs macOS") from e
        except subprocess.TimeoutExpired as e:
            raise FetchError(f"Apple Notes did not answer within {self._timeout}s") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or f"exit status {e.returncode}"
            raise FetchError(f"Apple Notes fetch failed: {detail}") from e

        try:
            records = json.loads(proc.stdout)
        except json.JSONDecodeError as e:
            raise FetchError(f"Apple Notes returned invalid JSON: {e}") from e

        notes = _notes_from_records(records, "Apple Notes")
        logger.info("Fetched %d notes from Apple Notes", len(notes))
        return notes


class JsonFileSource:
    """
    Fetch notes from a JSON file holding an array of note records.

    Records use the Apple Notes field names (``creationDate``,
    ``modificationDate``); snake_case keys are accepted too.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    def fetch(self) -> list[Note]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise FetchError(f"Cannot read notes file {self._path}: {e}") from e
        try:
            records = json.loads(text)
        except json.JSONDecodeError as e:
            raise FetchError(f"Invalid JSON in {self._path}: {e}") from e

        notes = _notes_from_records(records, str(self._path))
        logger.info("Read %d notes from %s", len(notes), self._path)
        return notes


_registry = get_registry()
_registry.register("apple-notes", AppleNotesSource)
_registry.register("json", JsonFileSource)
