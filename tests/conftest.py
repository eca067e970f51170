"""
Shared pytest fixtures for notedex tests.

Provides in-memory note sources so no test touches Apple Notes.
"""

import json
from pathlib import Path

import pytest

from notedex.api import NoteIndexer
from notedex.config import StoreConfig
from notedex.errors import FetchError
from notedex.types import Note


def make_note(
    id: str,
    name: str,
    body: str = "",
    folder: str | None = "Notes",
    modified: str = "2023-06-01T12:00:00Z",
    created: str = "2023-01-01T09:00:00Z",
) -> Note:
    """Create a test Note."""
    return Note(
        id=id,
        name=name,
        body=body,
        folder=folder,
        creation_date=created,
        modification_date=modified,
    )


class StaticSource:
    """Note source returning a fixed (mutable) list of notes."""

    def __init__(self, notes: list[Note]):
        self.notes = list(notes)
        self.fetch_calls = 0

    def fetch(self) -> list[Note]:
        self.fetch_calls += 1
        return list(self.notes)


class FailingSource:
    """Note source that always fails, counting attempts."""

    def __init__(self, message: str = "Notes app not responding"):
        self.message = message
        self.fetch_calls = 0

    def fetch(self) -> list[Note]:
        self.fetch_calls += 1
        raise FetchError(self.message)


@pytest.fixture
def sample_notes() -> list[Note]:
    """A small mixed collection across three folders."""
    return [
        make_note(
            "x-coredata://note/1", "Groceries",
            body="<div>☐ buy milk</div><div>☑ eggs</div>",
            folder="Home", modified="2023-03-10T08:00:00Z",
        ),
        make_note(
            "x-coredata://note/2", "Team meeting notes",
            body="<div>Agenda: quarterly budget review, hiring plan</div>",
            folder="Work", modified="2023-07-21T15:30:00Z",
        ),
        make_note(
            "x-coredata://note/3", "Budget 2024",
            body="<div>Draft budget for next year. Meeting with finance.</div>",
            folder="Work", modified="2024-01-05T10:00:00Z",
        ),
        make_note(
            "x-coredata://note/4", "Pancakes",
            body="<div>flour, milk, eggs, butter</div>",
            folder="Recipes", modified="2022-11-30T19:45:00Z",
        ),
    ]


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture
def store_config(store_path: Path) -> StoreConfig:
    return StoreConfig(path=store_path)


@pytest.fixture
def source(sample_notes) -> StaticSource:
    return StaticSource(sample_notes)


@pytest.fixture
def indexer(store_config, source):
    """A NoteIndexer over a temporary store and the sample notes."""
    ix = NoteIndexer(config=store_config, source=source)
    yield ix
    ix.close()


@pytest.fixture
def notes_json(tmp_path: Path, sample_notes) -> Path:
    """The sample notes written as a JSON export."""
    path = tmp_path / "notes.json"
    path.write_text(json.dumps([n.to_dict() for n in sample_notes]), encoding="utf-8")
    return path
