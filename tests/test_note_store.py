"""
Tests for NoteStore and MetadataStore.
"""

import pytest

from notedex.errors import StorageError
from notedex.note_store import MetadataStore, NoteStore
from notedex.types import IndexMetadata

from conftest import make_note


@pytest.fixture
def store(tmp_path):
    s = NoteStore(tmp_path / "notes.db")
    yield s
    s.close()


@pytest.fixture
def metadata(tmp_path):
    m = MetadataStore(tmp_path / "metadata.db")
    yield m
    m.close()


class TestUpsert:

    def test_upsert_then_get_returns_equal_note(self, store):
        note = make_note("n1", "First", body="hello", folder="Work")
        result = store.upsert(note)
        assert result.created is True
        assert result.note == note
        assert store.get("n1") == note

    def test_second_upsert_replaces_all_fields(self, store):
        store.upsert(make_note("n1", "First", body="hello", folder="Work"))
        replacement = make_note(
            "n1", "Renamed", body="", folder=None,
            modified="2024-02-02T00:00:00Z",
        )
        result = store.upsert(replacement)

        assert result.created is False
        assert result.replaced is True
        stored = store.get("n1")
        assert stored == replacement
        assert stored.folder is None
        assert store.count() == 1

    def test_upsert_is_idempotent(self, store):
        note = make_note("n1", "First")
        store.upsert(note)
        store.upsert(note)
        assert store.count() == 1
        assert store.get_all() == [note]

    def test_upsert_rejects_empty_id(self, store):
        with pytest.raises(ValueError):
            store.upsert(make_note("", "No id"))

    def test_upsert_rejects_unparseable_date(self, store):
        with pytest.raises(ValueError, match="modification_date"):
            store.upsert(make_note("n1", "Bad", modified="last tuesday"))
        assert store.get("n1") is None

    def test_upsert_many_keeps_earlier_saves_on_failure(self, store):
        notes = [
            make_note("n1", "Good"),
            make_note("n2", "Bad", modified="not a date"),
            make_note("n3", "Never reached"),
        ]
        with pytest.raises(ValueError):
            store.upsert_many(notes)
        assert store.get("n1") is not None
        assert store.get("n3") is None

    def test_upsert_many_reports_new_and_replaced(self, store):
        store.upsert(make_note("n1", "Existing"))
        results = store.upsert_many([make_note("n1", "Changed"), make_note("n2", "New")])
        assert [r.created for r in results] == [False, True]


class TestReads:

    def test_get_missing_returns_none(self, store):
        assert store.get("nope") is None

    def test_get_all_and_count(self, store, sample_notes):
        store.upsert_many(sample_notes)
        assert store.count() == len(sample_notes)
        assert sorted(n.id for n in store.get_all()) == sorted(n.id for n in sample_notes)

    def test_get_by_folder_is_exact(self, store):
        store.upsert(make_note("n1", "A", folder="Work"))
        store.upsert(make_note("n2", "B", folder="work"))
        store.upsert(make_note("n3", "C", folder="Home"))
        assert [n.id for n in store.get_by_folder("Work")] == ["n1"]
        assert store.get_by_folder("Nowhere") == []

    def test_distinct_folders_skips_null(self, store):
        store.upsert(make_note("n1", "A", folder="Work"))
        store.upsert(make_note("n2", "B", folder="Work"))
        store.upsert(make_note("n3", "C", folder="Home"))
        store.upsert(make_note("n4", "D", folder=None))
        assert store.distinct_folders() == ["Home", "Work"]

    def test_data_survives_reopen(self, tmp_path):
        path = tmp_path / "notes.db"
        first = NoteStore(path)
        first.upsert(make_note("n1", "Persisted"))
        first.close()

        second = NoteStore(path)
        try:
            assert second.get("n1").name == "Persisted"
        finally:
            second.close()


class TestDelete:

    def test_delete_returns_count(self, store):
        store.upsert(make_note("n1", "A"))
        assert store.delete("n1") == 1
        assert store.get("n1") is None

    def test_delete_missing_is_not_an_error(self, store):
        assert store.delete("never-stored") == 0


class TestStorageErrors:

    def test_base_store_requires_a_schema(self, tmp_path):
        from notedex.note_store import _SqliteStore
        with pytest.raises(NotImplementedError, match="_SqliteStore must define its schema"):
            _SqliteStore(tmp_path / "bare.db")

    def test_closed_store_raises_storage_error(self, tmp_path):
        store = NoteStore(tmp_path / "notes.db")
        store.close()
        with pytest.raises(StorageError):
            store.get("n1")
        with pytest.raises(StorageError):
            store.upsert(make_note("n1", "A"))

    def test_sqlite_failure_is_wrapped(self, store):
        store._conn.execute("DROP TABLE notes")
        with pytest.raises(StorageError, match="no such table"):
            store.upsert(make_note("n1", "A"))

    def test_unopenable_path_raises_storage_error(self, tmp_path):
        # A directory where the database file should be
        bad = tmp_path / "notes.db"
        bad.mkdir()
        with pytest.raises(StorageError):
            NoteStore(bad)


class TestMetadataStore:

    def test_load_returns_default_when_absent(self, metadata):
        loaded = metadata.load()
        assert loaded.indexed is False
        assert loaded.note_count == 0
        assert loaded.last_indexed is None

    def test_save_then_load(self, metadata):
        saved = metadata.save(IndexMetadata(
            last_indexed="2024-01-01T00:00:00", note_count=3, indexed=True,
        ))
        assert saved.updated_at is not None

        loaded = metadata.load()
        assert loaded.indexed is True
        assert loaded.note_count == 3
        assert loaded.last_indexed == "2024-01-01T00:00:00"
        assert loaded.updated_at == saved.updated_at

    def test_save_overwrites_whole_record(self, metadata):
        metadata.save(IndexMetadata(last_indexed="2024-01-01T00:00:00", note_count=3, indexed=True))
        metadata.save(IndexMetadata())
        loaded = metadata.load()
        assert loaded.indexed is False
        assert loaded.note_count == 0
        assert loaded.last_indexed is None
