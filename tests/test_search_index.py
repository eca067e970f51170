"""
Tests for tokenizing, ranking and query execution.
"""

import pytest

from notedex.errors import IndexNotBuiltError
from notedex.search_index import (
    SearchIndex,
    build_index,
    collation_key,
    execute_query,
    plain_text,
    tokenize,
)
from notedex.types import DateRange, SortMode, StructuredQuery

from conftest import make_note


def ids(results):
    return [r.note.id.rsplit("/", 1)[-1] for r in results]


class TestTokenize:

    def test_lowercases_and_drops_stop_words(self):
        assert tokenize("The Quick fox AND the hen") == ["quick", "fox", "hen"]

    def test_strips_markup_and_entities(self):
        assert tokenize("<div>Fish &amp; Chips</div><br>") == ["fish", "chips"]

    def test_splits_on_hyphens(self):
        assert tokenize("follow-up re-run") == ["follow", "up", "re", "run"]

    def test_checklist_glyphs_removed(self):
        assert tokenize("☐ buy milk ☑eggs ☒ bread") == ["buy", "milk", "eggs", "bread"]

    def test_edge_punctuation_trimmed(self):
        assert tokenize('"hello," (world)! e.g.') == ["hello", "world", "e.g"]

    def test_empty_and_none(self):
        assert tokenize("") == []
        assert tokenize(None) == []

    def test_plain_text_keeps_words_apart(self):
        assert plain_text("<p>one</p><p>two</p>").split() == ["one", "two"]


class TestBuild:

    def test_empty_snapshot(self):
        index = build_index([])
        assert len(index) == 0
        assert index.search("anything") == []
        assert index.search("") == []
        assert index.date_range() == (None, None)

    def test_duplicate_ids_last_wins(self):
        index = build_index([
            make_note("a", "Old title"),
            make_note("b", "Other"),
            make_note("a", "New title"),
        ])
        assert len(index) == 2
        assert index.refs == ("a", "b")
        assert index.notes[0].name == "New title"
        assert index.search("old") == []
        assert [h.ref for h in index.search("new")] == ["a"]

    def test_notes_without_folders(self):
        index = build_index([make_note("a", "Loose", folder=None)])
        assert [h.ref for h in index.search("loose")] == ["a"]
        assert index.folders() == []

    def test_folders_first_seen_order(self, sample_notes):
        assert build_index(sample_notes).folders() == ["Home", "Work", "Recipes"]

    def test_date_range(self, sample_notes):
        earliest, latest = build_index(sample_notes).date_range()
        assert earliest.isoformat().startswith("2022-11-30")
        assert latest.isoformat().startswith("2024-01-05")

    def test_is_a_search_index(self, sample_notes):
        assert isinstance(build_index(sample_notes), SearchIndex)


class TestRanking:

    @pytest.fixture
    def index(self, sample_notes):
        return build_index(sample_notes)

    def test_only_notes_with_a_query_term_match(self, index):
        hits = index.search("milk")
        assert {h.ref for h in hits} == {"x-coredata://note/1", "x-coredata://note/4"}
        assert all(h.score > 0 for h in hits)

    def test_name_match_outranks_body_match(self, index):
        hits = index.search("budget")
        assert hits[0].ref == "x-coredata://note/3"
        assert {h.ref for h in hits} == {"x-coredata://note/2", "x-coredata://note/3"}

    def test_title_word_beats_body_mention(self, index):
        assert index.search("meeting")[0].ref == "x-coredata://note/2"

    def test_folder_name_matches(self, index):
        hits = index.search("work")
        assert {h.ref for h in hits} == {"x-coredata://note/2", "x-coredata://note/3"}

    def test_name_boost_dominates(self):
        index = build_index([
            make_note("body", "Weekly plan", body="ideas about groceries and other errands"),
            make_note("title", "Groceries"),
        ])
        hits = index.search("groceries")
        assert [h.ref for h in hits] == ["title", "body"]
        assert hits[0].score > hits[1].score

    def test_scores_descending(self, index):
        hits = index.search("budget meeting milk eggs")
        scores = [h.score for h in hits]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_snapshot_order(self):
        index = build_index([
            make_note("first", "Same", folder=None),
            make_note("second", "Same", folder=None),
        ])
        assert [h.ref for h in index.search("same")] == ["first", "second"]

    def test_no_match_is_empty(self, index):
        assert index.search("zebra") == []

    def test_stop_word_only_query_matches_everything(self, index, sample_notes):
        hits = index.search("the and of")
        assert [h.ref for h in hits] == [n.id for n in sample_notes]
        assert all(h.score == 0.0 for h in hits)

    def test_checked_item_matches_plain_term(self, index):
        assert index.search("☑ eggs")[0].ref in {"x-coredata://note/1", "x-coredata://note/4"}
        assert {h.ref for h in index.search("buy")} == {"x-coredata://note/1"}

    def test_custom_boosts(self):
        notes = [
            make_note("named", "Invoice"),
            make_note("filed", "Scan", folder="Invoice"),
        ]
        index = build_index(notes, boosts={"name": 1.0, "folder": 50.0, "body": 1.0})
        assert index.search("invoice")[0].ref == "filed"


class TestExecuteQuery:

    @pytest.fixture
    def index(self, sample_notes):
        return build_index(sample_notes)

    def test_requires_index(self, sample_notes):
        with pytest.raises(IndexNotBuiltError):
            execute_query(None, sample_notes, StructuredQuery(text="milk"))

    def test_relevance_keeps_ranked_order(self, index, sample_notes):
        results = execute_query(index, sample_notes, StructuredQuery(text="budget"))
        assert ids(results) == ["3", "2"]
        assert results[0].score > results[1].score

    def test_folder_filter_is_exact(self, index, sample_notes):
        results = execute_query(index, sample_notes, StructuredQuery(folder="Work"))
        assert ids(results) == ["2", "3"]
        assert execute_query(index, sample_notes, StructuredQuery(folder="work")) == []

    def test_filter_only_query_scores_zero(self, index, sample_notes):
        results = execute_query(index, sample_notes, StructuredQuery(folder="Home"))
        assert [(r.id, r.score) for r in results] == [("x-coredata://note/1", 0.0)]

    def test_date_range_inclusive(self, index, sample_notes):
        query = StructuredQuery(date_range=DateRange("2023-01-01", "2023-12-31"))
        assert ids(execute_query(index, sample_notes, query)) == ["1", "2"]

        one_day = StructuredQuery(date_range=DateRange("2023-03-10", "2023-03-10"))
        assert ids(execute_query(index, sample_notes, one_day)) == ["1"]

    def test_date_compared_in_utc(self):
        notes = [make_note("late", "Late", modified="2023-03-10T23:30:00-05:00")]
        index = build_index(notes)
        utc_day = StructuredQuery(date_range=DateRange("2023-03-11", "2023-03-11"))
        local_day = StructuredQuery(date_range=DateRange("2023-03-10", "2023-03-10"))
        assert len(execute_query(index, notes, utc_day)) == 1
        assert execute_query(index, notes, local_day) == []

    def test_filters_combine(self, index, sample_notes):
        query = StructuredQuery(
            text="budget",
            folder="Work",
            date_range=DateRange("2024-01-01", "2024-12-31"),
        )
        assert ids(execute_query(index, sample_notes, query)) == ["3"]

    @pytest.mark.parametrize("sort_by,expected", [
        (SortMode.DATE_NEWEST, ["3", "2", "1", "4"]),
        (SortMode.DATE_OLDEST, ["4", "1", "2", "3"]),
        (SortMode.ALPHABETICAL, ["3", "1", "4", "2"]),
    ])
    def test_sort_modes(self, index, sample_notes, sort_by, expected):
        results = execute_query(index, sample_notes, StructuredQuery(sort_by=sort_by))
        assert ids(results) == expected

    def test_date_sort_is_stable(self):
        notes = [
            make_note("a", "Alpha", modified="2023-01-01T00:00:00Z"),
            make_note("b", "Beta", modified="2023-01-01T00:00:00Z"),
        ]
        index = build_index(notes)
        for mode in (SortMode.DATE_NEWEST, SortMode.DATE_OLDEST):
            results = execute_query(index, notes, StructuredQuery(sort_by=mode))
            assert [r.id for r in results] == ["a", "b"]

    def test_alphabetical_folds_case_and_accents(self):
        notes = [
            make_note("e", "éclair"),
            make_note("b", "banana"),
            make_note("a", "Apple"),
        ]
        index = build_index(notes)
        results = execute_query(index, notes, StructuredQuery(sort_by=SortMode.ALPHABETICAL))
        assert [r.name for r in results] == ["Apple", "banana", "éclair"]

    def test_unresolved_hits_dropped(self, index, sample_notes):
        results = execute_query(index, sample_notes[:2], StructuredQuery())
        assert ids(results) == ["1", "2"]


def test_collation_key_ties_broken_by_name():
    assert collation_key("Apple")[0] == collation_key("apple")[0]
    assert sorted(["apple", "Apple"], key=collation_key) == ["Apple", "apple"]
