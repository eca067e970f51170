"""
In-memory full-text index over notes, and query execution against it.

The index is built wholesale from a note snapshot and never patched:
adding or changing one note means building a new index. Each field gets
its own BM25 model; a note's relevance is the boosted sum over fields.
"""

import html
import logging
import re
import unicodedata
from datetime import datetime, timezone
from typing import Iterable, NamedTuple, Optional, Sequence

from rank_bm25 import BM25Plus

from .errors import IndexNotBuiltError
from .types import DateRange, Note, ScoredNote, SortMode, StructuredQuery

logger = logging.getLogger(__name__)

# Field boosts: a title hit outweighs a folder hit, which outweighs a body hit
DEFAULT_BOOSTS = {"name": 10.0, "folder": 5.0, "body": 1.0}

# Apple Notes checklist markers (unchecked, checked, crossed)
CHECKLIST_GLYPHS = "☐☑☒"
_CHECKLIST_RE = re.compile(f"[{CHECKLIST_GLYPHS}]")

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_SEPARATOR_RE = re.compile(r"[\s\-]+")
_TRIM_RE = re.compile(r"^\W+|\W+$")

STOP_WORDS = frozenset("""
a able about across after all almost also am among an and any are as at be
because been but by can cannot could dear did do does either else ever every
for from get got had has have he her hers him his how however i if in into is
it its just least let like likely may me might most must my neither no nor
not of off often on only or other our own rather said say says she should
since so some than that the their them then there these they this tis to too
twas us wants was we were what when where which while who whom why will with
would yet you your
""".split())


def strip_checklist_glyphs(token: str) -> str:
    """Remove checklist markers so checked and unchecked items index alike."""
    return _CHECKLIST_RE.sub("", token)


def plain_text(text: Optional[str]) -> str:
    """Note text with HTML markup removed and entities decoded."""
    if not text:
        return ""
    return html.unescape(_HTML_TAG_RE.sub(" ", text))


def tokenize(text: Optional[str]) -> list[str]:
    """
    Split note text into index terms.

    Markup is removed first since note bodies arrive as HTML. Tokens are
    lower-cased, cleared of checklist glyphs and edge punctuation, and
    common English stop words are dropped.
    """
    tokens = []
    for raw in _SEPARATOR_RE.split(plain_text(text).lower()):
        token = _TRIM_RE.sub("", strip_checklist_glyphs(raw))
        if token and token not in STOP_WORDS:
            tokens.append(token)
    return tokens


class SearchHit(NamedTuple):
    """A ranked reference into the index."""
    ref: str
    score: float


def _field_text(note: Note, field: str) -> str:
    return getattr(note, field) or ""


class SearchIndex:
    """
    Immutable BM25 index over note name, folder and body.

    Example:
        index = build_index(notes)
        hits = index.search("buy milk")
    """

    def __init__(self, notes: Iterable[Note], boosts: Optional[dict[str, float]] = None):
        # Later duplicates of an ID replace earlier ones, keeping first position
        unique: dict[str, Note] = {}
        for note in notes:
            unique[note.id] = note
        self._notes: tuple[Note, ...] = tuple(unique.values())
        self._refs: tuple[str, ...] = tuple(unique.keys())
        self._boosts = dict(boosts or DEFAULT_BOOSTS)

        self._models: dict[str, BM25Plus] = {}
        self._postings: dict[str, set[int]] = {}
        for field in self._boosts:
            corpus = [tokenize(_field_text(note, field)) for note in self._notes]
            for position, terms in enumerate(corpus):
                for term in terms:
                    self._postings.setdefault(term, set()).add(position)
            # BM25 needs at least one token in the field to compute lengths
            if any(corpus):
                self._models[field] = BM25Plus(corpus)

        logger.debug(
            "Built index: %d notes, %d terms, fields=%s",
            len(self._notes), len(self._postings), sorted(self._models),
        )

    def __len__(self) -> int:
        return len(self._notes)

    @property
    def notes(self) -> tuple[Note, ...]:
        """The snapshot this index was built from."""
        return self._notes

    @property
    def refs(self) -> tuple[str, ...]:
        return self._refs

    def search(self, text: str) -> list[SearchHit]:
        """
        Rank notes against free text.

        Text with no index terms (empty, or stop words only) matches every
        note with score 0.0, in snapshot order. Otherwise a note matches
        when it contains at least one query term in any field, and matches
        are ordered by descending score, ties by snapshot position.
        """
        terms = tokenize(text)
        if not terms:
            return [SearchHit(ref, 0.0) for ref in self._refs]

        matched: set[int] = set()
        for term in terms:
            matched |= self._postings.get(term, set())
        if not matched:
            return []

        scores = [0.0] * len(self._notes)
        for field, model in self._models.items():
            boost = self._boosts[field]
            for position, score in enumerate(model.get_scores(terms)):
                scores[position] += boost * float(score)

        ranked = sorted(matched, key=lambda position: (-scores[position], position))
        return [SearchHit(self._refs[position], scores[position]) for position in ranked]

    def folders(self) -> list[str]:
        """Unique folder names across the indexed notes, in first-seen order."""
        seen: dict[str, None] = {}
        for note in self._notes:
            if note.folder is not None:
                seen.setdefault(note.folder, None)
        return list(seen)

    def date_range(self) -> tuple[Optional[datetime], Optional[datetime]]:
        """Earliest and latest modification instants, or (None, None) if empty."""
        dates = [_modified_at(note) for note in self._notes]
        if not dates:
            return None, None
        return min(dates), max(dates)


def build_index(
    notes: Iterable[Note],
    boosts: Optional[dict[str, float]] = None,
) -> SearchIndex:
    """Build a fresh index from a complete note snapshot."""
    return SearchIndex(notes, boosts=boosts)


# -----------------------------------------------------------------------------
# Query execution
# -----------------------------------------------------------------------------

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _modified_at(note: Note) -> datetime:
    try:
        return note.modified_at
    except ValueError:
        return _EPOCH


def collation_key(name: str) -> tuple[str, str]:
    """
    Sort key for alphabetical ordering.

    Accents and case are folded so "apple", "Banana" and "Éclair" sort as a
    reader expects; the original name breaks ties deterministically.
    """
    decomposed = unicodedata.normalize("NFKD", name or "")
    folded = "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()
    return folded, name or ""


def _in_range(note: Note, date_range: DateRange) -> bool:
    try:
        day = note.modified_at.date()
    except ValueError:
        return False
    return date_range.contains(day)


def _sort(results: list[ScoredNote], sort_by: SortMode) -> list[ScoredNote]:
    """Stable sort; relevance keeps ranked order."""
    if sort_by == SortMode.DATE_NEWEST:
        return sorted(results, key=lambda r: _modified_at(r.note), reverse=True)
    if sort_by == SortMode.DATE_OLDEST:
        return sorted(results, key=lambda r: _modified_at(r.note))
    if sort_by == SortMode.ALPHABETICAL:
        return sorted(results, key=lambda r: collation_key(r.note.name))
    return results


def execute_query(
    index: Optional[SearchIndex],
    notes: Sequence[Note],
    query: StructuredQuery,
) -> list[ScoredNote]:
    """
    Run a structured query against a built index.

    Hits are resolved to full notes through ``notes``; hits with no
    matching note are dropped. Folder and date filters apply after
    ranking, then the requested sort.

    Raises:
        IndexNotBuiltError: If there is no index to search
    """
    if index is None:
        raise IndexNotBuiltError("Index not built yet. Run the index command first.")

    by_id = {note.id: note for note in notes}
    results = []
    for hit in index.search(query.text):
        note = by_id.get(hit.ref)
        if note is None:
            logger.debug("Dropping hit with no matching note: %s", hit.ref)
            continue
        results.append(ScoredNote(note=note, score=hit.score))

    if query.folder is not None:
        results = [r for r in results if r.note.folder == query.folder]

    if query.date_range is not None:
        results = [r for r in results if _in_range(r.note, query.date_range)]

    return _sort(results, query.sort_by)
