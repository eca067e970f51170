"""
Query-string parsing.

A query is free text with optional embedded directives:

    meeting notes folder:"Work" date:"2023-01-01 to 2023-12-31" sort:dateNewest

Directives may appear anywhere and in any order. Parsing never fails:
anything that does not match a directive exactly stays in the free text.
"""

import re
from datetime import date

from .types import DateRange, SortMode, StructuredQuery

# folder:"Work" or folder:'Work'; the closing quote must match the opening one.
# Every directive must start a word: "subfolder:" is free text
FOLDER_PATTERN = re.compile(
    r"""(?<![\w-])folder:(?P<q>["'])(?P<value>(?:(?!(?P=q)).)+)(?P=q)""",
    re.IGNORECASE,
)

# date:"2023-01-01" or date:"2023-01-01 to 2023-12-31"
DATE_PATTERN = re.compile(
    r"""(?<![\w-])date:(?P<q>["'])"""
    r"""(?P<start>\d{4}-\d{2}-\d{2})(?:\s+to\s+(?P<end>\d{4}-\d{2}-\d{2}))?"""
    r"""(?P=q)""",
    re.IGNORECASE,
)

SORT_PATTERN = re.compile(
    r"(?<![\w-])sort:(?P<mode>"
    + "|".join(mode.value for mode in SortMode)
    + r")(?![\w-])",
    re.IGNORECASE,
)


def _valid_day(value: str) -> bool:
    try:
        date.fromisoformat(value)
        return True
    except ValueError:
        return False


def _is_real_range(match: re.Match) -> bool:
    """A date directive only counts when both dates exist on the calendar."""
    start = match.group("start")
    return _valid_day(start) and _valid_day(match.group("end") or start)


def parse_query(raw: str) -> StructuredQuery:
    """
    Split a raw query string into free text, filters and sort order.

    Only the first occurrence of each directive is honored. Later
    occurrences of a directive type that matched are stripped as well,
    so parsing the remaining text again extracts nothing.

    Args:
        raw: Query string as typed by the user

    Returns:
        StructuredQuery; text may be empty for a filter-only query
    """
    text = raw or ""
    query = StructuredQuery()

    match = FOLDER_PATTERN.search(text)
    if match:
        query.folder = match.group("value")
        text = FOLDER_PATTERN.sub(" ", text)

    match = next((m for m in DATE_PATTERN.finditer(text) if _is_real_range(m)), None)
    if match:
        start = match.group("start")
        query.date_range = DateRange(start=start, end=match.group("end") or start)
        text = DATE_PATTERN.sub(
            lambda m: " " if _is_real_range(m) else m.group(0), text,
        )

    match = SORT_PATTERN.search(text)
    if match:
        query.sort_by = SortMode.lookup(match.group("mode")) or SortMode.RELEVANCE
        text = SORT_PATTERN.sub(" ", text)

    query.text = " ".join(text.split())
    return query
