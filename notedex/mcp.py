"""
MCP stdio server for notedex: note search tools for AI agents.

Exposes NoteIndexer operations as MCP tools so local AI agents can index
and search the user's notes.

Usage:
    notedex mcp                             # stdio server (via CLI)
    claude mcp add notedex -- notedex mcp   # register with an agent

All NoteIndexer calls are serialized through a single asyncio.Lock.
"""

import asyncio
import os
from pathlib import Path
from typing import Annotated, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .api import NoteIndexer
from .cli import render_note, render_results, render_stats
from .errors import FetchError, IndexNotBuiltError, StorageError

# ---------------------------------------------------------------------------
# Server setup
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "notedex",
    instructions=(
        "Full-text search over the user's notes. "
        "Index notes once, then search with free text plus "
        'folder:"...", date:"YYYY-MM-DD to YYYY-MM-DD" and sort:... directives.'
    ),
)

_indexer: Optional[NoteIndexer] = None
_lock = asyncio.Lock()


def _get_indexer() -> NoteIndexer:
    """Lazy-init NoteIndexer (respects NOTEDEX_STORE_PATH env).

    Must be called inside ``async with _lock``.
    """
    global _indexer
    if _indexer is None:
        store_path = os.environ.get("NOTEDEX_STORE_PATH")
        _indexer = NoteIndexer(store_path=Path(store_path) if store_path else None)
    return _indexer


# ---------------------------------------------------------------------------
# Tool annotations
# ---------------------------------------------------------------------------

_READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False)
_IDEMPOTENT = ToolAnnotations(idempotentHint=True, destructiveHint=False)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool(
    description=(
        "Fetch every note from the configured source, store it locally, "
        "and rebuild the search index. Run before the first search and "
        "whenever notes have changed."
    ),
    annotations=_IDEMPOTENT,
)
async def notes_index() -> str:
    """Build the note index."""
    async with _lock:
        indexer = _get_indexer()
        try:
            result = indexer.build_index()
        except (FetchError, StorageError, ValueError) as e:
            return f"Error: Failed to index notes: {e}"
    return f"Indexing complete! Indexed {result.indexed} notes (last updated {result.last_updated})."


@mcp.tool(
    description=(
        "Search indexed notes. Free text is ranked by relevance; add "
        'folder:"Name" to restrict to a folder, date:"2024-01-01 to 2024-03-31" '
        "to restrict by modification date, and sort:relevance|dateNewest|"
        "dateOldest|alphabetical to change the order."
    ),
    annotations=_READ_ONLY,
)
async def notes_search(
    query: Annotated[str, Field(
        description='Search text with optional directives, e.g. \'budget folder:"Work" sort:dateNewest\'.',
    )],
    limit: Annotated[int, Field(
        description="Max results to return (0 for all).",
    )] = 20,
) -> str:
    """Search notes."""
    if not query.strip():
        return "Please provide a search query."
    async with _lock:
        indexer = _get_indexer()
        try:
            results = indexer.search(query)
        except IndexNotBuiltError as e:
            return f"Error: {e}"

    if limit > 0:
        results = results[:limit]
    return render_results(results, query)


@mcp.tool(
    description="Show whether notes are indexed, how many, and when the index was last built.",
    annotations=_READ_ONLY,
)
async def notes_status() -> str:
    """Show index status."""
    async with _lock:
        indexer = _get_indexer()
        stats = indexer.get_stats()
    return render_stats(stats)


@mcp.tool(
    description="List the folders of stored notes (usable with folder:\"...\" in searches).",
    annotations=_READ_ONLY,
)
async def notes_folders() -> str:
    """List folders."""
    async with _lock:
        indexer = _get_indexer()
        names = indexer.folders()
    if not names:
        return "No folders."
    return "\n".join(f"- {name}" for name in names)


@mcp.tool(
    description="Retrieve the full text of a stored note by ID.",
    annotations=_READ_ONLY,
)
async def notes_get(
    id: Annotated[str, Field(description="Note ID (as shown in JSON search output).")],
) -> str:
    """Retrieve a note."""
    async with _lock:
        indexer = _get_indexer()
        note = indexer.get_note(id)
    if note is None:
        return f"Not found: {id}"
    return render_note(note)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Run the MCP stdio server."""
    import signal
    # anyio's stdin reader shields the blocking readline from cancellation,
    # so the first Ctrl+C would otherwise be swallowed.
    signal.signal(signal.SIGINT, lambda *_: os._exit(130))
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
