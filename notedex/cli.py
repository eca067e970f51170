"""
CLI interface for the note index.

Usage:
    notedex index
    notedex search 'budget folder:"Work" sort:dateNewest'
    notedex status
"""

import atexit
import json
import os
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import NoteIndexer
from .errors import (
    FetchError,
    IndexNotBuiltError,
    NotedexError,
    StorageError,
    log_exception,
)
from .logging_config import configure_quiet_mode, enable_debug_mode
from .search_index import plain_text
from .types import IndexProgress, IndexStats, Note, ScoredNote, parse_utc_timestamp

# Characters of note body shown under each search result
PREVIEW_LENGTH = 150


# NOTEDEX_VERBOSE=1 turns on debug output before any option is parsed
if os.environ.get("NOTEDEX_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if not value:
        return
    from importlib.metadata import PackageNotFoundError, version
    try:
        installed = version("notedex")
    except PackageNotFoundError:
        from . import __version__ as installed
    typer.echo(f"notedex {installed}")
    raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


class _GlobalOptions:
    """Options given before the command name, shared by every command."""
    json = False
    store: Optional[Path] = None


_options = _GlobalOptions()


def _json_callback(value: bool):
    _options.json = value


def _store_callback(value: Optional[Path]):
    _options.store = value


app = typer.Typer(
    name="notedex",
    help="Full-text search over your notes.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


# -----------------------------------------------------------------------------
# Output Formatting
#
# Plain text by default; --json emits the camelCase record shapes.
# The MCP server reuses these renderers.
# -----------------------------------------------------------------------------

def _display_date(timestamp: Optional[str]) -> str:
    """Short UTC date for display, the same day basis the date: filter uses.

    Returns the raw value if it cannot be parsed.
    """
    if not timestamp:
        return ""
    try:
        return parse_utc_timestamp(timestamp).strftime("%Y-%m-%d %H:%M UTC")
    except ValueError:
        return timestamp


def note_preview(note: Note, length: int = PREVIEW_LENGTH) -> str:
    """First ``length`` characters of the body as plain text."""
    text = " ".join(plain_text(note.body).split())
    if len(text) > length:
        return text[:length] + "..."
    return text


def render_results(results: list[ScoredNote], query: str) -> str:
    """Render search results as text."""
    if not results:
        return f'No results for "{query}". Try a different search term.'

    noun = "note" if len(results) == 1 else "notes"
    lines = [f'Found {len(results)} {noun} for "{query}":', ""]
    for result in results:
        note = result.note
        lines.append(
            f"- {note.name}  [{note.folder or '-'}]  "
            f"{_display_date(note.modification_date)}  (score {result.score:.2f})"
        )
        preview = note_preview(note)
        if preview:
            lines.append(f"    {preview}")
    return "\n".join(lines)


def render_note(note: Note) -> str:
    """Render a single note in full."""
    lines = [
        note.name,
        f"Folder:   {note.folder or '-'}",
        f"Created:  {_display_date(note.creation_date)}",
        f"Modified: {_display_date(note.modification_date)}",
        f"ID:       {note.id}",
        "",
        plain_text(note.body).strip(),
    ]
    return "\n".join(lines)


def render_stats(stats: IndexStats) -> str:
    """Render index status."""
    lines = [
        f"Status:       {'Indexed' if stats.is_indexed else 'Not indexed'}",
        f"Total notes:  {stats.total_notes}",
        f"Indexed:      {stats.indexed}",
        f"Last indexed: {_display_date(stats.last_indexed) or 'never'}",
    ]
    if stats.folders:
        lines.append(f"Folders:      {', '.join(stats.folders)}")
    return "\n".join(lines)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Log debug output to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Print machine-readable JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Print the version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="NOTEDEX_STORE_PATH",
        help="Store directory (default: ~/.notedex)",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Full-text search over your notes."""


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

StoreOption = Annotated[
    Optional[Path],
    typer.Option(
        "--store", "-s",
        envvar="NOTEDEX_STORE_PATH",
        help="Store directory (overrides the global --store)"
    )
]


def _get_indexer(store: Optional[Path], **kwargs) -> NoteIndexer:
    """Open the note index, turning setup failures into a clean exit."""
    actual_store = store if store is not None else _options.store
    try:
        ix = NoteIndexer(actual_store, **kwargs)
    except (NotedexError, ValueError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    atexit.register(ix.close)
    return ix


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command("index")
def index_notes(
    store: StoreOption = None,
    from_json: Annotated[Optional[Path], typer.Option(
        "--from-json",
        help="Index notes from a JSON export instead of the configured source"
    )] = None,
    quiet: Annotated[bool, typer.Option(
        "--quiet", "-q",
        help="Don't print per-note progress"
    )] = False,
):
    """
    Fetch all notes, store them, and rebuild the search index.

    \b
    Examples:
        notedex index                        # From the configured source
        notedex index --from-json notes.json # From a JSON export
    """
    source = None
    if from_json is not None:
        from .providers.sources import JsonFileSource
        source = JsonFileSource(from_json)

    ix = _get_indexer(store, source=source)

    def report(event: IndexProgress) -> None:
        if not quiet and not _options.json:
            typer.echo(f"Indexing: {event.current}/{event.total} - {event.name}")

    try:
        result = ix.build_index(progress=report)
    except (FetchError, StorageError, ValueError) as e:
        typer.echo(f"Failed to index notes: {e}", err=True)
        raise typer.Exit(1)

    if _options.json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        typer.echo(f"Indexing complete! Indexed {result.indexed} notes.")
        typer.echo(f"Last updated: {_display_date(result.last_updated)}")


@app.command()
def search(
    query: Annotated[str, typer.Argument(
        help='Search text, with optional folder:"..." date:"..." sort:... directives'
    )],
    store: StoreOption = None,
    limit: Annotated[int, typer.Option(
        "--limit", "-n",
        help="Maximum results to show (0 for all)"
    )] = 20,
):
    """
    Search indexed notes.

    date: filters match the UTC day a note was last modified, which is
    the date shown in the results.

    \b
    Examples:
        notedex search "meeting notes"
        notedex search 'budget folder:"Work"'
        notedex search 'date:"2023-01-01 to 2023-12-31" sort:dateNewest'
        notedex search 'folder:"Recipes" sort:alphabetical'
    """
    if not query.strip():
        typer.echo("Error: Please provide a search query", err=True)
        raise typer.Exit(1)

    ix = _get_indexer(store)
    try:
        results = ix.search(query)
    except IndexNotBuiltError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if limit > 0:
        results = results[:limit]

    if _options.json:
        typer.echo(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        typer.echo(render_results(results, query))


@app.command()
def status(
    store: StoreOption = None,
):
    """Show index status."""
    ix = _get_indexer(store)
    stats = ix.get_stats()
    if _options.json:
        typer.echo(json.dumps(stats.to_dict(), indent=2))
    else:
        typer.echo(render_stats(stats))


@app.command()
def folders(
    store: StoreOption = None,
):
    """List folders of stored notes."""
    ix = _get_indexer(store)
    names = ix.folders()
    if _options.json:
        typer.echo(json.dumps(names))
    elif not names:
        typer.echo("No folders.")
    else:
        for name in names:
            typer.echo(name)


@app.command()
def get(
    id: Annotated[str, typer.Argument(help="Note ID")],
    store: StoreOption = None,
):
    """Show a stored note."""
    ix = _get_indexer(store)
    note = ix.get_note(id)
    if note is None:
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    if _options.json:
        typer.echo(json.dumps(note.to_dict(), indent=2))
    else:
        typer.echo(render_note(note))


@app.command()
def delete(
    id: Annotated[str, typer.Argument(help="Note ID")],
    store: StoreOption = None,
):
    """Delete a stored note (takes effect in search after the next index)."""
    ix = _get_indexer(store)
    removed = ix.delete_note(id)
    if removed:
        typer.echo(f"Deleted: {id}")
    else:
        typer.echo(f"Not found: {id}")


@app.command()
def mcp(
    store: StoreOption = None,
):
    """Serve the note tools to AI agents over MCP (stdio)."""
    # The server opens its own indexer from the environment
    chosen = store if store is not None else _options.store
    if chosen is not None:
        os.environ["NOTEDEX_STORE_PATH"] = str(chosen)
    from .mcp import main as serve
    serve()


# -----------------------------------------------------------------------------

def main():
    """Console entry point: unexpected errors become one line plus a log entry."""
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        raise SystemExit(130)
    except Exception as e:
        log_path = log_exception(e, context="notedex CLI")
        typer.echo(f"Error: {e} (traceback in {log_path})", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
