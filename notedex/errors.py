"""
Exceptions raised by notedex, and the error log for unexpected failures.

Every error carries a message fit to show a user. Tracebacks go to
``notedex-errors.log`` in the store directory instead of the terminal.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path

ERROR_LOG_FILENAME = "notedex-errors.log"


class NotedexError(Exception):
    """Base class for all notedex errors."""


class FetchError(NotedexError):
    """The note source could not deliver notes."""


class StorageError(NotedexError):
    """A read or write against the local note store failed."""


class IndexNotBuiltError(NotedexError):
    """A query was issued and no index could be built or recovered."""


class InconsistentStateError(IndexNotBuiltError):
    """Metadata says the store was indexed, but the stored notes are gone."""


def error_log_path() -> Path:
    """The error log inside the active store (NOTEDEX_STORE_PATH or ~/.notedex)."""
    store = os.environ.get("NOTEDEX_STORE_PATH")
    base = Path(store).expanduser() if store else Path.home() / ".notedex"
    return base / ERROR_LOG_FILENAME


def log_exception(exc: BaseException, context: str = "") -> Path:
    """
    Append an exception and its traceback to the error log.

    Args:
        exc: The exception to record
        context: What was running, e.g. "notedex CLI"

    Returns:
        Path of the error log, for pointing the user at it
    """
    path = error_log_path()
    header = f"[{datetime.now(timezone.utc).isoformat()}]"
    if context:
        header += f" {context}"
    entry = "\n".join([
        "-" * 60,
        f"{header} {type(exc).__name__}: {exc}",
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    ])
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Tracebacks can quote note text, so the file is private to the user
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(entry)
    except OSError:
        pass  # The user still sees the short message
    return path
