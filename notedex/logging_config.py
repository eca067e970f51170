"""
Logging setup for notedex.

Three modes: quiet (the default for the CLI), debug on stderr, and the
per-store operations log that records every build and search.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path

OPS_LOG_FILENAME = "notedex-ops.log"
OPS_LOG_MAX_BYTES = 1_000_000
OPS_LOG_BACKUPS = 3

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("mcp", "httpx", "anyio")


def configure_quiet_mode(quiet: bool = True):
    """
    Silence library chatter so CLI output stays readable.

    Args:
        quiet: False restores default warning behaviour.
    """
    if not quiet:
        warnings.filterwarnings("default")
        return
    warnings.filterwarnings("ignore")
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _stderr_handler(logger: logging.Logger):
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and handler.stream is sys.stderr:
            return handler
    return None


def enable_debug_mode():
    """Send DEBUG records from every logger to stderr."""
    warnings.filterwarnings("default")

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    if _stderr_handler(root) is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        ))
        root.addHandler(handler)

    logging.getLogger("notedex").setLevel(logging.DEBUG)


def configure_ops_log(store_path) -> RotatingFileHandler:
    """
    Attach the operations log of a store to the ``notedex`` logger.

    Records INFO and above to ``{store_path}/notedex-ops.log`` whatever the
    console verbosity. The caller owns the returned handler and removes it
    when the store is closed.
    """
    store_path = Path(store_path)
    store_path.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        str(store_path / OPS_LOG_FILENAME),
        maxBytes=OPS_LOG_MAX_BYTES,
        backupCount=OPS_LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))

    logger = logging.getLogger("notedex")
    logger.addHandler(handler)
    # Quiet mode must not starve the file of INFO records
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)
    return handler
