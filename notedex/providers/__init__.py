"""Note sources: where notes come from."""

from .base import NoteSource, SourceRegistry, get_registry

__all__ = ["NoteSource", "SourceRegistry", "get_registry"]
