"""
Note source protocol and registry.

A note source is the only way notes enter the system. It takes no
arguments and returns the complete current set of notes, or fails.
Sources are created by name from the store configuration.
"""

from typing import Protocol, runtime_checkable

from ..types import Note


@runtime_checkable
class NoteSource(Protocol):
    """
    Delivers the full set of notes from an external application.

    Implementations must raise FetchError for every failure: the indexer
    does not interpret causes beyond "fetch failed".

    Example:
        class StaticSource:
            def __init__(self, notes):
                self._notes = notes

            def fetch(self) -> list[Note]:
                return list(self._notes)
    """

    def fetch(self) -> list[Note]:
        """
        Fetch every note.

        Returns:
            All notes currently in the source, in source order

        Raises:
            FetchError: If the source is unreachable or returns garbage
        """
        ...


class SourceRegistry:
    """
    Registry for discovering and instantiating note sources.

    Example:
        registry = SourceRegistry()
        registry.register("json", JsonFileSource)

        # Later, from config:
        source = registry.create("json", {"path": "notes.json"})
    """

    def __init__(self):
        self._sources: dict[str, type] = {}
        self._lazy_loaded = False

    def _ensure_sources_loaded(self) -> None:
        """Import the built-in source module so it registers itself."""
        if self._lazy_loaded:
            return
        self._lazy_loaded = True
        from . import sources  # noqa: F401

    def register(self, name: str, source_class: type) -> None:
        """Register a note source class."""
        self._sources[name] = source_class

    def create(self, name: str, params: dict | None = None) -> NoteSource:
        """Create a note source instance."""
        self._ensure_sources_loaded()
        if name not in self._sources:
            available = ", ".join(sorted(self._sources)) or "none"
            raise ValueError(
                f"Unknown note source: '{name}'. "
                f"Available sources: {available}."
            )
        try:
            return self._sources[name](**(params or {}))
        except TypeError as e:
            raise ValueError(f"Invalid parameters for note source '{name}': {e}") from e

    def list_sources(self) -> list[str]:
        """List registered source names."""
        self._ensure_sources_loaded()
        return sorted(self._sources)


# Global registry instance
# Concrete sources register themselves on import
_registry = SourceRegistry()


def get_registry() -> SourceRegistry:
    """Get the global source registry."""
    return _registry
