"""
Store configuration: ``notedex.toml`` inside the store directory.

    [store]
    version = 1
    created = "2024-02-01T10:00:00+00:00"

    [source]
    name = "apple-notes"        # or "json", with path = "..."

    [index]
    name_boost = 10.0
    folder_boost = 5.0
    body_boost = 1.0

Any other keys under ``[source]`` are passed to the source as keyword
arguments. A store without a config file gets one written with defaults.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import tomli_w

from .search_index import DEFAULT_BOOSTS


CONFIG_FILENAME = "notedex.toml"
CONFIG_VERSION = 1

STORE_PATH_ENV = "NOTEDEX_STORE_PATH"
DEFAULT_STORE_DIR = ".notedex"
DEFAULT_SOURCE = "apple-notes"

_BOOST_SUFFIX = "_boost"


@dataclass
class SourceConfig:
    """Which note source to fetch from, and its constructor arguments."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class StoreConfig:
    """Everything read from (or written to) a store's notedex.toml."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    source: SourceConfig = field(default_factory=lambda: SourceConfig(DEFAULT_SOURCE))
    boosts: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_BOOSTS))

    @property
    def config_path(self) -> Path:
        return self.path / CONFIG_FILENAME

    @property
    def notes_db_path(self) -> Path:
        return self.path / "notes.db"

    @property
    def metadata_db_path(self) -> Path:
        return self.path / "metadata.db"

    def exists(self) -> bool:
        """True once the config has been written to disk."""
        return self.config_path.exists()


def get_default_store_path() -> Path:
    """
    Resolve the store directory.

    Priority:
    1. NOTEDEX_STORE_PATH environment variable
    2. ~/.notedex
    """
    env_path = os.environ.get(STORE_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.home() / DEFAULT_STORE_DIR


def create_default_config(store_path: Path) -> StoreConfig:
    return StoreConfig(path=store_path)


def _parse_source(section: dict[str, Any]) -> SourceConfig:
    params = dict(section)
    name = params.pop("name", DEFAULT_SOURCE)
    return SourceConfig(name=name, params=params)


def _parse_boosts(section: dict[str, Any], origin: Path) -> dict[str, float]:
    """Field boosts from ``<field>_boost`` keys, over the defaults."""
    boosts = dict(DEFAULT_BOOSTS)
    for key, value in section.items():
        if not key.endswith(_BOOST_SUFFIX):
            continue
        field_name = key[: -len(_BOOST_SUFFIX)]
        if field_name not in DEFAULT_BOOSTS:
            raise ValueError(f"Unknown index field in {origin}: {field_name!r}")
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ValueError(
                f"Boost for {field_name!r} in {origin} must be a non-negative number, "
                f"got {value!r}"
            )
        boosts[field_name] = float(value)
    return boosts


def load_config(store_path: Path) -> StoreConfig:
    """
    Read notedex.toml from a store directory.

    Raises:
        FileNotFoundError: If the store has no config file
        ValueError: If the file is not valid TOML, is from a newer
            notedex, or has a bad boost
    """
    config_path = store_path / CONFIG_FILENAME
    if not config_path.exists():
        raise FileNotFoundError(f"No {CONFIG_FILENAME} in {store_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid config {config_path}: {e}") from e

    store_section = data.get("store", {})
    version = store_section.get("version", CONFIG_VERSION)
    if version > CONFIG_VERSION:
        raise ValueError(
            f"{config_path} has version {version}; this notedex reads up to {CONFIG_VERSION}"
        )

    return StoreConfig(
        path=store_path,
        version=version,
        created=store_section.get("created", ""),
        source=_parse_source(data.get("source", {})),
        boosts=_parse_boosts(data.get("index", {}), config_path),
    )


def save_config(config: StoreConfig) -> None:
    """Write notedex.toml, creating the store directory if needed."""
    config.path.mkdir(parents=True, exist_ok=True)
    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "source": {"name": config.source.name, **config.source.params},
        "index": {
            f"{name}{_BOOST_SUFFIX}": boost for name, boost in config.boosts.items()
        },
    }
    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Optional[Path] = None) -> StoreConfig:
    """
    Load a store's config, writing a default one on first use.

    Args:
        store_path: Store directory; resolved from the environment if None
    """
    if store_path is None:
        store_path = get_default_store_path()
    if (store_path / CONFIG_FILENAME).exists():
        return load_config(store_path)

    config = create_default_config(store_path)
    save_config(config)
    return config
