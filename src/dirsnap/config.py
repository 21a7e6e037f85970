"""Configuration: defaults, optional JSON config file, and cache location.

Values are resolved with CLI arguments taking precedence over the
config file, and the config file over built-in defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from platformdirs import user_cache_dir, user_config_dir

from dirsnap import InvalidInputError

logger = logging.getLogger(__name__)

APP_NAME = "dirsnap"
CACHE_FILENAME = "dirs.txt"
CONFIG_FILENAME = "config.json"
CACHE_ENV_VAR = "DIRSNAP_CACHE"
CONFIG_ENV_VAR = "DIRSNAP_CONFIG"
DEFAULT_INTERVAL = 300.0


def default_cache_path() -> Path:
    """Return the cache file location for this platform.

    ``$DIRSNAP_CACHE`` overrides the platform cache directory.
    """
    override = os.environ.get(CACHE_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path(user_cache_dir(APP_NAME, appauthor=False)) / CACHE_FILENAME


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME


@dataclass(frozen=True, slots=True)
class DirsnapConfig:
    """Resolved settings for walks and cache refreshes.

    Attributes:
        roots: Directories to walk.
        forbidden: Directory name prefixes to prune.
        max_depth: Depth budget per root. ``None`` means unlimited.
        cache_path: Snapshot file location.
        interval: Seconds between background refreshes.
        gitignore: Also prune directories ignored by each root's ``.gitignore``.
        follow_symlinks: Descend into symlinked directories.
        sort: Visit siblings in name order instead of listing order.
    """

    roots: tuple[str, ...] = ()
    forbidden: tuple[str, ...] = ()
    max_depth: int | None = None
    cache_path: Path | None = None
    interval: float = DEFAULT_INTERVAL
    gitignore: bool = False
    follow_symlinks: bool = False
    sort: bool = False

    def __post_init__(self) -> None:
        if self.max_depth is not None and self.max_depth < 0:
            raise InvalidInputError("Invalid depth, must be 0 or greater.")
        if self.interval <= 0:
            raise InvalidInputError("Refresh interval must be positive.")

    @property
    def resolved_cache_path(self) -> Path:
        return self.cache_path if self.cache_path is not None else default_cache_path()

    def merged(self, **overrides: Any) -> DirsnapConfig:
        """Return a copy with every non-``None`` override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


_FIELD_NAMES = frozenset(f.name for f in fields(DirsnapConfig))


def _coerce(data: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(data) - _FIELD_NAMES)
    if unknown:
        raise InvalidInputError(f"Unknown config keys: {', '.join(unknown)}")

    values = dict(data)
    for key in ("roots", "forbidden"):
        if key in values:
            items = values[key]
            if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
                raise InvalidInputError(f"Config key '{key}' must be a list of strings")
            values[key] = tuple(items)
    if "max_depth" in values and values["max_depth"] is not None:
        if not isinstance(values["max_depth"], int) or isinstance(values["max_depth"], bool):
            raise InvalidInputError("Config key 'max_depth' must be an integer")
    if "interval" in values:
        if not isinstance(values["interval"], (int, float)) or isinstance(values["interval"], bool):
            raise InvalidInputError("Config key 'interval' must be a number")
        values["interval"] = float(values["interval"])
    if values.get("cache_path") is not None:
        values["cache_path"] = Path(str(values["cache_path"])).expanduser()
    for key in ("gitignore", "follow_symlinks", "sort"):
        if key in values and not isinstance(values[key], bool):
            raise InvalidInputError(f"Config key '{key}' must be true or false")
    return values


def load_config_file(path: Path | None = None) -> DirsnapConfig:
    """Load settings from a JSON config file.

    A missing file yields the defaults.

    Args:
        path: Config file. Defaults to the platform config directory.

    Returns:
        DirsnapConfig: Settings from the file.

    Raises:
        InvalidInputError: If the file is unreadable, malformed, or holds
            unknown keys or wrongly typed values.
    """
    config_path = path if path is not None else default_config_path()
    try:
        text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No config file at %s", config_path)
        return DirsnapConfig()
    except OSError as e:
        raise InvalidInputError(f"Cannot read config file '{config_path}': {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"Invalid JSON in config file '{config_path}': {e}") from e
    if not isinstance(data, dict):
        raise InvalidInputError(f"Config file '{config_path}' must hold a JSON object")

    logger.debug("Loaded config from %s", config_path)
    return DirsnapConfig(**_coerce(data))
