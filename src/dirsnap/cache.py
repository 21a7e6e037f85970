"""Snapshot cache file: bootstrap, atomic commit, and read-back.

A snapshot is newline-delimited UTF-8 text, one absolute directory path
per line, in discovery order. Names that are not valid UTF-8 are stored
as their original bytes. Commits write a temporary file next to
the target and ``os.replace()`` it into place, so a concurrent reader
always opens either the complete old snapshot or the complete new one.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Iterable
from pathlib import Path
from tempfile import NamedTemporaryFile

from dirsnap import CacheNotFoundError, CacheReadError, CacheWriteError

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
# Undecodable bytes in directory names survive as lone surrogates.
ERRORS = "surrogateescape"
DEFAULT_MODE = 0o644


def serialize(records: Iterable[str]) -> str:
    """Render path records as cache file text.

    Records are not escaped, so a name containing a newline is written as
    two lines.
    """
    lines = list(records)
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def ensure_exists(path: str | os.PathLike[str]) -> Path:
    """Create an empty cache file if none exists. Never truncates.

    Raises:
        CacheWriteError: If the file or its parent cannot be created.
    """
    cache_path = Path(path)
    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheWriteError(f"Cannot create cache directory for '{cache_path}': {e}") from e

    try:
        # "x" fails on an existing file instead of truncating it.
        with open(cache_path, "x", encoding=ENCODING):
            pass
        logger.info("Created empty cache file %s", cache_path)
    except FileExistsError:
        pass
    except OSError as e:
        raise CacheWriteError(f"Cannot create cache file '{cache_path}': {e}") from e
    return cache_path


def _discard(tmp_path: Path | None) -> None:
    if tmp_path is not None and tmp_path.exists():
        tmp_path.unlink()


def _target_mode(cache_path: Path) -> int:
    """Permission bits the committed file should carry."""
    try:
        return stat.S_IMODE(cache_path.stat().st_mode)
    except FileNotFoundError:
        return DEFAULT_MODE


def commit(records: Iterable[str], path: str | os.PathLike[str]) -> Path:
    """Atomically replace the cache file with *records*.

    The content is written to a temporary file in the same directory,
    flushed to disk, then renamed over the target. The temporary file
    takes over the permission bits of the file it replaces. If the
    temporary file cannot be written it is removed, also when the write
    is interrupted; if the rename itself fails it is left in place for
    inspection. Either way the previous snapshot stays intact.

    Args:
        records: Path records in the order they should be stored.
        path: Target cache file.

    Returns:
        Path where the snapshot was committed.

    Raises:
        CacheWriteError: If the snapshot could not be committed.
    """
    cache_path = Path(path)

    tmp_path: Path | None = None
    try:
        data = serialize(records).encode(ENCODING, errors=ERRORS)
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(
            mode="wb",
            dir=cache_path.parent,
            prefix=f".{cache_path.name}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_path = Path(f.name)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, _target_mode(cache_path))
    except (OSError, UnicodeError) as e:
        _discard(tmp_path)
        raise CacheWriteError(f"Cannot write snapshot for '{cache_path}': {e}") from e
    except BaseException:
        _discard(tmp_path)
        raise

    try:
        os.replace(tmp_path, cache_path)
    except OSError as e:
        logger.error("Rename of %s onto %s failed; temporary file kept", tmp_path, cache_path)
        raise CacheWriteError(
            f"Cannot replace '{cache_path}': {e}", tmp_path=tmp_path
        ) from e

    logger.debug("Committed %d bytes to %s", len(data), cache_path)
    return cache_path


def read_cache(path: str | os.PathLike[str]) -> str:
    """Return the full content of the current snapshot.

    Raises:
        CacheNotFoundError: If the cache file does not exist.
        CacheReadError: If it exists but cannot be read.
    """
    cache_path = Path(path)
    try:
        return cache_path.read_text(encoding=ENCODING, errors=ERRORS)
    except FileNotFoundError as e:
        raise CacheNotFoundError(f"Cache file '{cache_path}' does not exist") from e
    except OSError as e:
        raise CacheReadError(f"Cannot read cache file '{cache_path}': {e}") from e


def read_paths(path: str | os.PathLike[str]) -> list[str]:
    """Return the current snapshot as a list of path records.

    The format is one record per line. A directory whose name contains
    a newline therefore reads back as two separate records.
    """
    lines = read_cache(path).split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


class CacheStore:
    """Cache operations bound to one cache file path."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"CacheStore({str(self.path)!r})"

    def exists(self) -> bool:
        return self.path.is_file()

    def ensure_exists(self) -> Path:
        return ensure_exists(self.path)

    def commit(self, records: Iterable[str]) -> Path:
        return commit(records, self.path)

    def read(self) -> str:
        return read_cache(self.path)

    def read_paths(self) -> list[str]:
        return read_paths(self.path)
