"""dirsnap — depth-bounded directory listing with a refreshable snapshot cache."""

from __future__ import annotations

from pathlib import Path

__version__ = "0.1.0"


class DirsnapError(Exception):
    """User-facing error.

    Raised for invalid arguments, unusable cache files, and other
    conditions the CLI reports to the user. The message is printed to
    stderr and the process exits with code 1.
    """


class InvalidInputError(DirsnapError, ValueError):
    """Invalid roots, depth, preset, or configuration."""


class CacheError(DirsnapError):
    """Base class for cache file problems."""


class CacheNotFoundError(CacheError):
    """The cache file does not exist (the snapshot was never built)."""


class CacheReadError(CacheError):
    """The cache file exists but cannot be read."""


class CacheWriteError(CacheError):
    """A snapshot could not be committed.

    The previously committed snapshot is left untouched. ``tmp_path`` is
    set when the temporary file had to be left behind.
    """

    def __init__(self, message: str, tmp_path: Path | None = None) -> None:
        super().__init__(message)
        self.tmp_path = tmp_path
