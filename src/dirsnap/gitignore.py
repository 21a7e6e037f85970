"""Gitignore integration: prune directories ignored by a root's .gitignore."""

from __future__ import annotations

import logging
import os

from pathspec import GitIgnoreSpec

logger = logging.getLogger(__name__)


def load_gitignore_spec(root: str | os.PathLike[str]) -> GitIgnoreSpec | None:
    """Load .gitignore patterns from *root* directory.

    Args:
        root: Directory containing the ``.gitignore`` file.

    Returns:
        A compiled spec when a ``.gitignore`` exists and is readable,
        otherwise ``None``.
    """
    gitignore_path = os.path.join(root, ".gitignore")
    try:
        with open(gitignore_path, encoding="utf-8") as fh:
            lines = fh.read().splitlines()
    except OSError:
        logger.debug("Cannot read .gitignore: %s", gitignore_path)
        return None
    return GitIgnoreSpec.from_lines(lines)


def is_ignored_dir(spec: GitIgnoreSpec, root: str, path: str) -> bool:
    """Return whether directory *path* under *root* is matched by *spec*."""
    rel = os.path.relpath(path, root)
    if rel == "." or rel.startswith(".."):
        return False
    # Trailing slash so directory-only patterns ("build/") apply.
    return spec.match_file(rel.replace(os.sep, "/") + "/")
