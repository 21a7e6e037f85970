"""Directory pruning: forbidden-prefix matching."""

from __future__ import annotations

from collections.abc import Iterable, Sequence


def is_allowed(name: str, forbidden: Sequence[str]) -> bool:
    """Return whether *name* passes the forbidden-prefix list.

    Matching is a literal, case-sensitive prefix test. There is no
    globbing; ``"*"`` only matches names that start with ``*``.

    Args:
        name: Directory base name.
        forbidden: Prefixes that prune a directory.

    Returns:
        bool: ``False`` when any prefix starts *name*, else ``True``.
    """
    for prefix in forbidden:
        if name.startswith(prefix):
            return False
    return True


class PrefixFilter:
    """Filter entries by forbidden name prefixes.

    Implements ``-f PREFIX`` pruning behavior.
    """

    def __init__(self, prefixes: Iterable[str] | None = None) -> None:
        # Duplicates are harmless but cost a startswith() each.
        self._prefixes: tuple[str, ...] = tuple(dict.fromkeys(prefixes or ()))

    @property
    def prefixes(self) -> tuple[str, ...]:
        return self._prefixes

    def should_exclude(self, name: str, is_dir: bool) -> bool:
        """Return whether an entry should be pruned.

        Args:
            name: Entry name.
            is_dir: Whether the entry is a directory.

        Returns:
            bool: ``True`` when any configured prefix matches.
        """
        return not is_allowed(name, self._prefixes)
