"""Named bundles of forbidden prefixes, selected with ``--preset``.

Every bundle is combined with the version-control directories in
:data:`VCS_PREFIXES`, which a directory snapshot never wants.
"""

from __future__ import annotations

from typing import Final

from dirsnap import InvalidInputError

VCS_PREFIXES: Final = (".git", ".hg", ".svn")

PRESETS: Final[dict[str, tuple[str, ...]]] = {
    "python": (
        "__pycache__", ".venv", "venv", ".tox",
        ".pytest_cache", ".mypy_cache", "build", "dist",
    ),
    "node": ("node_modules", ".next", ".cache", "coverage", "dist"),
    "rust": ("target",),
    "generic": VCS_PREFIXES,
}


def get_preset_prefixes(name: str) -> list[str]:
    """Forbidden prefixes for preset *name*, VCS directories first.

    Raises:
        InvalidInputError: For an unknown preset name.
    """
    try:
        extra = PRESETS[name]
    except KeyError:
        raise InvalidInputError(
            f"Unknown preset '{name}'. Known presets: {', '.join(sorted(PRESETS))}"
        ) from None
    return list(dict.fromkeys(VCS_PREFIXES + extra))
