"""Depth-bounded directory walker using os.scandir with an explicit stack (DFS)."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from dirsnap import InvalidInputError
from dirsnap.emitter import StreamEmitter
from dirsnap.filter import PrefixFilter
from dirsnap.gitignore import is_ignored_dir, load_gitignore_spec

logger = logging.getLogger(__name__)

Emit = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class WalkOptions:
    """Options controlling walker behavior.

    Attributes:
        follow_symlinks: Descend into symlinked directories.
        sort: Visit siblings in name order instead of listing order.
        gitignore: Also prune directories ignored by the root's ``.gitignore``.
    """

    follow_symlinks: bool = False
    sort: bool = False
    gitignore: bool = False


@dataclass(frozen=True, slots=True)
class SkippedDir:
    """A directory that was reported but whose children could not be listed."""

    path: str
    error: OSError


@dataclass(slots=True)
class WalkReport:
    """Outcome of one or more walks.

    Attributes:
        emitted: Number of paths handed to the emitter.
        skipped: Directories whose listing failed.
        stopped: Whether the walk was interrupted by ``should_stop``.
    """

    emitted: int = 0
    skipped: list[SkippedDir] = field(default_factory=list)
    stopped: bool = False

    @property
    def ok(self) -> bool:
        return not self.skipped

    def merge(self, other: WalkReport) -> None:
        self.emitted += other.emitted
        self.skipped.extend(other.skipped)
        self.stopped = self.stopped or other.stopped


class EntryFilter(Protocol):
    """Protocol for entry filtering.

    Keeps walker logic decoupled from matching strategy.
    """

    def should_exclude(self, name: str, is_dir: bool) -> bool: ...


def _list_child_dirs(path: str, follow_symlinks: bool) -> list[os.DirEntry[str]]:
    """Return the directory entries directly under *path*.

    Raises:
        OSError: If *path* cannot be listed.
    """
    with os.scandir(path) as it:
        raw_entries = list(it)

    child_dirs: list[os.DirEntry[str]] = []
    for dir_entry in raw_entries:
        try:
            if dir_entry.is_dir(follow_symlinks=follow_symlinks):
                child_dirs.append(dir_entry)
        except OSError:
            logger.debug("Cannot stat: %s", dir_entry.path)
    return child_dirs


def _is_degenerate(child: str, parent_real: str) -> bool:
    """Return whether *child* resolves to its parent or to a filesystem root."""
    real = os.path.realpath(child)
    return real == parent_real or os.path.dirname(real) == real


def _iter_walk(
    root: str,
    prefix_filter: PrefixFilter,
    max_depth: int | None,
    options: WalkOptions,
    entry_filter: EntryFilter | None,
    should_stop: Callable[[], bool] | None,
    report: WalkReport,
) -> Iterator[str]:
    if not root:
        logger.debug("Empty root, nothing to walk")
        return

    root = os.path.abspath(root)
    ignore_spec = load_gitignore_spec(root) if options.gitignore else None

    # Stack items: (directory_path, remaining_budget); None means unlimited.
    # Children are pushed reversed so listing order is preserved on pop.
    stack: list[tuple[str, int | None]] = [(root, max_depth)]

    while stack:
        if should_stop is not None and should_stop():
            logger.info("Walk of %s stopped with %d directories pending", root, len(stack))
            report.stopped = True
            return

        current_dir, budget = stack.pop()
        report.emitted += 1
        yield current_dir

        if budget is not None and budget <= 0:
            continue
        child_budget = None if budget is None else budget - 1

        try:
            children = _list_child_dirs(current_dir, options.follow_symlinks)
        except OSError as exc:
            logger.warning("Cannot list %s: %s", current_dir, exc)
            report.skipped.append(SkippedDir(path=current_dir, error=exc))
            continue

        if options.sort:
            children.sort(key=lambda e: e.name)

        parent_real: str | None = None
        accepted: list[str] = []
        for dir_entry in children:
            name = dir_entry.name
            if prefix_filter.should_exclude(name, True):
                continue
            if entry_filter is not None and entry_filter.should_exclude(name, True):
                continue
            if ignore_spec is not None and is_ignored_dir(ignore_spec, root, dir_entry.path):
                continue
            # Plain subdirectories cannot resolve to their parent or to "/".
            if dir_entry.is_symlink():
                if parent_real is None:
                    parent_real = os.path.realpath(current_dir)
                if _is_degenerate(dir_entry.path, parent_real):
                    logger.debug("Skipping self or root link: %s", dir_entry.path)
                    continue
            accepted.append(dir_entry.path)

        for child in reversed(accepted):
            stack.append((child, child_budget))


def walk(
    root: str,
    forbidden: Sequence[str] = (),
    max_depth: int | None = None,
    emit: Emit | None = None,
    *,
    options: WalkOptions | None = None,
    entry_filter: EntryFilter | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> WalkReport:
    """Walk one root and emit every accepted directory in pre-order.

    The root is always emitted. A directory with a remaining budget of
    zero is emitted but not listed, so nothing deeper than ``max_depth``
    levels below the root is reported. Directories whose name starts
    with a forbidden prefix are pruned with their whole subtree.

    Listing failures are not fatal: the directory stays in the output,
    its children are skipped, a warning is logged and the failure is
    recorded in the returned report.

    Args:
        root: Directory to start from. An empty string is a no-op.
        forbidden: Name prefixes that prune a directory.
        max_depth: Depth budget. ``None`` means unlimited.
        emit: Sink for each path. Defaults to printing to stdout.
        options: Walker options. Defaults to ``WalkOptions()``.
        entry_filter: Optional extra exclude filter.
        should_stop: Polled before each directory; ``True`` ends the walk.

    Returns:
        WalkReport: Counts and non-fatal diagnostics.
    """
    sink = emit if emit is not None else StreamEmitter()
    report = WalkReport()
    for path in _iter_walk(
        root,
        PrefixFilter(forbidden),
        max_depth,
        options or WalkOptions(),
        entry_filter,
        should_stop,
        report,
    ):
        sink(path)
    return report


def walk_roots(
    roots: Sequence[str],
    forbidden: Sequence[str] = (),
    max_depth: int | None = None,
    emit: Emit | None = None,
    *,
    options: WalkOptions | None = None,
    entry_filter: EntryFilter | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> WalkReport:
    """Walk several roots in order into one emitter.

    A failure inside one root never prevents later roots from being
    walked.

    Raises:
        InvalidInputError: If ``roots`` is empty.
    """
    if not roots:
        raise InvalidInputError("No roots given")

    report = WalkReport()
    for root in roots:
        report.merge(
            walk(
                root,
                forbidden,
                max_depth,
                emit,
                options=options,
                entry_filter=entry_filter,
                should_stop=should_stop,
            )
        )
        if report.stopped:
            break
    return report


def iter_paths(
    roots: Sequence[str],
    forbidden: Sequence[str] = (),
    max_depth: int | None = None,
    *,
    options: WalkOptions | None = None,
    entry_filter: EntryFilter | None = None,
    report: WalkReport | None = None,
) -> Iterator[str]:
    """Yield directory paths for all roots lazily, in walk order.

    Pass a ``report`` to collect skipped directories while iterating.

    Raises:
        InvalidInputError: If ``roots`` is empty.
    """
    if not roots:
        raise InvalidInputError("No roots given")

    walk_report = report if report is not None else WalkReport()
    prefix_filter = PrefixFilter(forbidden)
    walk_opts = options or WalkOptions()

    def _generate() -> Iterator[str]:
        for root in roots:
            yield from _iter_walk(
                root, prefix_filter, max_depth, walk_opts, entry_filter, None, walk_report
            )

    return _generate()
