"""Snapshot refresh: one-shot builds and a background refresh loop."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Sequence
from pathlib import Path

from dirsnap import CacheWriteError
from dirsnap.cache import CacheStore
from dirsnap.config import DirsnapConfig
from dirsnap.emitter import BufferEmitter
from dirsnap.walker import WalkOptions, WalkReport, walk_roots

logger = logging.getLogger(__name__)


def walk_options_for(config: DirsnapConfig) -> WalkOptions:
    return WalkOptions(
        follow_symlinks=config.follow_symlinks,
        sort=config.sort,
        gitignore=config.gitignore,
    )


class RefreshScheduler:
    """Rebuild the snapshot for configured roots, once or periodically.

    At most one refresh runs at a time. Readers never wait on a refresh:
    they keep seeing the previously committed snapshot until the new
    one is renamed into place.

    Args:
        config: Roots, pruning, depth, cache path and interval.
        store: Cache store to commit into. Defaults to one bound to
            ``config.resolved_cache_path``.
    """

    def __init__(self, config: DirsnapConfig, *, store: CacheStore | None = None) -> None:
        self._config = config
        self._store = store if store is not None else CacheStore(config.resolved_cache_path)
        self._refresh_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._cycles = 0
        self._last_error: Exception | None = None

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def cycles(self) -> int:
        """Number of snapshots committed so far."""
        return self._cycles

    @property
    def last_error(self) -> Exception | None:
        """Error of the most recent background cycle, ``None`` if it succeeded."""
        return self._last_error

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def refresh_once(self) -> WalkReport:
        """Walk all roots and commit the result as the new snapshot.

        Directories that cannot be listed do not block the commit; the
        snapshot then holds everything that was reachable. A stop
        request seen during the walk aborts before commit and keeps the
        previous snapshot.

        Returns:
            WalkReport: Walk counts and skipped directories.

        Raises:
            InvalidInputError: If no roots are configured.
            CacheWriteError: If the snapshot could not be committed.
        """
        with self._refresh_lock:
            buffer = BufferEmitter()
            report = walk_roots(
                self._config.roots,
                self._config.forbidden,
                self._config.max_depth,
                buffer,
                options=walk_options_for(self._config),
                should_stop=self._stop_event.is_set,
            )
            if report.stopped:
                logger.info("Refresh stopped before commit; previous snapshot kept")
                return report

            if report.skipped:
                logger.warning(
                    "Committing partial snapshot: %d directories could not be listed",
                    len(report.skipped),
                )
            try:
                self._store.commit(buffer.records)
            except CacheWriteError:
                logger.error("Refresh of %s failed; previous snapshot kept", self._store.path)
                raise

            self._cycles += 1
            logger.info("Committed %d directories to %s", len(buffer), self._store.path)
            return report

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.refresh_once()
                self._last_error = None
            except Exception as exc:
                # One failed cycle must not end the loop.
                self._last_error = exc
                logger.exception("Background refresh failed")
            if self._stop_event.wait(self._config.interval):
                break
        logger.debug("Refresh loop exited")

    def start(self) -> None:
        """Start refreshing in a daemon thread: now, then every interval."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="dirsnap-refresh",
            daemon=True,
        )
        self._thread.start()
        logger.info("Refreshing %s every %.0fs", self._store.path, self._config.interval)

    def stop(self, timeout: float | None = None) -> None:
        """Ask the loop to stop and wait for it.

        An in-flight walk aborts before commit, so the snapshot on disk
        is never left half-written.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Refresh thread did not stop within %ss", timeout)
            else:
                self._thread = None

    def run_forever(self) -> None:
        """Run the refresh loop in the calling thread until :meth:`stop`.

        Returns at once if :meth:`stop` was already called, including from
        another thread before this loop got going.
        """
        try:
            self._run()
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping refresh loop")
            self._stop_event.set()


def refresh_cache(
    roots: Sequence[str],
    forbidden: Sequence[str] = (),
    max_depth: int | None = None,
    cache_path: str | os.PathLike[str] | None = None,
    *,
    options: WalkOptions | None = None,
) -> WalkReport:
    """Build the snapshot for *roots* now and commit it to *cache_path*.

    Raises:
        InvalidInputError: If ``roots`` is empty or ``max_depth`` negative.
        CacheWriteError: If the snapshot could not be committed.
    """
    walk_opts = options or WalkOptions()
    config = DirsnapConfig(
        roots=tuple(roots),
        forbidden=tuple(forbidden),
        max_depth=max_depth,
        cache_path=None if cache_path is None else Path(cache_path),
        gitignore=walk_opts.gitignore,
        follow_symlinks=walk_opts.follow_symlinks,
        sort=walk_opts.sort,
    )
    return RefreshScheduler(config).refresh_once()
