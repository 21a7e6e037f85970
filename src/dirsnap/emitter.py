"""Path sinks for the walker: print immediately or buffer for a cache commit."""

from __future__ import annotations

import sys
import threading
from typing import TextIO

from dirsnap.cache import serialize


class StreamEmitter:
    """Write each path to a text stream as soon as it is discovered."""

    def __init__(self, stream: TextIO | None = None, *, flush: bool = False) -> None:
        self._stream = stream
        self._flush = flush

    def __call__(self, path: str) -> None:
        # Resolve stdout lazily so redirected/captured streams are honored.
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(path + "\n")
        if self._flush:
            stream.flush()


class BufferEmitter:
    """Collect paths in memory, in arrival order, for a later commit.

    Appends are guarded by a lock so several walkers may share one
    buffer; ordering is then only guaranteed per root.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[str] = []

    def __call__(self, path: str) -> None:
        with self._lock:
            self._records.append(path)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def records(self) -> list[str]:
        """Return a copy of the buffered paths."""
        with self._lock:
            return list(self._records)

    def getvalue(self) -> str:
        """Return the buffered paths serialized as cache file text."""
        return serialize(self.records)
