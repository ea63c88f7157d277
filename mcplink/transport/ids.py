"""Request id allocation."""

from __future__ import annotations

import itertools
import threading


class IdAllocator:
    """Strictly increasing request ids starting at 1, unique across threads."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            return next(self._counter)
