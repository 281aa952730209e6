from __future__ import annotations

import time
from threading import Lock
from typing import Callable, Dict


class ProcessedIds:
    """
    Message ids already passed through the pipeline, with time-windowed eviction.

    An id only needs remembering while the monitor can still list it, so entries
    older than the retention window are pruned. Nothing is persisted.
    """

    def __init__(self, retention_s: float, clock: Callable[[], float] = time.monotonic):
        self._retention_s = retention_s
        self._clock = clock
        self._lock = Lock()
        self._seen_at: Dict[str, float] = {}

    def __contains__(self, message_id: object) -> bool:
        with self._lock:
            return message_id in self._seen_at

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen_at)

    def add(self, message_id: str) -> None:
        with self._lock:
            self._seen_at[message_id] = self._clock()

    def prune(self) -> int:
        """Drop entries older than the retention window. Returns how many were dropped."""
        cutoff = self._clock() - self._retention_s
        with self._lock:
            expired = [mid for mid, seen in self._seen_at.items() if seen < cutoff]
            for mid in expired:
                del self._seen_at[mid]
        return len(expired)
