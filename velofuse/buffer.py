"""Thread-safe sliding time window of timestamped records."""
import logging
import threading
from collections import deque
from typing import Deque, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SlidingWindowBuffer(Generic[T]):
    """
    Append-only buffer of records carrying a ``t`` attribute.

    Records older than the horizon are evicted on ``prune``. Eviction is a
    plain predicate over the buffer, not a time-indexed lookup.
    """

    def __init__(self, horizon: float):
        """
        Args:
            horizon: Window length, in the same unit as the record timestamps
        """
        self.horizon = horizon
        self.lock = threading.Lock()
        self.ring: Deque[T] = deque()

    def __len__(self) -> int:
        with self.lock:
            return len(self.ring)

    def push(self, record: T) -> None:
        """Add a record to the buffer."""
        with self.lock:
            self.ring.append(record)

    def prune(self, now: float) -> int:
        """
        Keep only records with ``now - t <= horizon``.

        Returns:
            Number of evicted records
        """
        with self.lock:
            before = len(self.ring)
            self.ring = deque(r for r in self.ring if now - r.t <= self.horizon)
            evicted = before - len(self.ring)
        if evicted:
            logger.debug("Pruned %d records older than %s", evicted, now - self.horizon)
        return evicted

    def snapshot(self) -> List[T]:
        """Copy of the buffered records in insertion order."""
        with self.lock:
            return list(self.ring)

    def latest(self) -> Optional[T]:
        """Newest record, or None if empty."""
        with self.lock:
            return self.ring[-1] if self.ring else None

    def clear(self) -> None:
        """Drop every buffered record."""
        with self.lock:
            self.ring.clear()
