"""
Bounded snapshot history, newest first.

HOT PATH: push() is called for every depth message (up to 10x per second).

Performance strategy:
1. deque(maxlen) gives O(1) prepend with automatic eviction of the oldest
2. Reads hand out tuple copies, so callers never see a later push
3. A generation counter lets consumers detect new data without comparing snapshots
"""

from __future__ import annotations

from collections import deque
from itertools import islice

from ..types import RawSnapshot

MAX_HISTORY_LENGTH = 100


class HistoryBuffer:
    """
    Ring buffer of raw snapshots, newest at index 0.

    Thread-safety: NOT thread-safe. Designed for single-threaded async use.
    """

    __slots__ = ('capacity', '_snapshots', '_generation')

    def __init__(self, capacity: int = MAX_HISTORY_LENGTH) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._snapshots: deque[RawSnapshot] = deque(maxlen=capacity)
        self._generation: int = 0

    def push(self, snapshot: RawSnapshot) -> None:
        """Prepend a snapshot; the oldest one drops out past capacity."""
        self._snapshots.appendleft(snapshot)
        self._generation += 1

    def reset(self) -> None:
        """Drop all snapshots (subscription key changed)."""
        self._snapshots.clear()
        self._generation += 1

    @property
    def generation(self) -> int:
        """Changes on every push and reset."""
        return self._generation

    def latest(self) -> RawSnapshot | None:
        return self._snapshots[0] if self._snapshots else None

    def older(self) -> tuple[RawSnapshot, ...]:
        """All snapshots except the newest, newest-to-oldest."""
        return tuple(islice(self._snapshots, 1, None))

    def snapshots(self) -> tuple[RawSnapshot, ...]:
        return tuple(self._snapshots)

    def __len__(self) -> int:
        return len(self._snapshots)
