"""Ghost trail projection of older snapshots.

Deliberately cheaper than aggregation: no sorting, no running depth, no
center price. Ghosts are non-interactive background context.
"""

from __future__ import annotations

from typing import Iterable

from .depth import parse_levels
from ..types import GhostSnapshot, RawSnapshot


def project_snapshot(snapshot: RawSnapshot, quantity_threshold: float) -> GhostSnapshot:
    return GhostSnapshot(
        timestamp_ms=snapshot.timestamp_ms,
        bids=tuple(parse_levels(snapshot.bids, quantity_threshold)),
        asks=tuple(parse_levels(snapshot.asks, quantity_threshold)),
    )


def project(history: Iterable[RawSnapshot], quantity_threshold: float = 0.0) -> tuple[GhostSnapshot, ...]:
    """Project snapshots in the order given (newest to oldest from the buffer)."""
    return tuple(project_snapshot(snap, quantity_threshold) for snap in history)
