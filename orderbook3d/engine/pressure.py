"""
Pressure zone detection: the price levels carrying the most standing quantity.
"""

from __future__ import annotations

from itertools import chain
from typing import Sequence

from ..types import CumulativeLevel

DEFAULT_PRESSURE_LEVELS = 5


def _rank(level: CumulativeLevel) -> tuple[float, float]:
    # Raw quantity descending; equal quantities go to the lower price first
    return (-level.quantity, level.price)


def detect(
    bids: Sequence[CumulativeLevel],
    asks: Sequence[CumulativeLevel],
    k: int = DEFAULT_PRESSURE_LEVELS,
) -> frozenset[float]:
    """
    Return the prices of the top-k levels by raw (non-cumulative) quantity.

    Both sides compete in one ranking. Fewer than k prices come back when
    the book is shallow or the same price appears on both sides.
    """
    if k <= 0:
        return frozenset()
    ranked = sorted(chain(bids, asks), key=_rank)
    return frozenset(level.price for level in ranked[:k])
