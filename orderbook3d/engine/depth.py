"""
Cumulative depth aggregation for the newest snapshot.

HOT PATH: aggregate() runs on every recomputation of the view model.

Performance strategy:
1. Parse and filter in a single pass over the raw string pairs
2. Stable sort on price only (duplicate prices keep feed order)
3. Running depth via numpy cumsum instead of a Python accumulator loop
"""

from __future__ import annotations

from operator import attrgetter
from typing import Iterable

import numpy as np

from ..types import CumulativeLevel, DepthLadders, Level, RawSnapshot

_by_price = attrgetter('price')


def parse_levels(raw_levels: Iterable[tuple[str, str]], quantity_threshold: float) -> list[Level]:
    """
    Parse [price, qty] string pairs and keep levels with qty >= threshold.

    Feed order is preserved.
    """
    result: list[Level] = []
    for price_str, qty_str in raw_levels:
        qty = float(qty_str)
        if qty >= quantity_threshold:
            result.append(Level(float(price_str), qty))
    return result


def build_ladder(levels: list[Level], descending: bool) -> tuple[CumulativeLevel, ...]:
    """Sort one side from the best price outward and attach running depth."""
    ordered = sorted(levels, key=_by_price, reverse=descending)
    if not ordered:
        return ()

    quantities = np.fromiter((lvl.quantity for lvl in ordered), dtype=np.float64, count=len(ordered))
    cumulative = np.cumsum(quantities).tolist()

    return tuple(
        CumulativeLevel(lvl.price, lvl.quantity, cum)
        for lvl, cum in zip(ordered, cumulative)
    )


def aggregate(snapshot: RawSnapshot, quantity_threshold: float = 0.0) -> DepthLadders | None:
    """
    Build bid/ask ladders and the center price from one snapshot.

    Returns None when either side is empty after filtering: the view needs
    a two-sided book to be centered.
    """
    bids = parse_levels(snapshot.bids, quantity_threshold)
    asks = parse_levels(snapshot.asks, quantity_threshold)
    if not bids or not asks:
        return None

    bid_ladder = build_ladder(bids, descending=True)
    ask_ladder = build_ladder(asks, descending=False)

    center_price = (bid_ladder[0].price + ask_ladder[0].price) / 2.0

    return DepthLadders(center_price, bid_ladder, ask_ladder)
