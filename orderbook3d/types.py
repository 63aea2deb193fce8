"""
Data types for the order book pipeline.

Performance notes:
- Using NamedTuple for immutable, memory-efficient structures
- Sequences are tuples so a published ViewModel can be shared without copying
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple


class RateClass(str, Enum):
    """User-selected aggregation label. Selects a feed update speed only."""
    REALTIME = "realtime"
    ONE_MIN = "1min"
    FIVE_MIN = "5min"
    FIFTEEN_MIN = "15min"
    ONE_HOUR = "1hr"

    @property
    def update_speed(self) -> str:
        """Binance depth stream update speed for this tier."""
        return _UPDATE_SPEEDS[self]


# 5min/15min/1hr share the slowest tier; there is no time bucketing behind them
_UPDATE_SPEEDS = {
    RateClass.REALTIME: "100ms",
    RateClass.ONE_MIN: "500ms",
    RateClass.FIVE_MIN: "1000ms",
    RateClass.FIFTEEN_MIN: "1000ms",
    RateClass.ONE_HOUR: "1000ms",
}


class RawSnapshot(NamedTuple):
    """
    One depth message as delivered by the feed.

    Prices and quantities stay as decimal strings; order is not guaranteed.
    """
    bids: tuple[tuple[str, str], ...]
    asks: tuple[tuple[str, str], ...]
    timestamp_ms: int


class Level(NamedTuple):
    """Single price level from a snapshot."""
    price: float
    quantity: float


class CumulativeLevel(NamedTuple):
    """Price level annotated with running depth from the best price outward."""
    price: float
    quantity: float
    cumulative_quantity: float


class DepthLadders(NamedTuple):
    """Result of a successful aggregation of the newest snapshot."""
    center_price: float
    bids: tuple[CumulativeLevel, ...]  # Descending price (best bid first)
    asks: tuple[CumulativeLevel, ...]  # Ascending price (best ask first)


class GhostSnapshot(NamedTuple):
    """Older snapshot projected for fading historical context."""
    timestamp_ms: int
    bids: tuple[Level, ...]
    asks: tuple[Level, ...]


class ViewModel(NamedTuple):
    """
    Complete derived state for rendering.

    Replaced wholesale on every recomputation. A model with
    center_price=None is the insufficient-data state: renderers show a
    loading/empty view for it.
    """
    center_price: float | None
    pressure_zones: frozenset[float]
    latest_bids: tuple[CumulativeLevel, ...]
    latest_asks: tuple[CumulativeLevel, ...]
    highlighted_price: float | None
    ghost_snapshots: tuple[GhostSnapshot, ...]

    @property
    def has_data(self) -> bool:
        return self.center_price is not None

    @classmethod
    def empty(cls, highlighted_price: float | None = None) -> ViewModel:
        return cls(None, frozenset(), (), (), highlighted_price, ())
