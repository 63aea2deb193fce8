"""Session settings for one pipeline instance."""

from __future__ import annotations

from dataclasses import dataclass, replace

from .datafeed.history import MAX_HISTORY_LENGTH
from .engine.pressure import DEFAULT_PRESSURE_LEVELS
from .types import RateClass

# Symbols offered by the viewer; any other lowercase symbol is still accepted
SUPPORTED_SYMBOLS = ("btcusdt", "ethusdt", "bnbusdt", "solusdt")
DEFAULT_SYMBOL = SUPPORTED_SYMBOLS[0]


@dataclass(frozen=True)
class PipelineSettings:
    symbol: str = DEFAULT_SYMBOL
    rate_class: RateClass = RateClass.REALTIME
    quantity_threshold: float = 0.0
    show_pressure_zones: bool = True
    search_price: str = ""
    history_capacity: int = MAX_HISTORY_LENGTH
    pressure_levels: int = DEFAULT_PRESSURE_LEVELS

    def __post_init__(self) -> None:
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, 'symbol', self.symbol.strip().lower())
        object.__setattr__(self, 'rate_class', RateClass(self.rate_class))
        if not self.symbol:
            raise ValueError("symbol must not be empty")
        if self.quantity_threshold < 0:
            raise ValueError(f"quantity_threshold must be >= 0, got {self.quantity_threshold}")
        if self.history_capacity < 1:
            raise ValueError(f"history_capacity must be positive, got {self.history_capacity}")

    @property
    def subscription_key(self) -> tuple[str, RateClass]:
        return (self.symbol, self.rate_class)

    def with_changes(self, **changes) -> PipelineSettings:
        return replace(self, **changes)
