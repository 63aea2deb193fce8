"""
View model assembly and the per-session order book pipeline.

Flow:
    DepthSubscription -> HistoryBuffer -> aggregate + detect + project
    -> ViewModel -> listeners (renderer, host panel)

Recomputation is memoized on (history generation, threshold, pressure toggle,
search text). Reading the model or re-rendering never triggers aggregation.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Sequence

from . import ghosts, pressure
from .depth import aggregate
from ..config import PipelineSettings
from ..datafeed.binance_client import DepthStreamConnector, DepthSubscription
from ..datafeed.history import HistoryBuffer
from ..errors import FeedError
from ..types import RateClass, RawSnapshot, ViewModel

logger = logging.getLogger(__name__)

ViewListener = Callable[[ViewModel], None]
PressureListener = Callable[[frozenset[float]], None]


def parse_search_price(text: str | None) -> float | None:
    """
    Highlight price from free-form user input.

    Empty, unparseable, non-finite and zero input all mean "no highlight".
    The whole string must be a number: "101abc" is rejected, not read as 101.
    """
    if not text:
        return None
    try:
        value = float(text.strip())
    except ValueError:
        return None
    if not math.isfinite(value) or value == 0:
        return None
    return value


def assemble(
    history: Sequence[RawSnapshot],
    quantity_threshold: float = 0.0,
    show_pressure_zones: bool = True,
    search_price_text: str | None = "",
    pressure_levels: int = pressure.DEFAULT_PRESSURE_LEVELS,
) -> ViewModel:
    """
    Build one ViewModel from a newest-first history.

    Returns the insufficient-data model (has_data False) when the history is
    empty or the newest snapshot is one-sided after filtering.
    """
    highlighted_price = parse_search_price(search_price_text)
    if not history:
        return ViewModel.empty(highlighted_price)

    ladders = aggregate(history[0], quantity_threshold)
    if ladders is None:
        return ViewModel.empty(highlighted_price)

    if show_pressure_zones:
        zones = pressure.detect(ladders.bids, ladders.asks, pressure_levels)
    else:
        zones = frozenset()

    return ViewModel(
        center_price=ladders.center_price,
        pressure_zones=zones,
        latest_bids=ladders.bids,
        latest_asks=ladders.asks,
        highlighted_price=highlighted_price,
        ghost_snapshots=ghosts.project(history[1:], quantity_threshold),
    )


class OrderBookPipeline:
    """
    One live order book session for a (symbol, rate class) pair.

    Owns the subscription, the history buffer and the current ViewModel.
    Listeners are called synchronously on the event loop after each
    recomputation.

    Thread-safety: NOT thread-safe. Designed for single-threaded async use.
    """

    def __init__(
        self,
        settings: PipelineSettings | None = None,
        connector: DepthStreamConnector | None = None,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self.connector = connector or DepthStreamConnector(on_error=self.report_error)
        self.history = HistoryBuffer(self.settings.history_capacity)

        self._subscription: DepthSubscription | None = None
        self._running = False

        self._view_listeners: list[ViewListener] = []
        self._pressure_listeners: list[PressureListener] = []

        self._view_model = ViewModel.empty(parse_search_price(self.settings.search_price))
        self._last_key: tuple | None = None

        self.last_error: FeedError | None = None
        self.recompute_count: int = 0

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def subscription(self) -> DepthSubscription | None:
        return self._subscription

    def start(self) -> None:
        """Open the feed for the current key. Requires a running event loop."""
        if self._running:
            return
        self._running = True
        self._open()

    def stop(self) -> None:
        """Close the feed. History and the last model are kept."""
        self._running = False
        self._close()

    async def aclose(self) -> None:
        subscription = self._subscription
        self.stop()
        if subscription is not None:
            await subscription.wait_closed()

    def _open(self) -> None:
        symbol, rate_class = self.settings.subscription_key
        self._subscription = self.connector.open(symbol, rate_class, self._on_snapshot)

    def _close(self) -> None:
        self.connector.close(self._subscription)
        self._subscription = None

    def set_subscription(self, symbol: str, rate_class: RateClass | str) -> None:
        """
        Switch to a new (symbol, rate class).

        The old subscription is closed and history cleared before the new
        one opens, so no message from the old feed can land in the new history.
        """
        new_settings = self.settings.with_changes(symbol=symbol, rate_class=rate_class)
        if new_settings.subscription_key == self.settings.subscription_key:
            return

        logger.info(
            "Switching subscription %s@%s -> %s@%s",
            self.settings.symbol, self.settings.rate_class.value,
            new_settings.symbol, new_settings.rate_class.value,
        )
        self._close()
        self.settings = new_settings
        self.history.reset()
        self.last_error = None
        self.refresh()

        if self._running:
            self._open()

    # ------------------------------------------------------------------
    # Inputs

    def set_quantity_threshold(self, threshold: float) -> None:
        self.settings = self.settings.with_changes(quantity_threshold=float(threshold))
        self.refresh()

    def set_show_pressure_zones(self, enabled: bool) -> None:
        self.settings = self.settings.with_changes(show_pressure_zones=bool(enabled))
        self.refresh()

    def set_search_price(self, text: str) -> None:
        self.settings = self.settings.with_changes(search_price=text or "")
        self.refresh()

    def ingest(self, snapshot: RawSnapshot) -> None:
        """Append a snapshot to history and recompute. HOT PATH."""
        self.history.push(snapshot)
        self.refresh()

    def _on_snapshot(self, subscription: DepthSubscription, snapshot: RawSnapshot) -> None:
        if subscription is not self._subscription:
            logger.debug("Discarding late snapshot from %r", subscription)
            return
        self.ingest(snapshot)

    def report_error(self, error: FeedError) -> None:
        """Error sink for the connector. Errors are already logged at the source."""
        self.last_error = error

    # ------------------------------------------------------------------
    # Output

    @property
    def view_model(self) -> ViewModel:
        return self._view_model

    def refresh(self) -> ViewModel:
        """Recompute if any input changed since the last computation."""
        s = self.settings
        key = (self.history.generation, s.quantity_threshold, s.show_pressure_zones, s.search_price)
        if key == self._last_key:
            return self._view_model

        self._last_key = key
        self._view_model = assemble(
            self.history.snapshots(),
            s.quantity_threshold,
            s.show_pressure_zones,
            s.search_price,
            s.pressure_levels,
        )
        self.recompute_count += 1
        self._publish(self._view_model)
        return self._view_model

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """Register for every new ViewModel. Returns an unsubscribe callable."""
        self._view_listeners.append(listener)
        return lambda: self._remove(self._view_listeners, listener)

    def subscribe_pressure(self, listener: PressureListener) -> Callable[[], None]:
        """Register for the pressure zone set, reported once per recomputation."""
        self._pressure_listeners.append(listener)
        return lambda: self._remove(self._pressure_listeners, listener)

    @staticmethod
    def _remove(listeners: list, listener: Callable) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def _publish(self, model: ViewModel) -> None:
        for listener in list(self._view_listeners):
            try:
                listener(model)
            except Exception:
                logger.exception("View listener %r failed", listener)

        for listener in list(self._pressure_listeners):
            try:
                listener(model.pressure_zones)
            except Exception:
                logger.exception("Pressure listener %r failed", listener)
