"""
Binance Futures partial-depth WebSocket client.

Handles:
1. One subscription per (symbol, rate class) on the partial book depth stream
2. Decoding depth messages into RawSnapshot (strings kept as delivered)
3. Non-fatal reporting of transport and malformed-message errors
4. Idempotent close that stops delivery immediately

Performance notes:
- Uses orjson for fast JSON parsing
- Minimal logging in hot path (DEBUG only)
- All I/O is non-blocking (pure asyncio)
"""

from __future__ import annotations

import asyncio
import logging
import math
from enum import Enum
from typing import Any, Callable

import aiohttp
import orjson

from ..errors import ErrorSink, FeedError, IngestionError, MalformedMessageError, TransportError
from ..types import RateClass, RawSnapshot

logger = logging.getLogger(__name__)

# Binance Futures endpoint
WS_BASE = "wss://fstream.binance.com"
DEPTH_LEVELS = 20
HEARTBEAT_SEC = 30.0


class SubscriptionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


SnapshotHandler = Callable[["DepthSubscription", RawSnapshot], None]


def build_stream_url(symbol: str, rate_class: RateClass | str) -> str:
    """Partial depth stream URL, e.g. .../ws/btcusdt@depth20@100ms."""
    speed = RateClass(rate_class).update_speed
    return f"{WS_BASE}/ws/{symbol.lower()}@depth{DEPTH_LEVELS}@{speed}"


def _check_decimal(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected decimal string, got {type(value).__name__}")
    if not math.isfinite(float(value)):
        raise ValueError(f"non-finite value {value!r}")
    return value


def _parse_side(raw: Any) -> tuple[tuple[str, str], ...]:
    if not isinstance(raw, list):
        raise TypeError(f"expected level array, got {type(raw).__name__}")
    levels = []
    for entry in raw:
        if not isinstance(entry, list) or len(entry) != 2:
            raise TypeError(f"expected [price, qty] pair, got {entry!r}")
        # Validate now so aggregation never sees an unparseable level
        levels.append((_check_decimal(entry[0]), _check_decimal(entry[1])))
    return tuple(levels)


def _parse_timestamp(raw: Any) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


def parse_depth_message(raw: str | bytes) -> RawSnapshot | None:
    """
    Decode one depth message.

    Expected format: {E: event_time_ms, b: [[price, qty], ...], a: [[price, qty], ...]}

    Returns None for messages without both `b` and `a` (heartbeats, acks).
    Raises MalformedMessageError when the payload cannot be decoded.
    """
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise MalformedMessageError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        return None
    bids = data.get('b')
    asks = data.get('a')
    if bids is None or asks is None:
        return None

    try:
        return RawSnapshot(
            bids=_parse_side(bids),
            asks=_parse_side(asks),
            timestamp_ms=_parse_timestamp(data.get('E')),
        )
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(f"bad depth levels: {e}") from e


class DepthSubscription:
    """
    A single live depth stream.

    State machine: IDLE -> CONNECTING -> OPEN -> CLOSED. CLOSED is terminal;
    re-subscribing means creating a new instance.
    """

    def __init__(
        self,
        symbol: str,
        rate_class: RateClass | str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorSink | None = None,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ) -> None:
        self.symbol = symbol.lower()
        self.rate_class = RateClass(rate_class)
        self.url = build_stream_url(self.symbol, self.rate_class)
        self.state = SubscriptionState.IDLE

        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._session_factory = session_factory
        self._task: asyncio.Task[None] | None = None
        self.messages_received: int = 0

    def __repr__(self) -> str:
        return f"<DepthSubscription {self.symbol}@{self.rate_class.value} {self.state.value}>"

    @property
    def closed(self) -> bool:
        return self.state is SubscriptionState.CLOSED

    def start(self) -> None:
        """Begin connecting. Must be called from inside the running event loop."""
        if self.state is not SubscriptionState.IDLE:
            raise RuntimeError(f"cannot start subscription in state {self.state.value}")
        self.state = SubscriptionState.CONNECTING
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"depth-{self.symbol}-{self.rate_class.value}"
        )
        logger.info("Connecting to %s", self.url)

    def close(self) -> None:
        """
        Stop delivery now and tear down the transport.

        Safe to call repeatedly and in any state. Messages that arrive after
        this call are discarded even if the socket has not finished closing.
        """
        if self.state is SubscriptionState.CLOSED:
            return
        self.state = SubscriptionState.CLOSED
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.info("Closed depth stream %s@%s", self.symbol, self.rate_class.value)

    async def wait_closed(self) -> None:
        """Wait for the transport task to finish after close() or an error."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        try:
            async with self._session_factory() as session:
                async with session.ws_connect(self.url, heartbeat=HEARTBEAT_SEC) as ws:
                    if self.closed:
                        return
                    self.state = SubscriptionState.OPEN
                    logger.info("Depth stream open: %s", self.url)

                    async for msg in ws:
                        if self.closed:
                            break

                        if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                            self._handle_ws_message(msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            raise TransportError(f"websocket error: {ws.exception()}")

            if not self.closed:
                self._fail(TransportError("connection closed by venue"))
        except TransportError as e:
            self._fail(e)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            self._fail(TransportError(f"{type(e).__name__}: {e}"))

    def _fail(self, error: TransportError) -> None:
        if self.closed:
            # We asked for the close; nothing to report
            return
        self.state = SubscriptionState.CLOSED
        logger.error("Depth stream %s failed: %s", self.url, error)
        self._report(error)

    def _report(self, error: FeedError) -> None:
        if self._on_error is not None:
            self._on_error(error)

    def _handle_ws_message(self, raw: str | bytes) -> None:
        """
        Handle one inbound message.

        HOT PATH - called for every message (up to 10 per second).
        """
        if self.closed:
            return

        try:
            snapshot = parse_depth_message(raw)
        except MalformedMessageError as e:
            logger.warning("Dropping malformed depth message on %s: %s", self.symbol, e)
            self._report(e)
            return

        if snapshot is None:
            logger.debug("Ignoring non-depth message on %s", self.symbol)
            return

        self.messages_received += 1
        try:
            self._on_snapshot(self, snapshot)
        except Exception as e:
            logger.exception("Snapshot handler failed on %s", self.symbol)
            self._report(IngestionError(f"{type(e).__name__}: {e}"))


class DepthStreamConnector:
    """
    Opens depth subscriptions with shared error reporting.

    Usage:
        connector = DepthStreamConnector(on_error=report)
        sub = connector.open("btcusdt", "realtime", on_snapshot)
        ...
        connector.close(sub)
    """

    def __init__(
        self,
        on_error: ErrorSink | None = None,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ) -> None:
        self.on_error = on_error
        self.session_factory = session_factory

    def open(
        self,
        symbol: str,
        rate_class: RateClass | str,
        on_snapshot: SnapshotHandler,
    ) -> DepthSubscription:
        """Create and start a new subscription. Requires a running event loop."""
        subscription = DepthSubscription(
            symbol,
            rate_class,
            on_snapshot,
            on_error=self.on_error,
            session_factory=self.session_factory,
        )
        subscription.start()
        return subscription

    def close(self, subscription: DepthSubscription | None) -> None:
        if subscription is not None:
            subscription.close()
