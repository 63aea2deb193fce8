import pytest

from orderbook3d.config import PipelineSettings
from orderbook3d.engine.pipeline import OrderBookPipeline, assemble, parse_search_price
from orderbook3d.errors import TransportError
from orderbook3d.types import CumulativeLevel, RateClass, RawSnapshot, ViewModel


def _snap(ts, bid="100", ask="101"):
    return RawSnapshot(
        bids=((bid, "2"), ("99", "5")),
        asks=((ask, "3"), ("102", "1")),
        timestamp_ms=ts,
    )


class FakeSubscription:
    def __init__(self, symbol, rate_class, on_snapshot):
        self.symbol = symbol
        self.rate_class = rate_class
        self.on_snapshot = on_snapshot
        self.closed = False

    def deliver(self, snapshot):
        self.on_snapshot(self, snapshot)


class FakeConnector:
    def __init__(self):
        self.opened = []
        self.closed = []
        self.history_len_at_open = []
        self.pipeline = None

    def open(self, symbol, rate_class, on_snapshot):
        if self.pipeline is not None:
            self.history_len_at_open.append(len(self.pipeline.history))
        sub = FakeSubscription(symbol, rate_class, on_snapshot)
        self.opened.append(sub)
        return sub

    def close(self, subscription):
        if subscription is not None:
            subscription.closed = True
            self.closed.append(subscription)


def _pipeline(**settings):
    connector = FakeConnector()
    pipeline = OrderBookPipeline(PipelineSettings(**settings), connector=connector)
    connector.pipeline = pipeline
    return pipeline, connector


def test_parse_search_price():
    assert parse_search_price("101") == 101.0
    assert parse_search_price(" 99.5 ") == 99.5
    assert parse_search_price("abc") is None
    assert parse_search_price("") is None
    assert parse_search_price(None) is None
    assert parse_search_price("nan") is None
    assert parse_search_price("0") is None


def test_assemble_full_model():
    history = (_snap(3), _snap(2), _snap(1))
    model = assemble(history, 0, True, "101")
    assert model.has_data
    assert model.center_price == 100.5
    assert model.latest_bids[-1] == CumulativeLevel(99.0, 5.0, 7.0)
    assert model.latest_asks[-1] == CumulativeLevel(102.0, 1.0, 4.0)
    assert model.pressure_zones == frozenset({100.0, 99.0, 101.0, 102.0})
    assert model.highlighted_price == 101.0
    assert [g.timestamp_ms for g in model.ghost_snapshots] == [2, 1]


def test_assemble_pressure_disabled():
    model = assemble((_snap(1),), 0, False, "")
    assert model.pressure_zones == frozenset()
    assert model.highlighted_price is None


def test_assemble_insufficient_data():
    assert assemble((), 0, True, "abc") == ViewModel.empty()
    model = assemble((_snap(1),), 4, True, "99")
    assert not model.has_data
    assert model.latest_bids == () and model.latest_asks == ()
    assert model.highlighted_price == 99.0


def test_recompute_only_on_input_change():
    pipeline, _ = _pipeline()
    models = []
    pipeline.subscribe(models.append)

    pipeline.refresh()
    pipeline.refresh()
    assert len(models) == 1

    pipeline.ingest(_snap(1))
    pipeline.refresh()
    assert len(models) == 2

    pipeline.set_search_price("")
    pipeline.set_quantity_threshold(0)
    pipeline.set_show_pressure_zones(True)
    assert len(models) == 2

    pipeline.set_search_price("100")
    assert models[-1].highlighted_price == 100.0
    pipeline.set_quantity_threshold(4)
    assert not models[-1].has_data
    pipeline.set_show_pressure_zones(False)
    assert len(models) == 5
    assert pipeline.recompute_count == 5


def test_pressure_reported_once_per_recompute():
    pipeline, _ = _pipeline()
    reports = []
    pipeline.subscribe_pressure(reports.append)
    pipeline.ingest(_snap(1))
    pipeline.refresh()
    assert reports == [frozenset({100.0, 99.0, 101.0, 102.0})]


def test_unsubscribe_and_failing_listener():
    pipeline, _ = _pipeline()
    seen = []

    def broken(model):
        raise RuntimeError("boom")

    pipeline.subscribe(broken)
    unsubscribe = pipeline.subscribe(seen.append)
    pipeline.ingest(_snap(1))
    assert len(seen) == 1

    unsubscribe()
    pipeline.ingest(_snap(2))
    assert len(seen) == 1
    assert len(pipeline.history) == 2


def test_feed_delivery_goes_through_current_subscription():
    pipeline, connector = _pipeline(symbol="BTCUSDT")
    pipeline.start()
    (sub,) = connector.opened
    assert sub.symbol == "btcusdt" and sub.rate_class is RateClass.REALTIME

    sub.deliver(_snap(1))
    assert len(pipeline.history) == 1
    assert pipeline.view_model.center_price == 100.5


def test_switching_key_clears_history_before_new_feed():
    pipeline, connector = _pipeline()
    models = []
    pipeline.subscribe(models.append)
    pipeline.start()
    old = connector.opened[0]
    old.deliver(_snap(1))
    old.deliver(_snap(2))

    pipeline.set_subscription("ethusdt", "1min")

    assert old.closed
    assert connector.history_len_at_open == [0, 0]
    assert not models[-1].has_data

    # Late message from the old feed must not land in the new history
    old.deliver(_snap(3))
    assert len(pipeline.history) == 0

    new = connector.opened[1]
    assert (new.symbol, new.rate_class) == ("ethusdt", RateClass.ONE_MIN)
    new.deliver(_snap(4, bid="2000", ask="2001"))
    assert [s.timestamp_ms for s in pipeline.history.snapshots()] == [4]


def test_same_key_does_not_resubscribe():
    pipeline, connector = _pipeline()
    pipeline.start()
    pipeline.set_subscription("BTCUSDT", "realtime")
    assert len(connector.opened) == 1
    assert connector.closed == []


def test_switch_while_stopped_does_not_open():
    pipeline, connector = _pipeline()
    pipeline.ingest(_snap(1))
    pipeline.set_subscription("solusdt", "1hr")
    assert connector.opened == []
    assert len(pipeline.history) == 0
    assert pipeline.settings.rate_class is RateClass.ONE_HOUR


def test_error_sink_records_last_error():
    pipeline, _ = _pipeline()
    error = TransportError("refused")
    pipeline.report_error(error)
    assert pipeline.last_error is error


def test_invalid_threshold_rejected():
    pipeline, _ = _pipeline()
    with pytest.raises(ValueError):
        pipeline.set_quantity_threshold(-1)
    assert pipeline.settings.quantity_threshold == 0.0
