import random

from orderbook3d.engine.depth import aggregate, parse_levels
from orderbook3d.types import CumulativeLevel, RawSnapshot


EXAMPLE = RawSnapshot(
    bids=(("100", "2"), ("99", "5")),
    asks=(("101", "3"), ("102", "1")),
    timestamp_ms=1,
)


def _random_snapshot(rng, levels=20):
    bids = tuple((f"{100 - i * 0.5:.1f}", f"{rng.uniform(0.1, 10):.3f}") for i in range(levels))
    asks = tuple((f"{100.5 + i * 0.5:.1f}", f"{rng.uniform(0.1, 10):.3f}") for i in range(levels))
    bids = tuple(rng.sample(bids, len(bids)))
    asks = tuple(rng.sample(asks, len(asks)))
    return RawSnapshot(bids, asks, 0)


def test_example_ladders_threshold_zero():
    result = aggregate(EXAMPLE, 0)
    assert result is not None
    assert result.bids == (CumulativeLevel(100.0, 2.0, 2.0), CumulativeLevel(99.0, 5.0, 7.0))
    assert result.asks == (CumulativeLevel(101.0, 3.0, 3.0), CumulativeLevel(102.0, 1.0, 4.0))
    assert result.center_price == 100.5


def test_one_sided_after_filter_is_empty():
    assert aggregate(EXAMPLE, 4) is None


def test_empty_side_is_empty():
    snap = RawSnapshot(bids=(("100", "1"),), asks=(), timestamp_ms=0)
    assert aggregate(snap, 0) is None


def test_unsorted_feed_is_sorted():
    snap = RawSnapshot(
        bids=(("98", "1"), ("100", "1"), ("99", "1")),
        asks=(("103", "1"), ("101", "1"), ("102", "1")),
        timestamp_ms=0,
    )
    result = aggregate(snap, 0)
    assert [lvl.price for lvl in result.bids] == [100.0, 99.0, 98.0]
    assert [lvl.price for lvl in result.asks] == [101.0, 102.0, 103.0]
    assert [lvl.cumulative_quantity for lvl in result.bids] == [1.0, 2.0, 3.0]
    assert result.center_price == 100.5


def test_center_uses_filtered_best_prices():
    snap = RawSnapshot(
        bids=(("100", "0.5"), ("99", "5")),
        asks=(("101", "0.5"), ("103", "5")),
        timestamp_ms=0,
    )
    result = aggregate(snap, 1)
    assert result.center_price == 101.0


def test_duplicate_prices_are_not_merged():
    snap = RawSnapshot(
        bids=(("100", "1"), ("100", "2")),
        asks=(("101", "1"),),
        timestamp_ms=0,
    )
    result = aggregate(snap, 0)
    assert result.bids == (CumulativeLevel(100.0, 1.0, 1.0), CumulativeLevel(100.0, 2.0, 3.0))


def test_cumulative_non_decreasing_and_center_inside_spread():
    rng = random.Random(7)
    for _ in range(50):
        result = aggregate(_random_snapshot(rng), rng.uniform(0, 5))
        if result is None:
            continue
        for side in (result.bids, result.asks):
            cums = [lvl.cumulative_quantity for lvl in side]
            assert cums == sorted(cums)
        assert result.bids[0].price <= result.center_price <= result.asks[0].price


def test_raising_threshold_only_shrinks_levels():
    rng = random.Random(11)
    snap = _random_snapshot(rng)
    previous = None
    for threshold in (0, 1, 2.5, 5, 7.5):
        levels = parse_levels(snap.bids, threshold) + parse_levels(snap.asks, threshold)
        assert all(lvl.quantity >= threshold for lvl in levels)
        prices = {lvl.price for lvl in levels}
        if previous is not None:
            assert prices <= previous
        previous = prices
