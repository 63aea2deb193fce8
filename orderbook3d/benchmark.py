#!/usr/bin/env python3
"""
Micro-benchmark for the order book pipeline.

Tests:
1. History buffer push throughput
2. Depth aggregation speed (newest snapshot)
3. Ghost projection over a full history buffer
4. Full view model assembly (what the renderer gets per update)

Usage:
    python -m orderbook3d.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev

from .datafeed.history import HistoryBuffer, MAX_HISTORY_LENGTH
from .engine import ghosts
from .engine.depth import aggregate
from .engine.pipeline import assemble
from .types import RawSnapshot


def generate_mock_snapshot(base_price: float = 60000.0, levels: int = 20, ts: int = 0) -> RawSnapshot:
    """Generate a mock partial-depth snapshot, shuffled like an unsorted feed."""
    tick_size = 0.1

    bids = []
    asks = []

    for i in range(levels):
        bid_price = base_price - (i + 1) * tick_size
        ask_price = base_price + (i + 1) * tick_size

        bids.append((f"{bid_price:.1f}", f"{random.uniform(0.001, 25):.3f}"))
        asks.append((f"{ask_price:.1f}", f"{random.uniform(0.001, 25):.3f}"))

    random.shuffle(bids)
    random.shuffle(asks)

    return RawSnapshot(tuple(bids), tuple(asks), ts)


def _full_buffer() -> HistoryBuffer:
    buffer = HistoryBuffer()
    base_ts = int(time.time() * 1000)
    for i in range(MAX_HISTORY_LENGTH):
        buffer.push(generate_mock_snapshot(60000.0 + random.uniform(-5, 5), ts=base_ts + i * 100))
    return buffer


def _report(times: list[float], iterations: int) -> float:
    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000
    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    return avg_time


def benchmark_history_push(iterations: int = 100000) -> None:
    """Benchmark history buffer push throughput."""
    print("\n=== History Buffer Push Benchmark ===")

    buffer = HistoryBuffer()
    snapshots = [generate_mock_snapshot(ts=i) for i in range(1000)]

    start = time.perf_counter()
    for i in range(iterations):
        buffer.push(snapshots[i % 1000])
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Pushes: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} pushes/sec")
    print(f"  Buffer length: {len(buffer)}")


def benchmark_aggregate(iterations: int = 5000) -> None:
    """Benchmark depth aggregation of one snapshot."""
    print("\n=== Depth Aggregation Benchmark ===")

    snapshot = generate_mock_snapshot()

    # Warm up
    for _ in range(100):
        aggregate(snapshot, 0.0)

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        aggregate(snapshot, 1.0)
        times.append(time.perf_counter() - start)

    avg_time = _report(times, iterations)
    print(f"  Rate: {1000/avg_time:,.0f} calls/sec")


def benchmark_ghosts(iterations: int = 500) -> None:
    """Benchmark ghost projection over a full history."""
    print("\n=== Ghost Projection Benchmark ===")

    older = _full_buffer().older()

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        ghosts.project(older, 1.0)
        times.append(time.perf_counter() - start)

    avg_time = _report(times, iterations)
    print(f"  Snapshots per call: {len(older)}")
    print(f"  Rate: {1000/avg_time:,.0f} calls/sec")


def benchmark_full_assembly(iterations: int = 500) -> None:
    """Benchmark full view model assembly (what the renderer needs)."""
    print("\n=== Full View Model Assembly Benchmark ===")

    history = _full_buffer().snapshots()

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        assemble(history, 1.0, True, "60000.5")
        times.append(time.perf_counter() - start)

    avg_time = _report(times, iterations)
    print(f"  Max FPS possible: {1000/avg_time:,.0f}")


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Order Book Pipeline Performance Benchmark")
    print("=" * 60)

    benchmark_history_push()
    benchmark_aggregate()
    benchmark_ghosts()
    benchmark_full_assembly()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
