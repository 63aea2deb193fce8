#!/usr/bin/env python3
"""
Order book depth viewer - live cumulative depth for Binance Futures.

Usage:
    python -m orderbook3d.main btcusdt --rate realtime --threshold 0.5

    Headless (log one line per update, no TUI):
    python -m orderbook3d.main ethusdt --headless

Controls:
    q - Quit
    p - Toggle pressure zones
    t - Cycle rate class
    s - Cycle symbol
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import DEFAULT_SYMBOL, SUPPORTED_SYMBOLS, PipelineSettings
from .types import RateClass, ViewModel

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str, log_file: str | None, headless: bool) -> None:
    """
    Route log records somewhere that won't corrupt the TUI.

    Headless: stderr. TUI: the file if given, else Textual's devtools console.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file)
    elif headless:
        handler = logging.StreamHandler(sys.stderr)
    else:
        from textual.logging import TextualHandler
        handler = TextualHandler()

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)


def summarize(model: ViewModel) -> str:
    """One-line description of a view model for headless mode."""
    if not model.has_data:
        return "insufficient data"
    zones = ", ".join(f"{p:.2f}" for p in sorted(model.pressure_zones))
    line = (
        f"center={model.center_price:.2f} "
        f"bid={model.latest_bids[0].price:.2f} ask={model.latest_asks[0].price:.2f} "
        f"depth={model.latest_bids[-1].cumulative_quantity:.3f}/"
        f"{model.latest_asks[-1].cumulative_quantity:.3f} "
        f"ghosts={len(model.ghost_snapshots)} pressure=[{zones}]"
    )
    if model.highlighted_price is not None:
        line += f" highlight={model.highlighted_price:.2f}"
    return line


async def run_headless(pipeline) -> None:
    """Run the pipeline until the feed closes or the task is cancelled."""
    pipeline.subscribe(lambda model: logger.info("%s", summarize(model)))
    pipeline.start()
    try:
        subscription = pipeline.subscription
        if subscription is not None:
            await subscription.wait_closed()
        if pipeline.last_error is not None:
            logger.error("Feed stopped: %s", pipeline.last_error)
    finally:
        await pipeline.aclose()


async def main(settings: PipelineSettings, headless: bool = False) -> None:
    """Main entry point - runs the data pipeline and UI on one event loop."""

    # Import here to avoid slow startup for --help
    from .engine.pipeline import OrderBookPipeline

    logger.info(
        "Starting depth viewer for %s (%s, threshold=%g)",
        settings.symbol, settings.rate_class.value, settings.quantity_threshold,
    )
    pipeline = OrderBookPipeline(settings)

    if headless:
        await run_headless(pipeline)
        return

    from .ui.depth_view import run_ui
    await run_ui(pipeline)


def non_negative_float(value: str) -> float:
    try:
        result = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if result < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Order book depth viewer - cumulative depth and pressure zones for Binance Futures",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Symbols: {', '.join(SUPPORTED_SYMBOLS)} (any Binance Futures symbol works)

Examples:
    python -m orderbook3d.main btcusdt
    python -m orderbook3d.main ethusdt --rate 1min --threshold 5
    python -m orderbook3d.main solusdt --headless --search 150.25
        """
    )

    parser.add_argument(
        "symbol",
        nargs="?",
        default=DEFAULT_SYMBOL,
        help=f"Trading symbol (default: {DEFAULT_SYMBOL})"
    )

    parser.add_argument(
        "--rate",
        choices=[r.value for r in RateClass],
        default=RateClass.REALTIME.value,
        help="Rate class controlling feed update speed (default: realtime)"
    )

    parser.add_argument(
        "--threshold",
        type=non_negative_float,
        default=0.0,
        help="Hide levels with quantity below this (default: 0)"
    )

    parser.add_argument(
        "--no-pressure",
        action="store_true",
        help="Disable pressure zone detection"
    )

    parser.add_argument(
        "--search",
        default="",
        help="Price level to highlight"
    )

    parser.add_argument(
        "--headless",
        action="store_true",
        help="Log view model summaries instead of running the TUI"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-file",
        default=None,
        help="Write logs to this file"
    )

    return parser


def settings_from_args(args: argparse.Namespace) -> PipelineSettings:
    return PipelineSettings(
        symbol=args.symbol,
        rate_class=RateClass(args.rate),
        quantity_threshold=args.threshold,
        show_pressure_zones=not args.no_pressure,
        search_price=args.search,
    )


def cli(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_file, args.headless)

    # Run
    try:
        asyncio.run(main(settings_from_args(args), headless=args.headless))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
