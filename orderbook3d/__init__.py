"""
orderbook3d - Live order book depth pipeline for Binance Futures.

Architecture:
- datafeed/: depth stream subscription and bounded snapshot history
- engine/: aggregation (cumulative ladders, pressure zones, ghost trail) and view model assembly
- ui/: reference depth ladder renderer (Textual TUI)
"""

__version__ = "0.1.0"
