"""
Depth ladder TUI using Textual.

Displays:
- Top: status bar (symbol, rate class, center price, history size)
- Left: cumulative depth ladder, asks above bids, with pressure and highlight markers
- Right: pressure zone panel plus search / threshold inputs

Performance notes:
- The pipeline pushes ViewModels; widgets only store the latest and refresh
- Textual coalesces refreshes, so bursts of updates render at most once per frame
- Rendering reads the immutable model only; it never calls back into aggregation
"""

from __future__ import annotations

from itertools import cycle
from typing import TYPE_CHECKING

from rich.console import RenderableType
from rich.style import Style
from rich.table import Table
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Input, Static

from ..config import SUPPORTED_SYMBOLS
from ..types import RateClass

if TYPE_CHECKING:
    from ..engine.pipeline import OrderBookPipeline
    from ..types import CumulativeLevel, ViewModel

# Color scheme (dark theme)
BID_COLOR = "#10b981"
ASK_COLOR = "#ef4444"
BID_PRESSURE_COLOR = "#2dd4bf"
ASK_PRESSURE_COLOR = "#f472b6"
HIGHLIGHT_COLOR = "#facc15"
PRICE_COLOR = "#e5e7eb"
HEADER_COLOR = "#9ca3b0"
BAR_BG = "#1f2937"

BAR_WIDTH = 24


# Left-aligned partial blocks, 1/8 to 7/8 of a cell
PARTIAL_BLOCKS = " ▏▎▍▌▋▊▉"


def format_qty(qty: float) -> str:
    """Compact quantity: contract sizes run from 0.001 to tens of thousands."""
    if qty >= 10_000:
        return f"{qty/1000:.0f}K"
    if qty >= 1000:
        return f"{qty/1000:.1f}K"
    if qty >= 100:
        return f"{qty:.0f}"
    if qty >= 1:
        return f"{qty:.2f}"
    return f"{qty:.3f}"


def depth_bar(cumulative: float, max_cumulative: float, width: int, color: str) -> Text:
    """
    Cumulative depth as a horizontal bar at 1/8-cell resolution.

    Both sides share max_cumulative so bid and ask walls compare directly.
    """
    if max_cumulative <= 0:
        return Text(" " * width)

    eighths = round(min(1.0, cumulative / max_cumulative) * width * 8)
    full, rest = divmod(eighths, 8)
    bar = "█" * full
    if rest:
        bar += PARTIAL_BLOCKS[rest]
    return Text(bar.ljust(width), style=Style(color=color, bgcolor=BAR_BG))


def level_color(side: str, price: float, model: ViewModel) -> str:
    if model.highlighted_price is not None and price == model.highlighted_price:
        return HIGHLIGHT_COLOR
    if price in model.pressure_zones:
        return BID_PRESSURE_COLOR if side == "bid" else ASK_PRESSURE_COLOR
    return BID_COLOR if side == "bid" else ASK_COLOR


def previous_quantities(model: ViewModel) -> dict[float, float]:
    """price -> quantity from the most recent ghost snapshot."""
    if not model.ghost_snapshots:
        return {}
    ghost = model.ghost_snapshots[0]
    prev = {lvl.price: lvl.quantity for lvl in ghost.bids}
    prev.update((lvl.price, lvl.quantity) for lvl in ghost.asks)
    return prev


class LadderTable(Static):
    """Cumulative depth ladder widget."""

    DEFAULT_CSS = """
    LadderTable {
        width: 3fr;
        height: 100%;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._model: ViewModel | None = None

    def update_model(self, model: ViewModel) -> None:
        self._model = model
        self.refresh()

    def _add_row(self, table: Table, side: str, level: CumulativeLevel,
                 max_cum: float, prev: dict[float, float]) -> None:
        model = self._model
        color = level_color(side, level.price, model)

        marker = ""
        if level.price in model.pressure_zones:
            marker = "◆"
        if model.highlighted_price is not None and level.price == model.highlighted_price:
            marker = "◀"

        change = ""
        if level.price in prev:
            diff = level.quantity - prev[level.price]
            if diff > 0:
                change = f"+{format_qty(diff)}"
            elif diff < 0:
                change = f"-{format_qty(-diff)}"

        table.add_row(
            depth_bar(level.cumulative_quantity, max_cum, BAR_WIDTH, color),
            Text(format_qty(level.cumulative_quantity), style=color),
            Text(format_qty(level.quantity), style=color),
            Text(f"{level.price:.2f}", style=PRICE_COLOR if color in (BID_COLOR, ASK_COLOR) else color),
            Text(change, style="dim"),
            Text(marker, style=color),
        )

    def render(self) -> RenderableType:
        model = self._model
        if model is None or not model.has_data:
            return Text("Loading order book data or insufficient data to display...", style="dim")

        max_cum = max(
            model.latest_bids[-1].cumulative_quantity,
            model.latest_asks[-1].cumulative_quantity,
        )
        prev = previous_quantities(model)

        table = Table(
            show_header=True,
            header_style=HEADER_COLOR,
            box=None,
            padding=(0, 1),
            collapse_padding=True,
        )
        table.add_column("Depth", justify="left", width=BAR_WIDTH, no_wrap=True)
        table.add_column("Cum Qty", justify="right", width=9)
        table.add_column("Qty", justify="right", width=9)
        table.add_column("Price", justify="center", width=12)
        table.add_column("Δ", justify="right", width=8)
        table.add_column("", width=1)

        # Asks on top, farthest first, so the spread sits in the middle
        for level in reversed(model.latest_asks):
            self._add_row(table, "ask", level, max_cum, prev)

        table.add_row(
            Text(""), Text(""), Text(""),
            Text(f"{model.center_price:.2f}", style="bold"),
            Text(""), Text(""),
        )

        for level in model.latest_bids:
            self._add_row(table, "bid", level, max_cum, prev)

        return table


class PressurePanel(Static):
    """Side panel listing the reported pressure zones (read-only)."""

    DEFAULT_CSS = """
    PressurePanel {
        height: auto;
        padding: 1 1;
        border: round #4b5563;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._zones: frozenset[float] = frozenset()
        self.enabled = True

    def update_zones(self, zones: frozenset[float]) -> None:
        self._zones = zones
        self.refresh()

    def render(self) -> RenderableType:
        text = Text("Pressure zones\n", style="bold")
        if not self.enabled:
            text.append("off (press p)", style="dim")
            return text
        if not self._zones:
            text.append("none", style="dim")
            return text
        for price in sorted(self._zones, reverse=True):
            text.append(f"{price:.2f}\n", style=HIGHLIGHT_COLOR)
        return text


class StatusBar(Static):
    """Status bar showing subscription and model summary."""

    DEFAULT_CSS = """
    StatusBar {
        dock: top;
        height: 3;
        padding: 0 2;
        background: #111827;
    }
    """

    def __init__(self, pipeline: OrderBookPipeline) -> None:
        super().__init__()
        self._pipeline = pipeline
        self._model: ViewModel | None = None

    def update_model(self, model: ViewModel) -> None:
        self._model = model
        self.refresh()

    def render(self) -> RenderableType:
        pipeline = self._pipeline
        settings = pipeline.settings

        result = Text()
        result.append(f" {settings.symbol.upper()} ", style="bold white on #1e40af")
        result.append(f"  {settings.rate_class.value}", style="cyan")
        result.append("  │  ", style="dim")

        model = self._model
        if model is not None and model.has_data:
            result.append("Center: ", style="dim")
            result.append(f"{model.center_price:.2f}")
            result.append("  Bid: ", style="dim")
            result.append(f"{model.latest_bids[0].price:.2f}", style=BID_COLOR)
            result.append("  Ask: ", style="dim")
            result.append(f"{model.latest_asks[0].price:.2f}", style=ASK_COLOR)
        else:
            result.append("Connecting...", style="dim")

        result.append("  │  ", style="dim")
        result.append("History: ", style="dim")
        result.append(f"{len(pipeline.history)}/{pipeline.history.capacity}")
        if pipeline.last_error is not None:
            result.append(f"  {pipeline.last_error}", style=ASK_COLOR)
        return result


class DepthApp(App):
    """Order book depth viewer application."""

    CSS = """
    Screen {
        background: #111827;
    }

    #body {
        width: 100%;
        height: 100%;
        padding: 1 2;
    }

    #side {
        width: 1fr;
        height: 100%;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("p", "toggle_pressure", "Pressure Zones"),
        ("t", "cycle_rate", "Rate Class"),
        ("s", "cycle_symbol", "Symbol"),
    ]

    def __init__(self, pipeline: OrderBookPipeline) -> None:
        super().__init__()
        self.pipeline = pipeline
        self._status_bar = StatusBar(pipeline)
        self._ladder = LadderTable()
        self._pressure_panel = PressurePanel()
        self._unsubscribe: list = []

        rates = list(RateClass)
        start = rates.index(pipeline.settings.rate_class)
        self._rates = cycle(rates[start + 1:] + rates[:start + 1])

        symbols = list(SUPPORTED_SYMBOLS)
        if pipeline.settings.symbol not in symbols:
            symbols.insert(0, pipeline.settings.symbol)
        start = symbols.index(pipeline.settings.symbol)
        self._symbols = cycle(symbols[start + 1:] + symbols[:start + 1])

    def compose(self) -> ComposeResult:
        settings = self.pipeline.settings
        yield self._status_bar
        with Horizontal(id="body"):
            yield self._ladder
            with Vertical(id="side"):
                yield self._pressure_panel
                yield Input(value=settings.search_price, placeholder="Search price", id="search")
                yield Input(
                    value=f"{settings.quantity_threshold:g}",
                    placeholder="Min quantity",
                    id="threshold",
                )
        yield Footer()

    def on_mount(self) -> None:
        """Wire the pipeline to the widgets and open the feed."""
        self._pressure_panel.enabled = self.pipeline.settings.show_pressure_zones
        self._unsubscribe = [
            self.pipeline.subscribe(self._on_view_model),
            self.pipeline.subscribe_pressure(self._pressure_panel.update_zones),
        ]
        self._on_view_model(self.pipeline.view_model)
        self.pipeline.start()

    async def on_unmount(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        await self.pipeline.aclose()

    def _on_view_model(self, model: ViewModel) -> None:
        self._status_bar.update_model(model)
        self._ladder.update_model(model)

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search":
            self.pipeline.set_search_price(event.value)
        elif event.input.id == "threshold":
            try:
                threshold = float(event.value) if event.value.strip() else 0.0
                self.pipeline.set_quantity_threshold(threshold)
            except ValueError:
                # Keep the previous threshold while the user is mid-edit
                pass

    def action_toggle_pressure(self) -> None:
        enabled = not self.pipeline.settings.show_pressure_zones
        self._pressure_panel.enabled = enabled
        self.pipeline.set_show_pressure_zones(enabled)

    def action_cycle_rate(self) -> None:
        self.pipeline.set_subscription(self.pipeline.settings.symbol, next(self._rates))

    def action_cycle_symbol(self) -> None:
        self.pipeline.set_subscription(next(self._symbols), self.pipeline.settings.rate_class)


async def run_ui(pipeline: OrderBookPipeline) -> None:
    """Run the TUI application."""
    app = DepthApp(pipeline)
    await app.run_async()
