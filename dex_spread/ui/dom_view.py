"""
DEX Spread TUI using Textual.

Displays:
- Top: Pangea status (connection, latency, events, chain version)
- Middle: Latest swap and volume share
- Bottom: Depth-of-market table, spread bar, liquidity bars

Performance notes:
- Only the newest queued snapshot is rendered; older ones are skipped
- Panels are plain Static widgets returning Rich renderables
- Liquidity is read from live pool state at render time
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Callable

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Static

from ..types import Direction

if TYPE_CHECKING:
    from ..types import LiquidityView, Snapshot

# Color scheme (dark theme)
BUY_COLOR = "#22c55e"      # Green
SELL_COLOR = "#ef4444"     # Red
THALA_COLOR = "cyan"
CELLANA_COLOR = "green"
BASE_BAR_COLOR = "blue"
QUOTE_BAR_COLOR = "green"
HEADER_COLOR = "#94a3b8"
BORDER_COLOR = "magenta"

SPREAD_BAR_WIDTH = 51      # Odd so the centre marker is exact
SPREAD_BAR_SCALE = 20_000
LIQUIDITY_BAR_WIDTH = 30


def format_number(num: float) -> str:
    """Format with K/M/B suffix."""
    if num >= 1_000_000_000:
        return f"{num/1_000_000_000:.2f}B"
    elif num >= 1_000_000:
        return f"{num/1_000_000:.2f}M"
    elif num >= 1_000:
        return f"{num/1_000:.2f}K"
    return f"{num:.2f}"


def format_currency(amount: float) -> str:
    if amount >= 1_000_000:
        return f"${amount/1_000_000:.2f}M"
    elif amount >= 1_000:
        return f"${amount/1_000:.2f}K"
    return f"${amount:.2f}"


def format_hash(tx_hash: str) -> str:
    return f"{tx_hash[:8]}…{tx_hash[-4:]}"


def format_version(version: str | None) -> str:
    """Hex chain version as a decimal string."""
    if not version:
        return "Unknown"
    if version.startswith("0x"):
        try:
            return str(int(version, 16))
        except ValueError:
            return version
    return version


def latency_color(latency_ms: float) -> str:
    if latency_ms < 500:
        return "green"
    elif latency_ms < 1000:
        return "yellow"
    return "red"


def spread_color(spread: float) -> str:
    return "green" if spread >= 0 else "red"


def spread_bar(spread: float, width: int = SPREAD_BAR_WIDTH, scale: float = SPREAD_BAR_SCALE) -> str:
    """Bar growing right (positive) or left (negative) from a centre marker."""
    middle = width // 2
    length = min(int(abs(spread) * scale), middle)

    cells = [" "] * width
    if spread > 0:
        for i in range(length):
            cells[middle + i + 1] = "█"
    elif spread < 0:
        for i in range(length):
            cells[middle - i - 1] = "█"
    cells[middle] = "│"
    return "".join(cells)


def make_bar(value: float, max_value: float, width: int, color: str, align_right: bool = False) -> Text:
    """Horizontal bar using block characters; at least one cell when value > 0."""
    if max_value <= 0 or value <= 0:
        return Text(" " * width)

    fill_width = max(1, round(min(1.0, value / max_value) * width))
    bar = "█" * fill_width
    bar = bar.rjust(width) if align_right else bar.ljust(width)
    return Text(bar, style=Style(color=color))


class StatusPanel(Static):
    """Connection, latency and event counters."""

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: Snapshot | None = None

    def update_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def render(self) -> RenderableType:
        if self._snapshot is None:
            return Text("Connecting...", style="dim")

        status = self._snapshot.status
        result = Text()
        result.append("Connection: ", style="dim")
        if status.connected:
            result.append("● Connected", style="green")
        else:
            result.append("○ Disconnected", style="red")
        result.append("   API Latency: ", style="dim")
        result.append(f"{round(status.api_latency_ms)}ms", style=latency_color(status.api_latency_ms))
        result.append("   Processing: ", style="dim")
        result.append(f"{status.processing_time_ms:.2f}ms")
        result.append("   Total: ", style="dim")
        result.append(f"{round(status.total_latency_ms)}ms", style=latency_color(status.total_latency_ms))
        result.append("   Events: ", style="dim")
        result.append(f"{status.events_processed:,}")
        result.append("   Version: ", style="dim")
        result.append(format_version(status.current_version))
        return Panel(result, title="Pangea Status", border_style=BORDER_COLOR)


class SwapPanel(Static):
    """Latest swap."""

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: Snapshot | None = None

    def update_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def render(self) -> RenderableType:
        swap = self._snapshot.latest_swap if self._snapshot else None
        if swap is None:
            return Panel(Text("Waiting for price data...", style="dim"), border_style="cyan")

        side_style = BUY_COLOR if swap.side is Direction.BUY else SELL_COLOR
        line = Text()
        line.append(swap.dex.value, style="bold")
        line.append(" ")
        # Fixed width so BUY and SELL line up
        line.append(f"{swap.side.value:<4}", style=side_style)
        line.append(f" {swap.amount:.6f} APT @ ${swap.price:.6f}")

        return Panel(
            Group(line, Text(f"{swap.usdc:.2f} USDC"), Text(format_hash(swap.hash), style="dim")),
            title="Latest Swap",
            border_style="cyan",
        )


class VolumePanel(Static):
    """Cumulative volume per exchange with percentage bars."""

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: Snapshot | None = None

    def update_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def render(self) -> RenderableType:
        if self._snapshot is None:
            return Text("")

        volume = self._snapshot.volume
        rows = [
            Text.assemble("Total: ", (format_currency(volume.total_volume), "bold")),
            Text.assemble(
                "ThalaSwap: ",
                (f"{format_currency(volume.thalaswap_volume)} ({volume.thalaswap_pct:.1f}%)", THALA_COLOR),
            ),
            Text("  " + "█" * round(volume.thalaswap_pct / 2), style=THALA_COLOR),
            Text.assemble(
                "Cellana: ",
                (f"{format_currency(volume.cellana_volume)} ({volume.cellana_pct:.1f}%)", CELLANA_COLOR),
            ),
            Text("  " + "█" * round(volume.cellana_pct / 2), style=CELLANA_COLOR),
        ]
        return Panel(Group(*rows), title="Trading Volume", border_style=BORDER_COLOR)


class DepthTable(Static):
    """Price impact at each notional tier for both pools."""

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: Snapshot | None = None

    def update_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def render(self) -> RenderableType:
        if self._snapshot is None:
            return Text("")

        table = Table(
            show_header=True,
            header_style=HEADER_COLOR,
            box=None,
            padding=(0, 1),
            collapse_padding=True,
        )
        table.add_column("Amount USDC", justify="right")
        table.add_column("Cellana", justify="right")
        table.add_column("Impact", justify="left")
        table.add_column("ThalaSwap", justify="right")
        table.add_column("Impact", justify="left")
        table.add_column("Spread", justify="right")

        for row in self._snapshot.depth:
            table.add_row(
                f"{row.amount:,.0f}",
                f"${row.cellana_price:.6f}",
                f"({row.cellana_impact * 100:.3f}%)",
                f"${row.thala_price:.6f}",
                f"({row.thala_impact * 100:.3f}%)",
                Text(f"{row.spread * 100:.3f}%", style=spread_color(row.spread)),
            )

        return Panel(table, title="Depth of Market (Price Impact)", border_style=BORDER_COLOR)


class SpreadPanel(Static):
    """Latest Cellana - ThalaSwap spread."""

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: Snapshot | None = None

    def update_snapshot(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def render(self) -> RenderableType:
        if self._snapshot is None:
            return Text("")

        history = self._snapshot.spread_history
        last = history[-1] if history else 0.0
        color = spread_color(last)
        return Panel(
            Group(Text(f"{last * 100:.5f}%", style=color), Text(spread_bar(last), style=color)),
            title="Cellana−ThalaSwap Mid-Price Spread",
            border_style=color,
        )


class LiquidityPane(Static):
    """Reserve balances of both pools, read live from the engine."""

    def __init__(self, liquidity_source: Callable[[], tuple[LiquidityView, LiquidityView]]) -> None:
        super().__init__()
        self._liquidity_source = liquidity_source

    def render(self) -> RenderableType:
        views = self._liquidity_source()
        max_base = max(v.base_balance for v in views)
        max_quote = max(v.quote_balance for v in views)

        table = Table(show_header=False, box=None, padding=(0, 0))
        table.add_column("DEX", width=12)
        table.add_column("APT", width=LIQUIDITY_BAR_WIDTH, no_wrap=True)
        table.add_column("│", width=3, justify="center")
        table.add_column("USDC", width=LIQUIDITY_BAR_WIDTH, no_wrap=True)
        table.add_column("Balances")

        for view in views:
            table.add_row(
                f"{view.exchange.value}:",
                make_bar(view.base_balance, max_base, LIQUIDITY_BAR_WIDTH, BASE_BAR_COLOR, align_right=True),
                " | ",
                make_bar(view.quote_balance, max_quote, LIQUIDITY_BAR_WIDTH, QUOTE_BAR_COLOR),
                f" APT: {format_number(view.base_balance)} | USDC: {format_number(view.quote_balance)}"
                f" | TVL: ${format_number(view.tvl)}",
            )

        return Panel(table, title="Liquidity", border_style=BORDER_COLOR)


class SpreadApp(App):
    """Main DEX Spread application."""

    CSS = """
    Screen {
        background: #0f172a;
    }

    Horizontal {
        height: auto;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        snapshot_queue: asyncio.Queue,
        liquidity_source: Callable[[], tuple[LiquidityView, LiquidityView]],
    ) -> None:
        super().__init__()
        self.snapshot_queue = snapshot_queue
        self._liquidity_source = liquidity_source
        self._panels: list[StatusPanel | SwapPanel | VolumePanel | DepthTable | SpreadPanel] = []
        self._liquidity: LiquidityPane | None = None

    def compose(self) -> ComposeResult:
        status = StatusPanel()
        swap = SwapPanel()
        volume = VolumePanel()
        depth = DepthTable()
        spread = SpreadPanel()
        self._liquidity = LiquidityPane(self._liquidity_source)
        self._panels = [status, swap, volume, depth, spread]

        yield Vertical(
            status,
            Horizontal(swap, volume),
            Horizontal(depth, spread),
            self._liquidity,
        )
        yield Footer()

    async def on_mount(self) -> None:
        """Start the snapshot consumer task."""
        self.run_worker(self._consume_snapshots(), exclusive=True)

    async def _consume_snapshots(self) -> None:
        """Consume snapshots from the queue and update UI."""
        while True:
            try:
                snapshot = await asyncio.wait_for(self.snapshot_queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            for panel in self._panels:
                panel.update_snapshot(snapshot)
            if self._liquidity:
                self._liquidity.refresh()


async def run_ui(
    snapshot_queue: asyncio.Queue,
    liquidity_source: Callable[[], tuple[LiquidityView, LiquidityView]],
) -> None:
    """Run the TUI application."""
    app = SpreadApp(snapshot_queue, liquidity_source)
    await app.run_async()
