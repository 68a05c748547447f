#!/usr/bin/env python3
"""
DEX Spread - live ThalaSwap vs Cellana APT/USDC analytics.

Usage:
    python -m dex_spread.main
    python -m dex_spread.main --from-block -5000 --log-file dex_spread.log

    Or, once installed:
    dex-spread --headless

Controls:
    q - Quit
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys

from .config import Settings, load_settings

logger = logging.getLogger(__name__)


def publish_latest(snapshot_queue: asyncio.Queue, snapshot) -> None:
    """Non-blocking put; when the UI lags, drop the oldest and keep the newest."""
    try:
        snapshot_queue.put_nowait(snapshot)
    except asyncio.QueueFull:
        snapshot_queue.get_nowait()
        snapshot_queue.put_nowait(snapshot)


async def main(settings: Settings, headless: bool = False) -> None:
    """Main entry point - runs the engine stream and UI concurrently."""

    # Import here to avoid slow startup for --help
    from .datafeed.pangea_client import PangeaClient
    from .engine.context import EngineContext
    from .engine.pipeline import stream_snapshots

    print(f"Starting DEX Spread on {settings.endpoint}...")
    print(f"  From block: {settings.from_block}")
    print()

    ctx = EngineContext(settings.engine)
    client = PangeaClient.from_settings(settings)

    if headless:
        async for snap in stream_snapshots(client, ctx):
            swap = snap.latest_swap
            logger.info(
                "events=%d spread=%.5f%% swap=%s",
                snap.status.events_processed,
                snap.spread_history[-1] * 100,
                f"{swap.dex.value} {swap.side.value} {swap.amount:.4f} @ {swap.price:.6f}" if swap else "-",
            )
        return

    from .ui.dom_view import run_ui

    snapshot_queue: asyncio.Queue = asyncio.Queue(maxsize=1)

    async def run_feed() -> None:
        try:
            async for snap in stream_snapshots(client, ctx):
                publish_latest(snapshot_queue, snap)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Feed error")

    feed_task = asyncio.create_task(run_feed())

    try:
        # Run UI (blocks until quit)
        await run_ui(snapshot_queue, ctx.liquidity)
    finally:
        feed_task.cancel()
        try:
            await feed_task
        except asyncio.CancelledError:
            pass


def configure_logging(level: str, log_file: str | None) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        filename=log_file,
    )


def cli() -> None:
    """CLI entry point."""
    settings = load_settings()

    parser = argparse.ArgumentParser(
        description="DEX Spread - ThalaSwap vs Cellana APT/USDC spread, depth and volume",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
    PANGEA_URL, PANGEA_USERNAME, PANGEA_PASSWORD, PANGEA_FROM_BLOCK,
    DEX_SPREAD_LOG_LEVEL, DEX_SPREAD_LOG_FILE (a .env file is read if present)
        """
    )

    parser.add_argument(
        "--endpoint",
        default=settings.endpoint,
        help=f"Pangea endpoint (default: {settings.endpoint})"
    )

    parser.add_argument(
        "--from-block",
        default=settings.from_block,
        help=f"First block to stream, negative is relative to head (default: {settings.from_block})"
    )

    parser.add_argument(
        "--headless",
        action="store_true",
        help="Log one line per snapshot instead of starting the TUI"
    )

    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help=f"Logging level (default: {settings.log_level})"
    )

    parser.add_argument(
        "--log-file",
        default=settings.log_file,
        help="Write logs to this file (recommended with the TUI)"
    )

    args = parser.parse_args()

    settings = dataclasses.replace(
        settings,
        endpoint=args.endpoint,
        from_block=args.from_block,
        log_level=args.log_level,
        log_file=args.log_file,
    )
    configure_logging(settings.log_level, settings.log_file)

    # Run
    try:
        asyncio.run(main(settings, headless=args.headless))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
