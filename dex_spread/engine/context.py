"""
Engine context: the single owner of all mutable analytics state.

Created by the caller at stream start and passed to the pipeline; there are
no module-level singletons. fold_chunk() is the only mutation entry point and
folds records strictly in line order, because volume and spread history are
order-sensitive running aggregates.

HOT PATH: fold_record() runs once per feed line.
"""

from __future__ import annotations

import logging
import time

from ..config import EngineConfig
from ..datafeed.normalizer import EventNormalizer, parse_record
from ..types import (
    DecodedRecord,
    EventKind,
    LiquidityView,
    RawEvent,
    Snapshot,
    StatusView,
    UnifiedEvent,
)
from .buffers import SpreadHistory, VolumeAccumulator
from .pool_state import PoolStateStore
from .pricing import cross_spread, liquidity_view
from .snapshot import build_snapshot, status_only_snapshot

logger = logging.getLogger(__name__)


class EngineStatus:
    """Connection flag, latency of the last record and the record counter."""

    __slots__ = (
        'connected', 'api_latency_ms', 'processing_time_ms',
        'total_latency_ms', 'events_processed',
    )

    def __init__(self) -> None:
        self.connected: bool = False
        # Hold their last values between events
        self.api_latency_ms: float = 0.0
        self.processing_time_ms: float = 0.0
        self.total_latency_ms: float = 0.0
        self.events_processed: int = 0

    def view(self, current_version: str) -> StatusView:
        return StatusView(
            connected=self.connected,
            api_latency_ms=self.api_latency_ms,
            processing_time_ms=self.processing_time_ms,
            total_latency_ms=self.total_latency_ms,
            events_processed=self.events_processed,
            current_version=current_version,
        )


class EngineContext:
    """
    Normalization + mutation pipeline state for one stream.

    Thread-safety: NOT thread-safe. Designed for single-threaded async use.

    Usage:
        ctx = EngineContext()
        ctx.fold_chunk(chunk, received_at_ms)
        snapshot = ctx.snapshot()
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()

        self.normalizer = EventNormalizer(self.config)
        self.pools = PoolStateStore(
            base_decimals=self.config.base_decimals,
            quote_decimals=self.config.quote_decimals,
            recent_capacity=self.config.recent_events_capacity,
        )
        self.spread_history = SpreadHistory(self.config.spread_history_capacity)
        self.volume = VolumeAccumulator()
        self.status = EngineStatus()

        self.latest_swap: UnifiedEvent | None = None
        self.chunks_processed: int = 0

    def fold_chunk(self, chunk: bytes | str, received_at_ms: int | None = None) -> int:
        """
        Fold every record of one chunk, in order.

        All records share the chunk's receipt time. Returns the number of
        well-formed records (malformed lines are skipped and not counted).
        """
        if received_at_ms is None:
            received_at_ms = int(time.time() * 1000)
        if isinstance(chunk, str):
            chunk = chunk.encode()

        parsed = 0
        for line in chunk.split(b"\n"):
            if not line.strip():
                continue
            raw = parse_record(line, received_at_ms)
            if raw is None:
                continue
            parsed += 1
            self.fold_record(raw)

        self.chunks_processed += 1
        return parsed

    def fold_record(self, raw: RawEvent) -> DecodedRecord | None:
        """
        Count, time and apply one parsed record.

        HOT PATH. Returns the decoded record, or None if it was dropped.
        """
        status = self.status
        status.events_processed += 1

        start = time.perf_counter()
        event_ms = raw.timestamp_us // 1000
        status.api_latency_ms = float(raw.received_at_ms - event_ms)

        if self.normalizer.source_of(raw) is None:
            return None

        record = self.normalizer.normalize(raw)
        if record is not None:
            self._apply(record)

        status.processing_time_ms = (time.perf_counter() - start) * 1000
        status.total_latency_ms = time.time() * 1000 - event_ms
        return record

    def _apply(self, record: DecodedRecord) -> None:
        self.pools.apply(record)

        event = record.event
        if event is not None and event.kind is EventKind.SWAP:
            # Unknown-direction swaps still land here with a zero amount
            self.volume.record_trade(record.source, event.quote_amount)
            self.latest_swap = event

        # One sample per processed record, not per chunk
        spread = cross_spread(self.pools.thalaswap, self.pools.cellana)
        self.spread_history.append(spread / 100)

    def snapshot(self) -> Snapshot:
        """Full snapshot, or the status-only view when no price data exists yet."""
        snap = build_snapshot(
            self.pools.thalaswap,
            self.pools.cellana,
            self.latest_swap,
            self.spread_history,
            self.volume,
            self.status,
            self.config.depth_tiers,
        )
        if snap is None:
            snap = status_only_snapshot(
                self.spread_history,
                self.volume,
                self.status,
                self.config.depth_tiers,
            )
        return snap

    def liquidity(self) -> tuple[LiquidityView, LiquidityView]:
        """Read access to both pools for the liquidity pane (ThalaSwap, Cellana)."""
        return liquidity_view(self.pools.thalaswap), liquidity_view(self.pools.cellana)
