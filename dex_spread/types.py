"""
Data types for DEX Spread.

Performance notes:
- Using NamedTuple for immutable, memory-efficient structures
- These are the UI-facing data structures; mutable engine state lives in engine/
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple


class Exchange(str, Enum):
    """The two tracked AMM protocols. Order matters: THALASWAP is preferred."""
    THALASWAP = "ThalaSwap"
    CELLANA = "Cellana"


class EventKind(str, Enum):
    SWAP = "Swap"
    ADD_LIQUIDITY = "AddLiquidity"
    REMOVE_LIQUIDITY = "RemoveLiquidity"
    SYNC = "Sync"  # Cellana only, never stored as a PoolEvent


class Direction(str, Enum):
    BUY = "BUY"          # Base asset (APT) bought with quote (USDC)
    SELL = "SELL"
    UNKNOWN = "UNKNOWN"


class RawEvent(NamedTuple):
    """One decoded log record as delivered by the feed (one JSON line)."""
    decoded: Any                 # dict once resolved, raw text if undecodable
    block_number: str            # Hex chain version
    log_index: str               # Hex
    timestamp_us: int            # Microseconds since epoch
    event_name: str
    address: str | None
    transaction_hash: str | None
    received_at_ms: int          # Wall clock ms when the chunk arrived


class PoolEvent(NamedTuple):
    """Single swap or liquidity event on one pool."""
    kind: EventKind
    direction: Direction
    base_amount: float           # APT, decimal units
    quote_amount: float          # USDC, decimal units
    price: float                 # quote / base, 0 if base is 0
    chain_version: str
    log_index: str
    observed_at: datetime
    latency_ms: float
    tx_hash: str


class UnifiedEvent(NamedTuple):
    """PoolEvent tagged with the exchange it came from."""
    source: Exchange
    kind: EventKind
    direction: Direction
    base_amount: float
    quote_amount: float
    price: float
    chain_version: str
    log_index: str
    observed_at: datetime
    latency_ms: float
    tx_hash: str

    def to_pool_event(self) -> PoolEvent:
        return PoolEvent(*self[1:])


class Reserves(NamedTuple):
    """Raw pool balances in smallest units."""
    base: int
    quote: int


class DecodedRecord(NamedTuple):
    """
    Normalizer output for one accepted record.

    A swap or liquidity record carries `event`; a record that reports pool
    balances carries `reserves`. ThalaSwap swaps carry both, Cellana syncs only
    reserves.
    """
    source: Exchange
    kind: EventKind
    event: UnifiedEvent | None
    reserves: Reserves | None


class PriceImpact(NamedTuple):
    price: float     # Price after the hypothetical trade
    impact: float    # Percent move from the current price


class DepthRow(NamedTuple):
    """
    One DOM tier comparing both pools.

    Impacts and spread are decimal fractions (0.01 == 1%), same unit as the
    spread history.
    """
    amount: float            # Notional USDC in
    thala_price: float
    thala_impact: float
    cellana_price: float
    cellana_impact: float
    spread: float


class LiquidityView(NamedTuple):
    """Read-only view of one pool's balances for the liquidity pane."""
    exchange: Exchange
    base_balance: float      # APT, decimal units
    quote_balance: float     # USDC, decimal units
    price: float
    tvl: float               # In quote units


class SwapView(NamedTuple):
    """Latest swap as displayed."""
    dex: Exchange
    side: Direction
    amount: float            # APT
    price: float
    usdc: float
    hash: str
    latency_ms: float
    chain_version: str


class StatusView(NamedTuple):
    connected: bool
    api_latency_ms: float         # Chain event -> app receipt
    processing_time_ms: float     # Time spent folding the record
    total_latency_ms: float       # Chain event -> processing done
    events_processed: int
    current_version: str


class VolumeView(NamedTuple):
    thalaswap_volume: float
    cellana_volume: float
    total_volume: float
    thalaswap_pct: float
    cellana_pct: float


class Snapshot(NamedTuple):
    """
    Complete engine snapshot for UI rendering.

    Produced once per processed chunk. `latest_swap` is None only for the
    status-only view used before any price data exists.
    """
    latest_swap: SwapView | None
    spread_history: tuple[float, ...]   # Oldest first, decimal fractions
    depth: tuple[DepthRow, ...]
    status: StatusView
    volume: VolumeView
