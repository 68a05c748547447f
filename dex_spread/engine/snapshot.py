"""
Snapshot assembly.

Reads pool states, the latest swap, the spread history, volume and status,
and returns an immutable Snapshot. Nothing here mutates engine state: a
placeholder swap synthesized for display is never written back.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from ..types import (
    DepthRow,
    Direction,
    Exchange,
    Snapshot,
    SwapView,
    UnifiedEvent,
)
from .pricing import depth_table

if TYPE_CHECKING:
    from .buffers import SpreadHistory, VolumeAccumulator
    from .context import EngineStatus
    from .pool_state import PoolState

PLACEHOLDER_TX_HASH = "0x0000000000000000"
PLACEHOLDER_VERSION = "0x0"


def swap_view(event: UnifiedEvent) -> SwapView:
    return SwapView(
        dex=event.source,
        side=event.direction,
        amount=event.base_amount,
        price=event.price,
        usdc=event.quote_amount,
        hash=event.tx_hash,
        latency_ms=event.latency_ms,
        chain_version=event.chain_version,
    )


def placeholder_swap(thala: PoolState, cellana: PoolState) -> SwapView | None:
    """
    Zero-amount swap priced from whichever pool has a price.

    ThalaSwap wins when both do. None when neither pool has a price.
    """
    if thala.current_price > 0:
        source, price = Exchange.THALASWAP, thala.current_price
    elif cellana.current_price > 0:
        source, price = Exchange.CELLANA, cellana.current_price
    else:
        return None

    return SwapView(
        dex=source,
        side=Direction.BUY,
        amount=0.0,
        price=price,
        usdc=0.0,
        hash=PLACEHOLDER_TX_HASH,
        latency_ms=0.0,
        chain_version=PLACEHOLDER_VERSION,
    )


def build_snapshot(
    thala: PoolState,
    cellana: PoolState,
    latest_swap: UnifiedEvent | None,
    spread_history: SpreadHistory,
    volume: VolumeAccumulator,
    status: EngineStatus,
    tiers: Sequence[float],
) -> Snapshot | None:
    """
    Assemble a full snapshot, or None when there is nothing to show yet.

    With no swap observed, a placeholder swap stands in as long as one pool
    has a price. With neither, the caller falls back to status_only_snapshot().
    """
    if latest_swap is not None:
        swap = swap_view(latest_swap)
    else:
        swap = placeholder_swap(thala, cellana)
        if swap is None:
            return None

    return Snapshot(
        latest_swap=swap,
        spread_history=spread_history.values(),
        depth=depth_table(tiers, thala, cellana),
        status=status.view(swap.chain_version),
        volume=volume.view(),
    )


def status_only_snapshot(
    spread_history: SpreadHistory,
    volume: VolumeAccumulator,
    status: EngineStatus,
    tiers: Sequence[float],
) -> Snapshot:
    """Minimal view used before any price data: status, counters, zeroed depth."""
    return Snapshot(
        latest_swap=None,
        spread_history=spread_history.values(),
        depth=tuple(DepthRow(amount, 0.0, 0.0, 0.0, 0.0, 0.0) for amount in tiers),
        status=status.view(PLACEHOLDER_VERSION),
        volume=volume.view(),
    )
