"""
Per-exchange liquidity pool state.

One PoolState per exchange holds raw reserves, the derived current price and
a bounded newest-first list of recent events. Reserves are only ever set
together, and the price is recomputed on every reserve update.

Recent events use deque(maxlen=...) so appendleft() evicts the oldest entry
without any manual truncation.
"""

from __future__ import annotations

from collections import deque

from ..config import APT_DECIMALS, RECENT_EVENTS_CAPACITY, USDC_DECIMALS
from ..types import DecodedRecord, Exchange, EventKind, PoolEvent
from .pricing import reserve_price


class PoolState:
    """
    Mutable state of one AMM pool.

    Thread-safety: NOT thread-safe. Mutated only by the engine fold step.
    """

    __slots__ = (
        'exchange', 'base_decimals', 'quote_decimals',
        'base_reserve', 'quote_reserve', 'current_price', 'recent_events',
    )

    def __init__(
        self,
        exchange: Exchange,
        base_decimals: int = APT_DECIMALS,
        quote_decimals: int = USDC_DECIMALS,
        recent_capacity: int = RECENT_EVENTS_CAPACITY,
    ) -> None:
        self.exchange = exchange
        self.base_decimals = base_decimals
        self.quote_decimals = quote_decimals

        # Smallest-unit balances
        self.base_reserve: int = 0
        self.quote_reserve: int = 0
        self.current_price: float = 0.0

        # Newest first
        self.recent_events: deque[PoolEvent] = deque(maxlen=recent_capacity)

    def set_reserves(self, base: int, quote: int) -> None:
        """
        Overwrite both reserves and recompute the current price.

        The price is computed first, so a failure leaves the pool untouched.
        """
        if base < 0 or quote < 0:
            raise ValueError(f"{self.exchange.value}: negative reserve ({base}, {quote})")

        price = reserve_price(base, quote, self.base_decimals, self.quote_decimals)
        self.base_reserve = base
        self.quote_reserve = quote
        self.current_price = price

    def record_event(self, event: PoolEvent) -> None:
        """Insert at the newest position, evicting the oldest when full."""
        self.recent_events.appendleft(event)

    def events(self) -> tuple[PoolEvent, ...]:
        """Copy of recent events, newest first."""
        return tuple(self.recent_events)

    def __repr__(self) -> str:
        return (
            f"PoolState({self.exchange.value}, base={self.base_reserve}, "
            f"quote={self.quote_reserve}, price={self.current_price:.6f}, "
            f"events={len(self.recent_events)})"
        )


class PoolStateStore:
    """
    The two pool states, addressed by exchange.

    apply() is the only entry point the engine uses to mutate pools.
    """

    __slots__ = ('thalaswap', 'cellana')

    def __init__(
        self,
        base_decimals: int = APT_DECIMALS,
        quote_decimals: int = USDC_DECIMALS,
        recent_capacity: int = RECENT_EVENTS_CAPACITY,
    ) -> None:
        self.thalaswap = PoolState(Exchange.THALASWAP, base_decimals, quote_decimals, recent_capacity)
        self.cellana = PoolState(Exchange.CELLANA, base_decimals, quote_decimals, recent_capacity)

    def __getitem__(self, exchange: Exchange) -> PoolState:
        return self.thalaswap if exchange is Exchange.THALASWAP else self.cellana

    def apply(self, record: DecodedRecord) -> None:
        """
        Apply one decoded record to its pool.

        ThalaSwap records carry reserves on every swap/liquidity event; Cellana
        reserves arrive only through SyncEvent, and its swap/liquidity events
        touch the recent-event list alone.
        """
        pool = self[record.source]

        if record.reserves is not None:
            pool.set_reserves(record.reserves.base, record.reserves.quote)

        if record.event is not None and record.kind is not EventKind.SYNC:
            pool.record_event(record.event.to_pool_event())
