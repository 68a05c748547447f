"""
Running aggregates: spread history ring and per-exchange traded volume.

HOT PATH: SpreadHistory.append() and VolumeAccumulator.record_trade() run
once per processed record.

Performance strategy:
1. Spread history is a preallocated numpy array with a write index, so an
   append is O(1) and the buffer is never resized
2. Oldest-first ordering is materialised only when a snapshot asks for it
3. Volume keeps two floats; shares are derived at read time
"""

from __future__ import annotations

import numpy as np

from ..config import SPREAD_HISTORY_CAPACITY
from ..types import Exchange, VolumeView


class SpreadHistory:
    """
    Fixed-length FIFO of spread samples (decimal fractions).

    Always exactly `capacity` long, zero-filled at construction.

    Thread-safety: NOT thread-safe. Designed for single-threaded async use.
    """

    __slots__ = ('capacity', '_values', '_next')

    def __init__(self, capacity: int = SPREAD_HISTORY_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._values = np.zeros(capacity, dtype=np.float64)
        # Index of the oldest sample, which is also the next slot to overwrite
        self._next = 0

    def append(self, sample: float) -> None:
        """Drop the oldest sample and add `sample` as the newest. O(1)."""
        self._values[self._next] = sample
        self._next = (self._next + 1) % self.capacity

    def values(self) -> tuple[float, ...]:
        """Copy of all samples, oldest first."""
        ordered = np.concatenate((self._values[self._next:], self._values[:self._next]))
        return tuple(ordered.tolist())

    @property
    def latest(self) -> float:
        return float(self._values[self._next - 1])

    def __len__(self) -> int:
        return self.capacity


class VolumeAccumulator:
    """
    Cumulative traded quote volume per exchange.

    Totals only grow; there is no decay and no windowing.
    """

    __slots__ = ('_totals',)

    def __init__(self) -> None:
        self._totals: dict[Exchange, float] = {
            Exchange.THALASWAP: 0.0,
            Exchange.CELLANA: 0.0,
        }

    def record_trade(self, exchange: Exchange, quote_amount: float) -> None:
        """Add a trade's quote amount to that exchange's total."""
        if quote_amount < 0:
            raise ValueError(f"negative trade volume: {quote_amount}")
        self._totals[exchange] += quote_amount

    def total(self, exchange: Exchange) -> float:
        return self._totals[exchange]

    @property
    def combined(self) -> float:
        return self._totals[Exchange.THALASWAP] + self._totals[Exchange.CELLANA]

    def percentages(self) -> tuple[float, float]:
        """(ThalaSwap %, Cellana %); 50/50 when nothing has traded yet."""
        combined = self.combined
        if combined <= 0:
            return 50.0, 50.0
        return (
            self._totals[Exchange.THALASWAP] / combined * 100,
            self._totals[Exchange.CELLANA] / combined * 100,
        )

    def view(self) -> VolumeView:
        thala_pct, cellana_pct = self.percentages()
        return VolumeView(
            thalaswap_volume=self._totals[Exchange.THALASWAP],
            cellana_volume=self._totals[Exchange.CELLANA],
            total_volume=self.combined,
            thalaswap_pct=thala_pct,
            cellana_pct=cellana_pct,
        )
