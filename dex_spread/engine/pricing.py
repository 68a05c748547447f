"""
Constant-product pricing over pool state.

All functions are pure: they read a PoolState and never mutate it. Any zero
reserve or zero price yields 0 results instead of a division error.

Units:
- Reserves are raw integers; prices are quote per base in decimal units
- price_impact() and cross_spread() return percentages
- depth_table() rows carry decimal fractions, like the spread history
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from ..types import DepthRow, LiquidityView, PriceImpact

if TYPE_CHECKING:
    from .pool_state import PoolState


def reserve_price(base: int, quote: int, base_decimals: int, quote_decimals: int) -> float:
    """Quote per base from raw reserves, adjusted for decimals. 0 if either reserve is 0."""
    if base == 0 or quote == 0:
        return 0.0

    base_adjusted = base / 10 ** base_decimals
    quote_adjusted = quote / 10 ** quote_decimals
    return quote_adjusted / base_adjusted


def current_price(state: PoolState) -> float:
    return reserve_price(
        state.base_reserve, state.quote_reserve, state.base_decimals, state.quote_decimals,
    )


def price_after_trade(quote_amount_in: float, state: PoolState) -> float:
    """
    Price after buying base with `quote_amount_in` quote units.

    x * y = k with x = quote reserve, y = base reserve.
    """
    if state.base_reserve == 0 or state.quote_reserve == 0:
        return 0.0

    delta = quote_amount_in * 10 ** state.quote_decimals
    x = state.quote_reserve
    y = state.base_reserve
    base_out = y - (x * y) / (x + delta)

    new_quote = (x + delta) / 10 ** state.quote_decimals
    new_base = (y - base_out) / 10 ** state.base_decimals
    return new_quote / new_base


def price_impact(quote_amount_in: float, state: PoolState) -> PriceImpact:
    """Resulting price and percent move for a hypothetical buy."""
    price = current_price(state)
    if price == 0:
        return PriceImpact(0.0, 0.0)

    after = price_after_trade(quote_amount_in, state)
    return PriceImpact(after, (after - price) / price * 100)


def spread_pct(thala_price: float, cellana_price: float) -> float:
    """(Cellana - ThalaSwap) / min * 100. Positive means Cellana is priced above."""
    if thala_price == 0 or cellana_price == 0:
        return 0.0
    return (cellana_price - thala_price) / min(thala_price, cellana_price) * 100


def cross_spread(thala: PoolState, cellana: PoolState) -> float:
    """Cross-exchange spread of current prices, in percent."""
    return spread_pct(thala.current_price, cellana.current_price)


def depth_table(
    tiers: Sequence[float],
    thala: PoolState,
    cellana: PoolState,
) -> tuple[DepthRow, ...]:
    """
    Price impact at each notional tier on both pools.

    Tier spread is computed from the two post-trade prices and is 0 unless
    both are positive.
    """
    rows: list[DepthRow] = []

    for amount in tiers:
        thala_result = price_impact(amount, thala)
        cellana_result = price_impact(amount, cellana)
        spread = 0.0
        if thala_result.price > 0 and cellana_result.price > 0:
            spread = spread_pct(thala_result.price, cellana_result.price)

        rows.append(DepthRow(
            amount=amount,
            thala_price=thala_result.price,
            thala_impact=thala_result.impact / 100,
            cellana_price=cellana_result.price,
            cellana_impact=cellana_result.impact / 100,
            spread=spread / 100,
        ))

    return tuple(rows)


def liquidity_view(state: PoolState) -> LiquidityView:
    """Decimal balances, price and TVL (quote + base valued at the pool price)."""
    base_balance = state.base_reserve / 10 ** state.base_decimals
    quote_balance = state.quote_reserve / 10 ** state.quote_decimals
    price = current_price(state)

    return LiquidityView(
        exchange=state.exchange,
        base_balance=base_balance,
        quote_balance=quote_balance,
        price=price,
        tvl=quote_balance + base_balance * price,
    )
