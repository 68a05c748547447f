"""Shared fixtures: feed record builders for both exchanges."""

import orjson
import pytest

from dex_spread.config import (
    CELLANA_ADDRESS,
    CELLANA_APT_IDENTIFIER,
    CELLANA_APT_USDC_POOL_ID,
    CELLANA_USDC_TOKEN_ID,
    THALA_APT_TOKEN_ID,
    THALA_APT_USDC_POOL_ID,
    THALA_USDC_TOKEN_ID,
    THALASWAP_ADDRESS,
)

# 2025-01-01T00:00:00Z in microseconds
BASE_TS_US = 1_735_689_600_000_000
RECEIVED_AT_MS = BASE_TS_US // 1000 + 250


def _envelope(name, contract, payload, block=0x100, **extra):
    """Wrap a payload in the feed envelope; `extra` overrides any envelope key."""
    record = {
        "decoded": payload,
        "block_number": hex(block),
        "log_index": "0x2",
        "timestamp": BASE_TS_US,
        "event_name": name,
        "transaction_hash": "0x" + "ab" * 32,
        "address": contract,
    }
    record.update(extra)
    return record


def _token_bytes(text):
    return {"fields": {"bytes": list(text.encode("ascii"))}}


@pytest.fixture
def thala_swap():
    """Builder for ThalaSwap SwapEvent records."""
    def build(
        idx_in=1,
        amount_in=1_000 * 10**6,
        amount_out=160 * 10**8,
        balances=(100 * 10**8, 600 * 10**6),
        tokens=(THALA_APT_TOKEN_ID, THALA_USDC_TOKEN_ID),
        pool_id=THALA_APT_USDC_POOL_ID,
        **extra,
    ):
        decoded = {
            "pool_obj": {"fields": {"inner": pool_id}},
            "pool_balances": list(balances),
            "metadata": [{"fields": {"inner": t}} for t in tokens],
            "idx_in": idx_in,
            "amount_in": amount_in,
            "amount_out": amount_out,
        }
        return _envelope("SwapEvent", THALASWAP_ADDRESS, decoded, **extra)
    return build


@pytest.fixture
def thala_liquidity():
    """Builder for ThalaSwap Add/RemoveLiquidityEvent records."""
    def build(event_name="AddLiquidityEvent", balances=(100 * 10**8, 600 * 10**6),
              pool_id=THALA_APT_USDC_POOL_ID, **extra):
        decoded = {
            "pool_obj": {"fields": {"inner": pool_id}},
            "pool_balances": list(balances),
        }
        return _envelope(event_name, THALASWAP_ADDRESS, decoded, **extra)
    return build


@pytest.fixture
def cellana_swap():
    """Builder for Cellana SwapEvent records (byte-vector tokens by default)."""
    def build(
        buy=True,
        amount_in=630 * 10**6,
        amount_out=100 * 10**8,
        from_token=None,
        to_token=None,
        pool_id=CELLANA_APT_USDC_POOL_ID,
        **extra,
    ):
        usdc = _token_bytes(CELLANA_USDC_TOKEN_ID)
        apt = _token_bytes(CELLANA_APT_IDENTIFIER)
        decoded = {
            "pool": pool_id,
            "from_token": from_token if from_token is not None else (usdc if buy else apt),
            "to_token": to_token if to_token is not None else (apt if buy else usdc),
            "amount_in": amount_in,
            "amount_out": amount_out,
        }
        return _envelope("SwapEvent", CELLANA_ADDRESS, decoded, **extra)
    return build


@pytest.fixture
def cellana_sync():
    """Builder for Cellana SyncEvent records (reserves_1 USDC, reserves_2 APT)."""
    def build(usdc=630 * 10**6, apt=100 * 10**8, pool_id=CELLANA_APT_USDC_POOL_ID, **extra):
        decoded = {"pool": pool_id, "reserves_1": usdc, "reserves_2": apt}
        return _envelope("SyncEvent", CELLANA_ADDRESS, decoded, **extra)
    return build


@pytest.fixture
def cellana_liquidity():
    def build(event_name="AddLiquidityEvent", pool_id=CELLANA_APT_USDC_POOL_ID, **extra):
        return _envelope(event_name, CELLANA_ADDRESS, {"pool": pool_id}, **extra)
    return build


@pytest.fixture
def to_line():
    """Serialize a record dict to one feed line."""
    def dump(record):
        return orjson.dumps(record)
    return dump


@pytest.fixture
def to_chunk():
    """Join records into one newline-delimited chunk."""
    def dump(*records):
        return b"\n".join(orjson.dumps(r) for r in records) + b"\n"
    return dump
