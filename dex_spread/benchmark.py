#!/usr/bin/env python3
"""
Micro-benchmark for DEX Spread performance.

Tests:
1. Normalizer throughput (parse + decode)
2. Engine fold throughput (parse + decode + state + spread)
3. Snapshot generation speed

Usage:
    python -m dex_spread.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev

import orjson

from .config import (
    CELLANA_ADDRESS,
    CELLANA_APT_IDENTIFIER_BYTES,
    CELLANA_APT_USDC_POOL_ID,
    CELLANA_USDC_TOKEN_BYTES,
    THALA_APT_TOKEN_ID,
    THALA_APT_USDC_POOL_ID,
    THALA_USDC_TOKEN_ID,
    THALASWAP_ADDRESS,
)
from .datafeed.normalizer import EventNormalizer, parse_record
from .engine.context import EngineContext


def generate_thala_swap(block: int, apt_price: float = 6.0) -> dict:
    """Generate a mock ThalaSwap SwapEvent record."""
    apt_reserve = random.randint(90_000, 110_000) * 10**8
    usdc_reserve = int(apt_reserve / 10**8 * apt_price * 10**6)
    buy = random.random() > 0.5
    usdc_in = random.randint(10, 5_000) * 10**6

    return {
        "decoded": {
            "pool_obj": {"fields": {"inner": THALA_APT_USDC_POOL_ID}},
            "pool_balances": [apt_reserve, usdc_reserve],
            "metadata": [
                {"fields": {"inner": THALA_APT_TOKEN_ID}},
                {"fields": {"inner": THALA_USDC_TOKEN_ID}},
            ],
            "idx_in": 1 if buy else 0,
            "amount_in": usdc_in if buy else int(usdc_in / apt_price * 100),
            "amount_out": int(usdc_in / apt_price * 100) if buy else usdc_in,
        },
        "block_number": hex(block),
        "log_index": hex(random.randint(0, 20)),
        "timestamp": int(time.time() * 1_000_000),
        "event_name": "SwapEvent",
        "transaction_hash": "0x" + "%064x" % random.getrandbits(256),
        "address": THALASWAP_ADDRESS,
    }


def generate_cellana_sync(block: int, apt_price: float = 6.05) -> dict:
    """Generate a mock Cellana SyncEvent record."""
    apt_reserve = random.randint(40_000, 60_000) * 10**8
    usdc_reserve = int(apt_reserve / 10**8 * apt_price * 10**6)

    return {
        "decoded": {
            "pool": CELLANA_APT_USDC_POOL_ID,
            "reserves_1": str(usdc_reserve),
            "reserves_2": hex(apt_reserve),
        },
        "block_number": hex(block),
        "log_index": "0x1",
        "timestamp": int(time.time() * 1_000_000),
        "event_name": "SyncEvent",
        "address": CELLANA_ADDRESS,
    }


def generate_cellana_swap(block: int) -> dict:
    """Generate a mock Cellana SwapEvent record with byte-vector tokens."""
    buy = random.random() > 0.5
    usdc = {"fields": {"bytes": list(CELLANA_USDC_TOKEN_BYTES)}}
    apt = {"fields": {"bytes": list(CELLANA_APT_IDENTIFIER_BYTES)}}

    return {
        "decoded": orjson.dumps({
            "pool": CELLANA_APT_USDC_POOL_ID,
            "from_token": usdc if buy else apt,
            "to_token": apt if buy else usdc,
            "amount_in": random.randint(1, 10_000) * 10**6,
            "amount_out": random.randint(1, 1_000) * 10**8,
        }).decode(),
        "block_number": hex(block),
        "log_index": "0x0",
        "timestamp": int(time.time() * 1_000_000),
        "event_name": "SwapEvent",
        "address": CELLANA_ADDRESS,
    }


def generate_lines(count: int) -> list[bytes]:
    """Mixed feed of Thala swaps, Cellana syncs and Cellana swaps."""
    generators = (generate_thala_swap, generate_cellana_sync, generate_cellana_swap)
    return [orjson.dumps(generators[i % 3](1_000_000 + i)) for i in range(count)]


def benchmark_normalizer(iterations: int = 30000) -> None:
    """Benchmark record parsing + decoding."""
    print("\n=== Normalizer Benchmark ===")

    normalizer = EventNormalizer()
    lines = generate_lines(iterations)
    now_ms = int(time.time() * 1000)

    start = time.perf_counter()
    for line in lines:
        raw = parse_record(line, now_ms)
        normalizer.normalize(raw)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Records decoded: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} records/sec")
    print(f"  Per record: {elapsed/iterations*1_000_000:.2f}µs")


def benchmark_fold(iterations: int = 30000, chunk_size: int = 10) -> None:
    """Benchmark full chunk folding into engine state."""
    print("\n=== Engine Fold Benchmark ===")

    ctx = EngineContext()
    lines = generate_lines(iterations)
    chunks = [b"\n".join(lines[i:i + chunk_size]) for i in range(0, iterations, chunk_size)]
    now_ms = int(time.time() * 1000)

    start = time.perf_counter()
    for chunk in chunks:
        ctx.fold_chunk(chunk, now_ms)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Records folded: {iterations:,} in {len(chunks):,} chunks")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} records/sec")


def benchmark_snapshot(iterations: int = 2000) -> None:
    """Benchmark snapshot generation (what the UI needs per chunk)."""
    print("\n=== Snapshot Generation Benchmark ===")

    ctx = EngineContext()
    ctx.fold_chunk(b"\n".join(generate_lines(300)))

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        ctx.snapshot()
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  Max snapshots/sec: {1000/avg_time:,.0f}")


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("DEX Spread Performance Benchmark")
    print("=" * 60)

    benchmark_normalizer()
    benchmark_fold()
    benchmark_snapshot()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
