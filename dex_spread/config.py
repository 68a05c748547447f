"""
Static configuration for DEX Spread.

Everything the engine matches against (contract addresses, pool ids, token
ids, decimals) is fixed here and never parsed from the feed. Runtime options
(endpoint, credentials, logging) come from the environment via .env.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Contract addresses (exact match against the record's `address`)
THALASWAP_ADDRESS = "0x007730cd28ee1cdc9e999336cbc430f99e7c44397c0aa77516f6f23a78559bb5"
CELLANA_ADDRESS = "0x4bf51972879e3b95c4781a5cdcb9e1ee24ef483e7d22f2d903626f126df62bd1"

# ThalaSwap APT/USDC pool and token object ids
THALA_APT_USDC_POOL_ID = "a928222429caf1924c944973c2cd9fc306ec41152ba4de27a001327021a4dff7"
THALA_APT_TOKEN_ID = "000000000000000000000000000000000000000000000000000000000000000a"
THALA_USDC_TOKEN_ID = "bae207659db88bea0cbead6da0ed00aac12edcdda169e591cd41c94180b46f3b"

# Cellana APT/USDC pool and token identifiers
CELLANA_APT_USDC_POOL_ID = "0x71c6ae634bd3c36470eb7e7f4fb0912973bb31543dfdb7d7fb6863d886d81d67"
CELLANA_USDC_TOKEN_ID = "bae207659db88bea0cbead6da0ed00aac12edcdda169e591cd41c94180b46f3b"
CELLANA_APT_IDENTIFIER = "aptos_coin::AptosCoin"

# Same identifiers as the byte sequences Cellana emits
CELLANA_USDC_TOKEN_BYTES = tuple(CELLANA_USDC_TOKEN_ID.encode("ascii"))
CELLANA_APT_IDENTIFIER_BYTES = tuple(CELLANA_APT_IDENTIFIER.encode("ascii"))

APT_DECIMALS = 8
USDC_DECIMALS = 6

# DOM evaluation tiers in USDC
DEPTH_TIERS = (1_000.0, 10_000.0, 100_000.0)

SPREAD_HISTORY_CAPACITY = 120
RECENT_EVENTS_CAPACITY = 10

# Feed event names -> what they carry
SWAP_EVENT = "SwapEvent"
ADD_LIQUIDITY_EVENT = "AddLiquidityEvent"
REMOVE_LIQUIDITY_EVENT = "RemoveLiquidityEvent"
SYNC_EVENT = "SyncEvent"

# Pangea endpoint
DEFAULT_PANGEA_ENDPOINT = "aptos.app.pangea.foundation"
DEFAULT_FROM_BLOCK = "-10000"


@dataclass(frozen=True)
class EngineConfig:
    """Static options consumed by the normalizer, store and snapshot builder."""
    thalaswap_address: str = THALASWAP_ADDRESS
    cellana_address: str = CELLANA_ADDRESS
    thala_pool_id: str = THALA_APT_USDC_POOL_ID
    cellana_pool_id: str = CELLANA_APT_USDC_POOL_ID
    thala_base_token_id: str = THALA_APT_TOKEN_ID
    thala_quote_token_id: str = THALA_USDC_TOKEN_ID
    cellana_base_identifier: str = CELLANA_APT_IDENTIFIER
    cellana_quote_identifier: str = CELLANA_USDC_TOKEN_ID
    base_decimals: int = APT_DECIMALS
    quote_decimals: int = USDC_DECIMALS
    depth_tiers: tuple[float, ...] = DEPTH_TIERS
    spread_history_capacity: int = SPREAD_HISTORY_CAPACITY
    recent_events_capacity: int = RECENT_EVENTS_CAPACITY

    @property
    def addresses(self) -> tuple[str, str]:
        return (self.thalaswap_address, self.cellana_address)

    @property
    def event_names(self) -> tuple[str, ...]:
        return (SWAP_EVENT, ADD_LIQUIDITY_EVENT, REMOVE_LIQUIDITY_EVENT, SYNC_EVENT)


@dataclass(frozen=True)
class Settings:
    """Runtime options for the transport and the process."""
    endpoint: str = DEFAULT_PANGEA_ENDPOINT
    username: str = ""
    password: str = ""
    from_block: str = DEFAULT_FROM_BLOCK
    log_level: str = "INFO"
    log_file: str | None = None
    engine: EngineConfig = field(default_factory=EngineConfig)


def load_settings() -> Settings:
    """Build Settings from the environment, after loading a .env file if present."""
    load_dotenv()

    return Settings(
        endpoint=os.getenv("PANGEA_URL", DEFAULT_PANGEA_ENDPOINT),
        username=os.getenv("PANGEA_USERNAME", ""),
        password=os.getenv("PANGEA_PASSWORD", ""),
        from_block=os.getenv("PANGEA_FROM_BLOCK", DEFAULT_FROM_BLOCK),
        log_level=os.getenv("DEX_SPREAD_LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("DEX_SPREAD_LOG_FILE") or None,
    )
