"""
Event normalizer for ThalaSwap and Cellana decoded logs.

Turns one raw feed record into a DecodedRecord (unified event and/or reserve
update) or drops it.

Every payload variant (exchange x event kind) has its own decode function
that validates the shape it needs and raises PayloadShapeError otherwise.
normalize() turns any shape failure into a silent drop: unknown addresses,
unknown event names, other pools and undecodable payloads are expected,
high-frequency occurrences on a broad upstream filter.

HOT PATH: parse_record() and normalize() run once per feed line.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

import orjson

from ..config import (
    ADD_LIQUIDITY_EVENT,
    REMOVE_LIQUIDITY_EVENT,
    SWAP_EVENT,
    SYNC_EVENT,
    EngineConfig,
)
from ..types import (
    DecodedRecord,
    Direction,
    EventKind,
    Exchange,
    RawEvent,
    Reserves,
    UnifiedEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_LOG_INDEX = "0x0"
UNKNOWN_TX_HASH = "unknown"

# Move u128 max; anything larger is not an on-chain amount
MAX_AMOUNT = 2**128 - 1
# 9999-12-31T23:59:59.999999Z, the last instant datetime can represent
MAX_TIMESTAMP_US = 253_402_300_799_999_999

THALA_EVENT_KINDS = {
    SWAP_EVENT: EventKind.SWAP,
    ADD_LIQUIDITY_EVENT: EventKind.ADD_LIQUIDITY,
    REMOVE_LIQUIDITY_EVENT: EventKind.REMOVE_LIQUIDITY,
}

# Cellana is the only exchange that emits SyncEvent
CELLANA_EVENT_KINDS = {
    **THALA_EVENT_KINDS,
    SYNC_EVENT: EventKind.SYNC,
}


class PayloadShapeError(ValueError):
    """A decoded payload does not have the shape its variant requires."""


def parse_record(line: bytes | str, received_at_ms: int) -> RawEvent | None:
    """
    Parse one feed line into a RawEvent.

    Returns None for malformed JSON or a line missing the envelope fields
    (event_name, block_number, numeric timestamp within datetime range).
    Such lines never count as processed events.
    """
    try:
        data = orjson.loads(line)
    except orjson.JSONDecodeError:
        return None

    if not isinstance(data, dict):
        return None

    event_name = data.get("event_name")
    block_number = data.get("block_number")
    timestamp = data.get("timestamp")
    if not isinstance(event_name, str) or not isinstance(block_number, str):
        return None
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return None
    if not 0 <= timestamp <= MAX_TIMESTAMP_US:
        return None

    address = data.get("address")
    tx_hash = data.get("transaction_hash")
    log_index = data.get("log_index")

    return RawEvent(
        decoded=resolve_payload(data.get("decoded")),
        block_number=block_number,
        log_index=log_index if isinstance(log_index, str) and log_index else DEFAULT_LOG_INDEX,
        timestamp_us=int(timestamp),
        event_name=event_name,
        address=address if isinstance(address, str) else None,
        transaction_hash=tx_hash if isinstance(tx_hash, str) else None,
        received_at_ms=received_at_ms,
    )


def resolve_payload(decoded: Any) -> Any:
    """Parse a string payload into structured form; keep the raw text on failure."""
    if isinstance(decoded, (str, bytes)):
        try:
            return orjson.loads(decoded)
        except orjson.JSONDecodeError:
            return decoded
    return decoded


def normalize_pool_id(value: str) -> str:
    """Lowercase, without an optional 0x prefix."""
    value = value.lower()
    return value[2:] if value.startswith("0x") else value


def parse_amount(value: Any) -> int:
    """
    Parse an on-chain integer amount.

    Accepts JSON integers, integral floats, decimal strings and 0x-prefixed
    hex strings. Negative, non-numeric or larger-than-u128 values are a
    shape error.
    """
    if isinstance(value, bool):
        raise PayloadShapeError(f"boolean amount: {value!r}")

    if isinstance(value, int):
        amount = value
    elif isinstance(value, float) and value.is_integer():
        amount = int(value)
    elif isinstance(value, str):
        try:
            if value.lower().startswith("0x"):
                amount = int(value, 16)
            else:
                amount = int(value)
        except ValueError:
            raise PayloadShapeError(f"non-numeric amount: {value!r}") from None
    else:
        raise PayloadShapeError(f"unsupported amount: {value!r}")

    if amount < 0:
        raise PayloadShapeError(f"negative amount: {amount}")
    if amount > MAX_AMOUNT:
        raise PayloadShapeError("amount exceeds u128")
    return amount


def bytes_to_text(seq: Any) -> str:
    """Decode a Move byte vector ([int, ...]) into text, one char per byte."""
    if not isinstance(seq, list):
        raise PayloadShapeError("token bytes is not a list")
    try:
        return bytes(seq).decode("latin-1")
    except (TypeError, ValueError):
        raise PayloadShapeError("token bytes out of range") from None


def _field(obj: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, raising PayloadShapeError on any missing step."""
    for key in path:
        try:
            obj = obj[key]
        except (KeyError, IndexError, TypeError):
            raise PayloadShapeError(f"missing field {key!r}") from None
    return obj


def _token_text(token: Any) -> str:
    """Cellana tokens arrive as {fields: {bytes: [...]}} or plain strings."""
    if isinstance(token, dict):
        fields = token.get("fields")
        if isinstance(fields, dict) and "bytes" in fields:
            return bytes_to_text(fields["bytes"])
    if isinstance(token, str):
        return token
    return ""


class EventNormalizer:
    """
    Stateless per-record decoder for both exchanges.

    Thread-safety: holds only immutable configuration.
    """

    __slots__ = (
        'config', '_sources', '_event_kinds', '_pool_ids', '_decoders',
        '_base_scale', '_quote_scale',
    )

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()

        self._sources: dict[str, Exchange] = {
            self.config.thalaswap_address: Exchange.THALASWAP,
            self.config.cellana_address: Exchange.CELLANA,
        }
        self._event_kinds: dict[Exchange, dict[str, EventKind]] = {
            Exchange.THALASWAP: THALA_EVENT_KINDS,
            Exchange.CELLANA: CELLANA_EVENT_KINDS,
        }
        self._pool_ids: dict[Exchange, str] = {
            Exchange.THALASWAP: normalize_pool_id(self.config.thala_pool_id),
            Exchange.CELLANA: normalize_pool_id(self.config.cellana_pool_id),
        }

        # Tagged union dispatch: one decoder per (exchange, kind) variant
        self._decoders: dict[
            tuple[Exchange, EventKind],
            Callable[[EventKind, dict, RawEvent], DecodedRecord],
        ] = {
            (Exchange.THALASWAP, EventKind.SWAP): self._decode_thala_swap,
            (Exchange.THALASWAP, EventKind.ADD_LIQUIDITY): self._decode_thala_liquidity,
            (Exchange.THALASWAP, EventKind.REMOVE_LIQUIDITY): self._decode_thala_liquidity,
            (Exchange.CELLANA, EventKind.SWAP): self._decode_cellana_swap,
            (Exchange.CELLANA, EventKind.ADD_LIQUIDITY): self._decode_cellana_liquidity,
            (Exchange.CELLANA, EventKind.REMOVE_LIQUIDITY): self._decode_cellana_liquidity,
            (Exchange.CELLANA, EventKind.SYNC): self._decode_cellana_sync,
        }

        self._base_scale = 10 ** self.config.base_decimals
        self._quote_scale = 10 ** self.config.quote_decimals

    def source_of(self, raw: RawEvent) -> Exchange | None:
        """Exchange whose contract emitted the record, by exact address match."""
        if raw.address is None:
            return None
        return self._sources.get(raw.address)

    def normalize(self, raw: RawEvent) -> DecodedRecord | None:
        """
        Decode one record, or return None to drop it.

        HOT PATH - called for every parsed feed line.
        """
        source = self.source_of(raw)
        if source is None:
            return None

        kind = self._event_kinds[source].get(raw.event_name)
        if kind is None:
            return None

        payload = raw.decoded
        if not isinstance(payload, dict):
            logger.debug("Dropping %s %s: undecodable payload", source.value, raw.event_name)
            return None

        decoder = self._decoders[(source, kind)]
        try:
            return decoder(kind, payload, raw)
        except PayloadShapeError as e:
            logger.debug("Dropping %s %s at %s: %s", source.value, raw.event_name, raw.block_number, e)
            return None

    def normalize_event(self, raw: RawEvent) -> UnifiedEvent | None:
        """Convenience: only the unified event of a record, if any."""
        record = self.normalize(raw)
        return record.event if record is not None else None

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _is_target_pool(self, source: Exchange, pool_id: Any) -> bool:
        if not isinstance(pool_id, str):
            raise PayloadShapeError("pool id is not a string")
        return normalize_pool_id(pool_id) == self._pool_ids[source]

    def _make_event(
        self,
        source: Exchange,
        kind: EventKind,
        direction: Direction,
        base_raw: int,
        quote_raw: int,
        raw: RawEvent,
    ) -> UnifiedEvent:
        try:
            base_amount = base_raw / self._base_scale
            quote_amount = quote_raw / self._quote_scale
            price = quote_amount / base_amount if base_amount > 0 else 0.0
            observed_at = datetime.fromtimestamp(raw.timestamp_us / 1_000_000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError) as e:
            raise PayloadShapeError(f"value out of range: {e}") from None

        return UnifiedEvent(
            source=source,
            kind=kind,
            direction=direction,
            base_amount=base_amount,
            quote_amount=quote_amount,
            price=price,
            chain_version=raw.block_number,
            log_index=raw.log_index,
            observed_at=observed_at,
            latency_ms=float(raw.received_at_ms - raw.timestamp_us // 1000),
            tx_hash=raw.transaction_hash or UNKNOWN_TX_HASH,
        )

    @staticmethod
    def _drop(kind: EventKind, source: Exchange) -> PayloadShapeError:
        return PayloadShapeError(f"{source.value} {kind.value} for another pool")

    # ------------------------------------------------------------------
    # ThalaSwap: pool id nested in pool_obj, balances embedded in every event
    # ------------------------------------------------------------------

    def _thala_reserves(self, payload: dict) -> Reserves:
        # pool_balances[0] is APT, pool_balances[1] is USDC
        return Reserves(
            base=parse_amount(_field(payload, "pool_balances", 0)),
            quote=parse_amount(_field(payload, "pool_balances", 1)),
        )

    def _decode_thala_swap(self, kind: EventKind, payload: dict, raw: RawEvent) -> DecodedRecord:
        source = Exchange.THALASWAP
        if not self._is_target_pool(source, _field(payload, "pool_obj", "fields", "inner")):
            raise self._drop(kind, source)

        reserves = self._thala_reserves(payload)
        tokens = (
            _field(payload, "metadata", 0, "fields", "inner"),
            _field(payload, "metadata", 1, "fields", "inner"),
        )
        idx_in = _field(payload, "idx_in")
        amount_in = parse_amount(_field(payload, "amount_in"))
        amount_out = parse_amount(_field(payload, "amount_out"))

        base_id = self.config.thala_base_token_id
        quote_id = self.config.thala_quote_token_id

        direction = Direction.UNKNOWN
        if type(idx_in) is int and idx_in in (0, 1):
            token_in, token_other = tokens[idx_in], tokens[1 - idx_in]
            if token_in == quote_id and token_other == base_id:
                direction = Direction.BUY
            elif token_in == base_id and token_other == quote_id:
                direction = Direction.SELL

        if direction is Direction.BUY:
            base_raw, quote_raw = amount_out, amount_in
        elif direction is Direction.SELL:
            base_raw, quote_raw = amount_in, amount_out
        else:
            base_raw = quote_raw = 0

        event = self._make_event(source, kind, direction, base_raw, quote_raw, raw)
        return DecodedRecord(source, kind, event, reserves)

    def _decode_thala_liquidity(self, kind: EventKind, payload: dict, raw: RawEvent) -> DecodedRecord:
        source = Exchange.THALASWAP
        if not self._is_target_pool(source, _field(payload, "pool_obj", "fields", "inner")):
            raise self._drop(kind, source)

        reserves = self._thala_reserves(payload)
        event = self._make_event(source, kind, Direction.UNKNOWN, 0, 0, raw)
        return DecodedRecord(source, kind, event, reserves)

    # ------------------------------------------------------------------
    # Cellana: top-level hex pool id, balances only in SyncEvent
    # ------------------------------------------------------------------

    def _decode_cellana_swap(self, kind: EventKind, payload: dict, raw: RawEvent) -> DecodedRecord:
        source = Exchange.CELLANA
        if not self._is_target_pool(source, _field(payload, "pool")):
            raise self._drop(kind, source)

        from_token = _token_text(payload.get("from_token"))
        to_token = _token_text(payload.get("to_token"))
        amount_in = parse_amount(_field(payload, "amount_in"))
        amount_out = parse_amount(_field(payload, "amount_out"))

        base_id = self.config.cellana_base_identifier
        quote_id = self.config.cellana_quote_identifier

        if quote_id in from_token and base_id in to_token:
            direction = Direction.BUY
            base_raw, quote_raw = amount_out, amount_in
        elif base_id in from_token and quote_id in to_token:
            direction = Direction.SELL
            base_raw, quote_raw = amount_in, amount_out
        else:
            # Neither side matched: passthrough as a null trade
            direction = Direction.UNKNOWN
            base_raw = quote_raw = 0

        event = self._make_event(source, kind, direction, base_raw, quote_raw, raw)
        return DecodedRecord(source, kind, event, None)

    def _decode_cellana_liquidity(self, kind: EventKind, payload: dict, raw: RawEvent) -> DecodedRecord:
        source = Exchange.CELLANA
        if not self._is_target_pool(source, _field(payload, "pool")):
            raise self._drop(kind, source)

        event = self._make_event(source, kind, Direction.UNKNOWN, 0, 0, raw)
        return DecodedRecord(source, kind, event, None)

    def _decode_cellana_sync(self, kind: EventKind, payload: dict, raw: RawEvent) -> DecodedRecord:
        source = Exchange.CELLANA
        if not self._is_target_pool(source, _field(payload, "pool")):
            raise self._drop(kind, source)

        # reserves_1 is USDC, reserves_2 is APT
        reserves = Reserves(
            base=parse_amount(_field(payload, "reserves_2")),
            quote=parse_amount(_field(payload, "reserves_1")),
        )
        return DecodedRecord(source, kind, None, reserves)
