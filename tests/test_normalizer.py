"""
Tests for the event normalizer.

Tests cover:
- Feed line parsing and payload resolution
- Address, event-name and pool filtering
- Direction inference on both exchanges
- Amount conversion, price derivation and reserve extraction
- Silent drops on malformed payloads
"""

from datetime import datetime, timezone

import orjson
import pytest

from conftest import BASE_TS_US, RECEIVED_AT_MS
from dex_spread.config import CELLANA_USDC_TOKEN_ID, THALA_USDC_TOKEN_ID
from dex_spread.datafeed.normalizer import (
    EventNormalizer,
    PayloadShapeError,
    bytes_to_text,
    normalize_pool_id,
    parse_amount,
    parse_record,
    resolve_payload,
)
from dex_spread.types import Direction, EventKind, Exchange, Reserves


@pytest.fixture
def normalizer():
    return EventNormalizer()


@pytest.fixture
def decode(normalizer, to_line):
    """Parse a record dict and run it through the normalizer."""
    def run(record):
        raw = parse_record(to_line(record), RECEIVED_AT_MS)
        assert raw is not None
        return normalizer.normalize(raw)
    return run


class TestParseRecord:
    """Tests for feed line parsing."""

    def test_malformed_json_is_dropped(self):
        assert parse_record(b'{"event_name": "SwapEvent", ', RECEIVED_AT_MS) is None

    def test_non_object_is_dropped(self):
        assert parse_record(b"[1, 2, 3]", RECEIVED_AT_MS) is None

    def test_missing_timestamp_is_dropped(self):
        line = orjson.dumps({"event_name": "SwapEvent", "block_number": "0x1"})
        assert parse_record(line, RECEIVED_AT_MS) is None

    def test_envelope_fields(self, thala_swap, to_line):
        raw = parse_record(to_line(thala_swap()), RECEIVED_AT_MS)

        assert raw.event_name == "SwapEvent"
        assert raw.block_number == "0x100"
        assert raw.log_index == "0x2"
        assert raw.timestamp_us == BASE_TS_US
        assert raw.received_at_ms == RECEIVED_AT_MS
        assert isinstance(raw.decoded, dict)

    def test_missing_log_index_defaults(self, thala_swap, to_line):
        record = thala_swap()
        del record["log_index"]
        raw = parse_record(to_line(record), RECEIVED_AT_MS)
        assert raw.log_index == "0x0"

    def test_non_string_log_index_defaults(self, thala_swap, to_line):
        raw = parse_record(to_line(thala_swap(log_index=7)), RECEIVED_AT_MS)
        assert raw.log_index == "0x0"

    @pytest.mark.parametrize("timestamp", [-1, 10**18, 1e300])
    def test_out_of_range_timestamp_is_dropped(self, thala_swap, to_line, timestamp):
        assert parse_record(to_line(thala_swap(timestamp=timestamp)), RECEIVED_AT_MS) is None

    def test_string_payload_is_parsed(self, thala_swap, to_line):
        record = thala_swap()
        record["decoded"] = orjson.dumps(record["decoded"]).decode()
        raw = parse_record(to_line(record), RECEIVED_AT_MS)
        assert isinstance(raw.decoded, dict)
        assert raw.decoded["idx_in"] == 1

    def test_undecodable_payload_kept_as_text(self):
        assert resolve_payload("not json {") == "not json {"


class TestHelpers:
    """Tests for the small parsing helpers."""

    @pytest.mark.parametrize("value", ["0xABCDEF", "abcdef", "0xabcdef", "ABCDEF"])
    def test_pool_id_normalization(self, value):
        assert normalize_pool_id(value) == "abcdef"

    def test_parse_amount_forms(self):
        assert parse_amount(42) == 42
        assert parse_amount("42") == 42
        assert parse_amount("0x2a") == 42
        assert parse_amount(42.0) == 42

    def test_parse_amount_u128_bound(self):
        assert parse_amount(str(2**128 - 1)) == 2**128 - 1
        with pytest.raises(PayloadShapeError):
            parse_amount(hex(2**128))

    @pytest.mark.parametrize("value", [-1, "-5", "abc", None, True, 1.5, [1]])
    def test_parse_amount_rejects(self, value):
        with pytest.raises(PayloadShapeError):
            parse_amount(value)

    def test_bytes_to_text(self):
        assert bytes_to_text(list(b"aptos_coin::AptosCoin")) == "aptos_coin::AptosCoin"

    def test_bytes_to_text_rejects_out_of_range(self):
        with pytest.raises(PayloadShapeError):
            bytes_to_text([300])


class TestRouting:
    """Tests for address / event-name / pool filtering."""

    def test_unknown_address_dropped(self, decode, thala_swap):
        assert decode(thala_swap(address="0xdeadbeef")) is None

    def test_missing_address_dropped(self, decode, thala_swap):
        record = thala_swap()
        del record["address"]
        assert decode(record) is None

    def test_address_match_is_exact(self, decode, thala_swap):
        record = thala_swap()
        record["address"] = record["address"].upper()
        assert decode(record) is None

    def test_unknown_event_name_dropped(self, decode, thala_swap):
        assert decode(thala_swap(event_name="FlashLoanEvent")) is None

    def test_sync_only_accepted_for_cellana(self, decode, cellana_sync):
        from dex_spread.config import THALASWAP_ADDRESS
        assert decode(cellana_sync(address=THALASWAP_ADDRESS)) is None

    def test_other_thala_pool_dropped(self, decode, thala_swap):
        assert decode(thala_swap(pool_id="ff" * 32)) is None

    def test_other_cellana_pool_dropped(self, decode, cellana_swap):
        assert decode(cellana_swap(pool_id="0x" + "ff" * 32)) is None

    def test_thala_pool_match_ignores_case_and_prefix(self, decode, thala_swap):
        from dex_spread.config import THALA_APT_USDC_POOL_ID
        record = decode(thala_swap(pool_id="0x" + THALA_APT_USDC_POOL_ID.upper()))
        assert record is not None

    def test_cellana_pool_match_without_prefix(self, decode, cellana_sync):
        from dex_spread.config import CELLANA_APT_USDC_POOL_ID
        record = decode(cellana_sync(pool_id=CELLANA_APT_USDC_POOL_ID[2:].upper()))
        assert record is not None

    def test_undecodable_payload_dropped(self, decode, cellana_swap):
        assert decode(cellana_swap(decoded="{not json")) is None

    def test_missing_nested_field_dropped(self, decode, thala_swap):
        record = thala_swap()
        del record["decoded"]["pool_obj"]["fields"]
        assert decode(record) is None


class TestThalaSwap:
    """Tests for ThalaSwap swap decoding."""

    def test_buy(self, decode, thala_swap):
        record = decode(thala_swap(idx_in=1, amount_in=1_000 * 10**6, amount_out=160 * 10**8))

        assert record.source is Exchange.THALASWAP
        assert record.kind is EventKind.SWAP
        event = record.event
        assert event.direction is Direction.BUY
        assert event.base_amount == 160.0
        assert event.quote_amount == 1_000.0
        assert event.price == pytest.approx(6.25)

    def test_sell(self, decode, thala_swap):
        record = decode(thala_swap(idx_in=0, amount_in=10 * 10**8, amount_out=60 * 10**6))

        event = record.event
        assert event.direction is Direction.SELL
        assert event.base_amount == 10.0
        assert event.quote_amount == 60.0
        assert event.price == pytest.approx(6.0)

    def test_reversed_token_order(self, decode, thala_swap):
        from dex_spread.config import THALA_APT_TOKEN_ID
        record = decode(thala_swap(
            idx_in=0,
            tokens=(THALA_USDC_TOKEN_ID, THALA_APT_TOKEN_ID),
            amount_in=1_000 * 10**6,
            amount_out=160 * 10**8,
        ))
        assert record.event.direction is Direction.BUY

    def test_unknown_tokens_report_zero_amounts(self, decode, thala_swap):
        record = decode(thala_swap(tokens=("aa" * 32, "bb" * 32)))

        event = record.event
        assert event.direction is Direction.UNKNOWN
        assert event.base_amount == 0.0
        assert event.quote_amount == 0.0
        assert event.price == 0.0

    def test_reserves_from_payload(self, decode, thala_swap):
        record = decode(thala_swap(balances=(123 * 10**8, "0x" + format(700 * 10**6, "x"))))
        assert record.reserves == Reserves(base=123 * 10**8, quote=700 * 10**6)

    def test_negative_balance_dropped(self, decode, thala_swap):
        assert decode(thala_swap(balances=(-1, 600 * 10**6))) is None

    def test_event_metadata(self, decode, thala_swap):
        event = decode(thala_swap()).event

        assert event.chain_version == "0x100"
        assert event.log_index == "0x2"
        assert event.tx_hash == "0x" + "ab" * 32
        assert event.observed_at == datetime.fromtimestamp(BASE_TS_US / 1_000_000, tz=timezone.utc)
        assert event.latency_ms == 250.0

    def test_missing_tx_hash(self, decode, thala_swap):
        record = thala_swap()
        del record["transaction_hash"]
        assert decode(record).event.tx_hash == "unknown"

    def test_unrepresentable_timestamp_dropped(self, normalizer, thala_swap, to_line):
        raw = parse_record(to_line(thala_swap()), RECEIVED_AT_MS)
        assert normalizer.normalize(raw._replace(timestamp_us=10**18)) is None


class TestThalaLiquidity:

    @pytest.mark.parametrize("event_name, kind", [
        ("AddLiquidityEvent", EventKind.ADD_LIQUIDITY),
        ("RemoveLiquidityEvent", EventKind.REMOVE_LIQUIDITY),
    ])
    def test_liquidity_carries_reserves(self, decode, thala_liquidity, event_name, kind):
        record = decode(thala_liquidity(event_name=event_name, balances=(50 * 10**8, 300 * 10**6)))

        assert record.kind is kind
        assert record.reserves == Reserves(50 * 10**8, 300 * 10**6)
        assert record.event.kind is kind
        assert record.event.direction is Direction.UNKNOWN
        assert record.event.quote_amount == 0.0


class TestCellana:
    """Tests for Cellana swap, sync and liquidity decoding."""

    def test_buy_with_byte_tokens(self, decode, cellana_swap):
        record = decode(cellana_swap(buy=True, amount_in=630 * 10**6, amount_out=100 * 10**8))

        assert record.source is Exchange.CELLANA
        assert record.reserves is None
        event = record.event
        assert event.direction is Direction.BUY
        assert event.quote_amount == 630.0
        assert event.base_amount == 100.0
        assert event.price == pytest.approx(6.3)

    def test_sell_with_string_tokens(self, decode, cellana_swap):
        record = decode(cellana_swap(
            from_token="0x1::aptos_coin::AptosCoin",
            to_token="0x" + CELLANA_USDC_TOKEN_ID,
            amount_in=2 * 10**8,
            amount_out=12 * 10**6,
        ))

        event = record.event
        assert event.direction is Direction.SELL
        assert event.base_amount == 2.0
        assert event.quote_amount == 12.0

    def test_unmatched_tokens_are_null_trade(self, decode, cellana_swap):
        record = decode(cellana_swap(from_token="0x1::foo::Bar", to_token="0x1::baz::Qux"))

        event = record.event
        assert event.direction is Direction.UNKNOWN
        assert event.base_amount == 0.0
        assert event.quote_amount == 0.0
        assert event.price == 0.0

    def test_missing_tokens_are_null_trade(self, decode, cellana_swap):
        record = cellana_swap()
        del record["decoded"]["from_token"]
        assert decode(record).event.direction is Direction.UNKNOWN

    def test_sync_reserves(self, decode, cellana_sync):
        record = decode(cellana_sync(usdc=hex(630 * 10**6), apt=str(100 * 10**8)))

        assert record.kind is EventKind.SYNC
        assert record.event is None
        assert record.reserves == Reserves(base=100 * 10**8, quote=630 * 10**6)

    def test_sync_missing_reserve_dropped(self, decode, cellana_sync):
        record = cellana_sync()
        del record["decoded"]["reserves_2"]
        assert decode(record) is None

    def test_liquidity_has_no_reserves(self, decode, cellana_liquidity):
        record = decode(cellana_liquidity(event_name="RemoveLiquidityEvent"))

        assert record.kind is EventKind.REMOVE_LIQUIDITY
        assert record.reserves is None
        assert record.event.kind is EventKind.REMOVE_LIQUIDITY

    def test_normalize_event_shortcut(self, normalizer, cellana_swap, to_line):
        raw = parse_record(to_line(cellana_swap()), RECEIVED_AT_MS)
        event = normalizer.normalize_event(raw)
        assert event.source is Exchange.CELLANA
        assert event.kind is EventKind.SWAP
