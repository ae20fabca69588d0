"""
Tests for the Transfer Normalizer.

Tests cover:
- Address canonicalization per chain
- Base-unit parsing (decimal, hex, scaled)
- Timestamp parsing
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from transfer_sync.exceptions import NormalizationError
from transfer_sync.models import Chain
from transfer_sync.normalizer import (
    format_iso_timestamp,
    format_sql_timestamp,
    is_valid_address,
    normalize_address,
    parse_base_units,
    parse_log_index,
    parse_timestamp,
    require_text,
    scale_to_base_units,
)


EVM_MIXED = "0x279e08f711182c79Ba6d09669127a426228a4653"
SOLANA_ADDRESS = "L54zkaPQFeTn1UsEqieEXBqWrPShiaZEPD7mS5WXfQg"


# =============================================================
# TEST: Addresses
# =============================================================

class TestNormalizeAddress:
    """Address canonicalization."""

    def test_evm_is_lowercased(self):
        assert normalize_address(Chain.BASE, EVM_MIXED) == EVM_MIXED.lower()

    def test_evm_topic_is_unwrapped(self):
        topic = "0x" + "0" * 24 + "ab" * 20
        assert normalize_address(Chain.POLYGON, topic) == "0x" + "ab" * 20

    def test_solana_keeps_case(self):
        assert normalize_address(Chain.SOLANA, f"  {SOLANA_ADDRESS} ") == SOLANA_ADDRESS

    @pytest.mark.parametrize("value", [None, "", "0x123", "not-an-address", 42])
    def test_invalid_evm_raises(self, value):
        with pytest.raises(NormalizationError):
            normalize_address(Chain.BASE, value)

    def test_invalid_base58_raises(self):
        # 0, O, I and l are not base58
        with pytest.raises(NormalizationError) as exc_info:
            normalize_address(Chain.SOLANA, "0OIl" * 10, "sender")
        assert exc_info.value.field_name == "sender"

    def test_is_valid_address(self):
        assert is_valid_address(Chain.SOLANA, SOLANA_ADDRESS)
        assert not is_valid_address(Chain.BASE, SOLANA_ADDRESS)


# =============================================================
# TEST: Amounts
# =============================================================

class TestAmounts:
    """Amount parsing into base units."""

    @pytest.mark.parametrize("value,expected", [
        (1500000, 1500000),
        ("1500000", 1500000),
        ("0x16e360", 1500000),
        ("0x" + "0" * 58 + "16e360", 1500000),
        (Decimal("1500000"), 1500000),
        ("0x", 0),
    ])
    def test_parse_base_units(self, value, expected):
        assert parse_base_units(value) == expected

    def test_parse_preserves_uint256_precision(self):
        big = 2 ** 255 + 1
        assert parse_base_units(str(big)) == big
        assert parse_base_units(hex(big)) == big

    @pytest.mark.parametrize("value", [None, "1.5", "-3", "abc", "0xzz", True])
    def test_parse_base_units_rejects(self, value):
        with pytest.raises(NormalizationError):
            parse_base_units(value)

    @pytest.mark.parametrize("value,decimals,expected", [
        ("1.25", 6, 1250000),
        (0.01, 6, 10000),
        ("0.0000005", 6, 1),
        ("0.0000004", 6, 0),
        ("3", 0, 3),
    ])
    def test_scale_to_base_units(self, value, decimals, expected):
        assert scale_to_base_units(value, decimals) == expected

    def test_scale_rejects_negative(self):
        with pytest.raises(NormalizationError):
            scale_to_base_units("-1", 6)


# =============================================================
# TEST: Timestamps and misc
# =============================================================

class TestTimestamps:
    """Timestamp parsing and formatting."""

    EXPECTED = datetime(2025, 10, 24, 12, 30, 5, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [
        "2025-10-24T12:30:05Z",
        "2025-10-24 12:30:05",
        "2025-10-24 12:30:05 UTC",
        "2025-10-24T14:30:05+02:00",
        "2025-10-24T14:30:05+0200",
        "2025-10-24T14:30:05+02",
        "2025-10-24T07:30:05-05:00",
        datetime(2025, 10, 24, 12, 30, 5),
        EXPECTED.timestamp(),
    ])
    def test_parse_timestamp(self, value):
        assert parse_timestamp(value) == self.EXPECTED

    @pytest.mark.parametrize("value, microsecond", [
        ("2025-10-24T12:30:05.5Z", 500_000),
        ("2025-10-24T12:30:05.12Z", 120_000),
        ("2025-10-24 12:30:05.123456789 UTC", 123_456),
        ("2025-10-24T12:30:05.1234+00:00", 123_400),
    ])
    def test_parse_timestamp_any_fraction_length(self, value, microsecond):
        assert parse_timestamp(value) == self.EXPECTED.replace(microsecond=microsecond)

    def test_parse_timestamp_is_aware(self):
        assert parse_timestamp("2025-10-24 12:30:05").tzinfo is not None

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_parse_timestamp_rejects(self, value):
        with pytest.raises(NormalizationError):
            parse_timestamp(value)

    def test_formats(self):
        value = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone(timedelta(hours=1)))
        assert format_sql_timestamp(value) == "2025-01-02 02:04:05"
        assert format_iso_timestamp(value) == "2025-01-02T02:04:05Z"

    def test_log_index(self):
        assert parse_log_index("7") == 7
        assert parse_log_index(None, default=0) == 0
        with pytest.raises(NormalizationError):
            parse_log_index(None)

    def test_require_text(self):
        assert require_text({"tx_hash": " 0xabc "}, "tx_hash") == "0xabc"
        with pytest.raises(NormalizationError):
            require_text({"tx_hash": ""}, "tx_hash")
