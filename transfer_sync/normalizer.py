"""
Transfer Normalizer - Pure field conversions into the canonical shape.

No I/O. Every helper raises NormalizationError on input it cannot convert;
adapters catch it per row and drop the row.
"""

import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from core.clock import ensure_utc
from transfer_sync.exceptions import NormalizationError
from transfer_sync.models import Chain


EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
BASE58_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

# Topic-encoded EVM addresses are left-padded to 32 bytes
TOPIC_ADDRESS_RE = re.compile(r"^0x0{24}([0-9a-fA-F]{40})$")

# Time of day with optional fraction and offset, e.g. 12:30:05.1234567+0000
TIME_TAIL_RE = re.compile(r"(\d{2}:\d{2}(?::\d{2})?)(?:\.(\d+))?(?:([+-])(\d{2}):?(\d{2})?)?$")


def normalize_address(chain: Chain, value: Any, field_name: str = "address") -> str:
    """
    Canonical address for `chain`.

    EVM addresses are lowercased; base58 addresses keep their case.
    Padded 32-byte topics are unwrapped to 20-byte addresses.
    """
    if not isinstance(value, str) or not value.strip():
        raise NormalizationError(
            f"Missing {field_name}",
            chain=chain.value,
            raw_data=value,
            field_name=field_name,
        )
    value = value.strip()

    if chain.is_evm:
        topic = TOPIC_ADDRESS_RE.match(value)
        if topic:
            value = "0x" + topic.group(1)
        if not EVM_ADDRESS_RE.match(value):
            raise NormalizationError(
                f"Invalid EVM {field_name}: {value}",
                chain=chain.value,
                raw_data=value,
                field_name=field_name,
            )
        return value.lower()

    if not BASE58_ADDRESS_RE.match(value):
        raise NormalizationError(
            f"Invalid base58 {field_name}: {value}",
            chain=chain.value,
            raw_data=value,
            field_name=field_name,
        )
    return value


def is_valid_address(chain: Chain, value: str) -> bool:
    """True when normalize_address would accept `value`."""
    try:
        normalize_address(chain, value)
    except NormalizationError:
        return False
    return True


def parse_base_units(value: Any, field_name: str = "amount") -> int:
    """
    Parse an integer amount already expressed in token base units.

    Accepts ints, decimal strings, 0x-prefixed hex strings and
    integral Decimals. Negative or fractional values are rejected.
    """
    if isinstance(value, bool) or value is None:
        raise NormalizationError(f"Missing {field_name}", raw_data=value, field_name=field_name)

    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and value.lower().startswith("0x"):
        try:
            result = int(value, 16) if len(value) > 2 else 0
        except ValueError as e:
            raise NormalizationError(
                f"Invalid hex {field_name}: {value}",
                raw_data=value,
                field_name=field_name,
                original_error=e,
            ) from e
    else:
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise NormalizationError(
                f"Invalid {field_name}: {value}",
                raw_data=value,
                field_name=field_name,
                original_error=e,
            ) from e
        if not number.is_finite() or number != number.to_integral_value():
            raise NormalizationError(
                f"Non-integral {field_name}: {value}",
                raw_data=value,
                field_name=field_name,
            )
        result = int(number)

    if result < 0:
        raise NormalizationError(f"Negative {field_name}: {value}", raw_data=value, field_name=field_name)
    return result


def scale_to_base_units(value: Any, decimals: int, field_name: str = "amount") -> int:
    """
    Convert a human-readable token amount ("1.25") into base units.

    Uses Decimal arithmetic, rounding half up at the token precision.
    """
    if isinstance(value, bool) or value is None:
        raise NormalizationError(f"Missing {field_name}", raw_data=value, field_name=field_name)
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise NormalizationError(
            f"Invalid {field_name}: {value}",
            raw_data=value,
            field_name=field_name,
            original_error=e,
        ) from e
    if not number.is_finite() or number < 0:
        raise NormalizationError(f"Invalid {field_name}: {value}", raw_data=value, field_name=field_name)

    scaled = (number * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(scaled)


def parse_timestamp(value: Any, field_name: str = "block_timestamp") -> datetime:
    """
    Parse a provider timestamp into an aware UTC datetime.

    Accepts datetimes, ISO 8601 strings (with or without a trailing Z,
    with a space or T separator) and Unix epoch seconds.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        elif text.endswith(" UTC"):
            text = text[:-4] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(_canonical_iso(text)))
        except ValueError as e:
            raise NormalizationError(
                f"Invalid {field_name}: {value}",
                raw_data=value,
                field_name=field_name,
                original_error=e,
            ) from e

    raise NormalizationError(f"Missing {field_name}", raw_data=value, field_name=field_name)


def _canonical_iso(text: str) -> str:
    """
    Rewrite the time part into the subset datetime.fromisoformat accepts
    before Python 3.11: six fraction digits and a +HH:MM offset.
    """
    match = TIME_TAIL_RE.search(text)
    if match is None:
        return text
    clock, fraction, sign, hours, minutes = match.groups()
    tail = clock
    if fraction:
        tail += "." + fraction[:6].ljust(6, "0")
    if sign:
        tail += f"{sign}{hours}:{minutes or '00'}"
    return text[:match.start()] + tail


def parse_log_index(value: Any, default: Optional[int] = None) -> int:
    """Parse a non-negative log index; `default` stands in for a missing one."""
    if value is None:
        if default is None:
            raise NormalizationError("Missing log_index", field_name="log_index")
        return default
    return parse_base_units(value, field_name="log_index")


def require_text(row: dict[str, Any], key: str) -> str:
    """Fetch a required non-empty string field from a raw row."""
    value = row.get(key)
    if not isinstance(value, str) or not value.strip():
        raise NormalizationError(f"Missing {key}", raw_data=row, field_name=key)
    return value.strip()


def format_sql_timestamp(value: datetime) -> str:
    """UTC timestamp literal accepted by the SQL providers."""
    return ensure_utc(value).strftime("%Y-%m-%d %H:%M:%S")


def format_iso_timestamp(value: datetime) -> str:
    """Second-resolution ISO 8601 with a Z suffix, as GraphQL APIs expect."""
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")
