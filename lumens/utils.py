"""
Utility functions for Lumen Supply Stats.
"""

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

logger = logging.getLogger(__name__)

# Stellar public key: 'G' + 55 base32 characters (strkey encoding)
ACCOUNT_ID_PATTERN = re.compile(r"^G[A-Z2-7]{55}$")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat_utc(dt: datetime) -> str:
    """Format a datetime as ISO-8601 with a trailing 'Z' (JavaScript Date style)."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_utc(value: str) -> datetime:
    """Parse a timestamp written by isoformat_utc."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value).astimezone(timezone.utc)


def to_decimal(value: Any) -> Decimal:
    """
    Convert an amount as returned by Horizon to Decimal.

    Horizon encodes amounts as strings ("100.5000000"). Floats are rejected
    so that precision is never silently lost.

    Raises:
        ValueError: If the value is a float, bool or not a number
    """
    if isinstance(value, (float, bool)):
        raise ValueError(f"Refusing non-exact amount: {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def format_amount(amount: Decimal) -> str:
    """Plain decimal string without exponent notation ("150.75", "0")."""
    text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def format_xlm(amount: Decimal) -> str:
    """Format XLM amount with commas."""
    return f"{amount:,.7f}"


def validate_account_id(account_id: str) -> bool:
    """
    Validate a Stellar account ID format.

    Returns True if the account appears to be a valid public key.
    Note: This is a basic format check, the CRC16 checksum is not verified.
    """
    if not account_id:
        return False
    return bool(ACCOUNT_ID_PATTERN.match(account_id))
