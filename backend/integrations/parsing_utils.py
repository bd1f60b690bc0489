"""Shared parsing utilities for exchange and market-data clients.

Centralises the conversions every integration needs: epoch-millisecond
timestamps, decimal strings, and the naive-UTC form that SQLite ``DateTime`` columns round-trip.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation


def parse_epoch_millis(value) -> datetime | None:
    """Parse a Unix epoch timestamp in milliseconds to a UTC-aware datetime.

    Binance reports every timestamp this way (``"time": 1700000000000``).
    """
    if value is None or value == "":
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (ValueError, TypeError, OSError, OverflowError):
        return None


def to_epoch_millis(dt: datetime) -> int:
    """Convert a datetime (naive means UTC) to epoch milliseconds."""
    return int(ensure_utc(dt).timestamp() * 1000)


def parse_decimal(value, default: Decimal | None = None) -> Decimal | None:
    """Parse a string/number to ``Decimal``; *default* when unparseable.

    Floats go through ``str`` so ``0.1`` stays ``Decimal("0.1")``.
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not result.is_finite():
        return default
    return result


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime; convert an aware one to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_naive_utc(dt: datetime | None) -> datetime | None:
    """Return *dt* as a naive UTC datetime, the form stored in the database."""
    if dt is None:
        return None
    return ensure_utc(dt).replace(tzinfo=None)
