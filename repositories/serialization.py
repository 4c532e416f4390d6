"""
Row (de)serialization helpers shared by the repositories.

Documents are JSON dicts, so:
- timestamps are stored as ISO-8601 UTC strings with a fixed microsecond
  precision, which keeps lexicographic order equal to chronological order
  (range filters in the store rely on this);
- money is stored as a decimal string to avoid float rounding.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from domain.time import require_utc_timestamp


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def optional_iso_utc(dt: Optional[datetime], *, name: str) -> Optional[str]:
    if dt is None:
        return None
    return to_iso_utc(dt, name=name)


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a stored timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def optional_utc_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    return parse_utc_datetime(value)


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def decimal_to_str(value: Decimal) -> str:
    return str(value)


__all__ = [
    "to_iso_utc",
    "optional_iso_utc",
    "parse_utc_datetime",
    "optional_utc_datetime",
    "to_decimal",
    "decimal_to_str",
]
