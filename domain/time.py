"""
Domain time utilities (pure).

Centralized timestamp validation helper plus the business-day helpers used by
document numbering and the cutoff window.

Behavior and error messages must remain consistent across the domain model.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the contract requirement that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def business_date_key(moment: datetime, tz: tzinfo) -> str:
    """
    Return the YYMMDD key of the business day containing `moment`.

    The key is taken from the local calendar date in `tz`, so a UTC instant
    late in the evening may already belong to the next business day.
    """

    require_utc_timestamp("moment", moment)
    return moment.astimezone(tz).strftime("%y%m%d")


def start_of_business_day(moment: datetime, tz: tzinfo) -> datetime:
    """Return 00:00 local time of the business day containing `moment`, as UTC."""

    require_utc_timestamp("moment", moment)
    local = moment.astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)
