# Overview: Canonical time handling for ledger documents (UTC-naive storage, Z-suffixed output).

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _strip_tz(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def normalize_datetime(value) -> Optional[datetime]:
    """
    Coerce document dates to canonical UTC-naive datetimes.

    - None / "" -> None
    - datetime: aware values are converted to UTC, naive ones are taken as UTC
    - date or "YYYY-MM-DD": midnight UTC of that day
    - "...Z" or "...+/-HH:MM": converted to UTC, tzinfo stripped

    Raises ValueError for anything else.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _strip_tz(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise ValueError("invalid datetime")

    s = value.strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return _strip_tz(datetime.fromisoformat(s))


def period_stamp(when: datetime, granularity: str) -> str:
    """Numbering period for a document date: '2026' (year) or '202610' (month)."""
    if granularity == "year":
        return f"{when.year:04d}"
    if granularity == "month":
        return f"{when.year:04d}{when.month:02d}"
    raise ValueError(f"unknown period granularity: {granularity}")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with trailing 'Z', to the second. Naive values are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
