from __future__ import annotations

import datetime as dt
from typing import Any

UTC = dt.timezone.utc


def utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


def ensure_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_date(value: Any) -> dt.date | None:
    """
    Accepts dates, datetimes and ISO strings ("2024-03-31", "2024-03-31T00:00:00Z").
    """
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return dt.date.fromisoformat(s[:10])
    except ValueError:
        return None


def isoformat_or_none(value: dt.datetime | None) -> str | None:
    if value is None:
        return None
    return ensure_utc(value).isoformat()
