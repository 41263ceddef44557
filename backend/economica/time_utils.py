from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime and normalize to UTC-naive.

    - None / "" -> None
    - "YYYY-MM-DD" is the start of that day, or its last instant when
      end_of_day is set (so `to_date=2024-05-01` includes the whole day)
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped

    Raises ValueError on malformed input.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if len(s) == 10 and end_of_day:
        dt = dt + timedelta(days=1) - timedelta(microseconds=1)

    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 with trailing 'Z' (naive is UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def period_key(dt: datetime, range_name: str) -> str:
    """Bucket key for reports: 'YYYY-MM-DDTHH' for hourly, 'YYYY-MM-DD' otherwise."""
    if range_name == "hourly":
        return dt.strftime("%Y-%m-%dT%H")
    return dt.strftime("%Y-%m-%d")
