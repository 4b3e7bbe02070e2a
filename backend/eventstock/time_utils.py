from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a project start/end date.

    - None / "" -> None
    - "YYYY-MM-DD" -> date
    - full ISO-8601 datetimes ("...T10:00:00Z") are accepted and truncated
      to their UTC calendar date
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if "T" not in s:
        return date.fromisoformat(s)

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def format_fr_datetime(dt: datetime) -> str:
    # dd/mm/yyyy HH:MM:SS, as spreadsheets in fr-FR expect
    return dt.strftime("%d/%m/%Y %H:%M:%S")


def format_fr_date(dt: datetime) -> str:
    return dt.strftime("%d/%m/%Y")
