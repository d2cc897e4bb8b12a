"""Local calendar-day bucketing for vendor epoch timestamps.

Vendor timestamps are UTC epoch seconds while sellers read their reports in
their own timezone. The offset is applied to the timestamp first and the
calendar fields are then read in UTC, so the server's own timezone never
takes part.
"""

from datetime import date, datetime, timedelta, timezone

SECONDS_PER_HOUR = 3600


def local_day(ts: int, offset_hours: int) -> date:
    return datetime.fromtimestamp(ts + offset_hours * SECONDS_PER_HOUR, tz=timezone.utc).date()


def local_date(ts: int, offset_hours: int) -> str:
    """``YYYY-MM-DD`` of ``ts`` as seen at UTC+``offset_hours``."""
    return local_day(ts, offset_hours).isoformat()


def local_date_range(start_ts: int, end_ts: int, offset_hours: int) -> list[str]:
    """Every local date from ``start_ts`` through ``end_ts`` inclusive."""
    current = local_day(start_ts, offset_hours)
    last = local_day(end_ts, offset_hours)
    days = []
    while current <= last:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days
