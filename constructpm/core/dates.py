from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    # Naive UTC; SQLite drops tzinfo on the way back anyway.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD form value. Empty values become None."""
    if value is None:
        return None
    if isinstance(value, date):
        return value
    value = value.strip()
    if not value:
        return None
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value or not value.strip():
        return None
    return to_naive_utc(datetime.fromisoformat(value.strip()))


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
