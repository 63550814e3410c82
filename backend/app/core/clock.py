"""Time helpers. Every instant the engine compares is normalized to UTC first."""
from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Aware datetime in UTC. Naive values are taken to already be UTC (SQLite hands those back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    """Signed length of [start, end] in hours; negative when end is before start."""
    return (as_utc(end) - as_utc(start)) / timedelta(hours=1)


def day_start(day: date) -> datetime:
    """Midnight UTC of a calendar day."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open [midnight, next midnight) range of a UTC day."""
    start = day_start(day)
    return start, start + timedelta(days=1)
