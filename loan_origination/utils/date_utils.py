"""Date manipulation utilities"""

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (how it is stored)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def minutes_from(start: datetime, minutes: int) -> datetime:
    return start + timedelta(minutes=minutes)


def days_from(start: datetime, days: int) -> datetime:
    return start + timedelta(days=days)


def is_past(moment: datetime | None, now: datetime) -> bool:
    """True when a deadline is set and already behind `now`"""
    return moment is not None and moment < now
