"""Simulated time is a float of seconds since the Unix epoch, UTC."""

from datetime import datetime, timezone


def epoch(yr, mo, dy, hr=0, mn=0, se=0) -> float:
    return datetime(yr, mo, dy, hr, mn, se, tzinfo=timezone.utc).timestamp()


def utc(t: float) -> datetime:
    return datetime.fromtimestamp(t, tz=timezone.utc)


def fields(t: float):
    """(year, month, day, hour, minute, second) of ``t``, seconds truncated."""
    d = utc(t)
    return d.year, d.month, d.day, d.hour, d.minute, d.second
