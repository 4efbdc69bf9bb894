# cfd_journal/domain/timeutils.py
"""Timestamp helpers. Timestamps are stored as naive UTC."""

from datetime import date, datetime
from typing import Optional, Union

import pytz

from cfd_journal import config


def utc_now() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(pytz.UTC).replace(tzinfo=None)


def resolve_tz(tz: Optional[Union[str, pytz.BaseTzInfo]] = None):
    if tz is None:
        tz = config.REPORT_TIMEZONE
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz


def to_local(ts: datetime, tz=None) -> datetime:
    """Convert a timestamp to the report timezone (naive input is UTC)."""
    if ts.tzinfo is None:
        ts = pytz.UTC.localize(ts)
    return ts.astimezone(resolve_tz(tz))


def to_naive_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(pytz.UTC).replace(tzinfo=None)


def local_date(ts: datetime, tz=None) -> date:
    return to_local(ts, tz).date()
