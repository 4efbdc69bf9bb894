# cfd_journal/domain/fees.py
"""
Fee model for leveraged CFD positions.

Open/close commission is a flat percentage of traded value. Overnight
financing is an annual percentage of position value, charged per day
held (rate / 365), and is zero for positions closed on the calendar day
they were opened.
"""

import math
from datetime import datetime
from typing import Iterable

from cfd_journal.domain.models import Fill
from cfd_journal.domain.timeutils import local_date, to_naive_utc

SECONDS_PER_DAY = 24 * 60 * 60
DAYS_PER_YEAR = 365


def open_fee(position_value: float, open_commission_pct: float) -> float:
    """Commission charged when opening `position_value` worth of units."""
    return position_value * open_commission_pct / 100


def close_fee(close_value: float, close_commission_pct: float) -> float:
    """Commission charged on the value of the closing fill only."""
    return close_value * close_commission_pct / 100


def daily_night_fee(position_value: float, night_commission_pct: float) -> float:
    return position_value * night_commission_pct / 100 / DAYS_PER_YEAR


def days_held(open_at: datetime, close_at: datetime) -> int:
    """Whole days between two instants, rounded up, never negative."""
    elapsed = (to_naive_utc(close_at) - to_naive_utc(open_at)).total_seconds()
    return max(0, math.ceil(elapsed / SECONDS_PER_DAY))


def is_same_day(open_at: datetime, close_at: datetime, tz=None) -> bool:
    return local_date(open_at, tz) == local_date(close_at, tz)


def night_fee(
    position_value: float,
    night_commission_pct: float,
    open_at: datetime,
    close_at: datetime,
    tz=None,
) -> float:
    """Total financing for holding `position_value` from open_at to close_at."""
    if is_same_day(open_at, close_at, tz):
        return 0.0
    return daily_night_fee(position_value, night_commission_pct) * days_held(open_at, close_at)


def lots_night_fee(
    opening_fills: Iterable[Fill],
    open_fraction: float,
    night_commission_pct: float,
    close_at: datetime,
    tz=None,
) -> float:
    """
    Financing for the still-open part of a position built from several lots.

    Each opening fill accrues from its own timestamp; `open_fraction`
    (net / original quantity) scales the sum down after partial closes.
    """
    total = sum(
        night_fee(f.value, night_commission_pct, f.timestamp, close_at, tz)
        for f in opening_fills
    )
    return total * open_fraction


def prorated_night_fee(total_night_fee: float, close_percentage: float) -> float:
    """Share of the night fee attributable to a close of `close_percentage`."""
    return total_night_fee * min(close_percentage, 100.0) / 100
