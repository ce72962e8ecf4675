# -*- coding: utf-8 -*-
"""Local calendar-day helpers (all instants are epoch milliseconds)."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Tuple
import time


def now_ms() -> int:
    """Return the current instant in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def _local_midnight_ms(day: date) -> int:
    return round(datetime(day.year, day.month, day.day).timestamp()) * 1000


def start_of_day(instant_ms: int) -> int:
    """Return 00:00:00.000 local time of the day containing *instant_ms*."""
    return _local_midnight_ms(datetime.fromtimestamp(instant_ms / 1000).date())


def end_of_day(instant_ms: int) -> int:
    """Return the last millisecond (23:59:59.999 local) of the day of *instant_ms*.

    Counted back from the next midnight, so a repeated 23:xx hour on a
    daylight-saving fall-back day still belongs to this day.
    """
    day = datetime.fromtimestamp(instant_ms / 1000).date()
    return _local_midnight_ms(day + timedelta(days=1)) - 1


def day_range(instant_ms: int) -> Tuple[int, int]:
    """Return ``(start_of_day, end_of_day)`` for *instant_ms*."""
    return start_of_day(instant_ms), end_of_day(instant_ms)
