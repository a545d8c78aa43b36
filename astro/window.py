"""Scan window and month-overlap rules for monthly transit reports.

Episodes are built from the full, unbroken run of daily hits, so the scan
extends a few months either side of the target month. Otherwise an episode
that straddles a month boundary would be cut short and get a wrong
start, end or peak.
"""

import calendar
from datetime import date, timedelta
from typing import Iterator, Tuple

from astro.errors import InvalidWindowError
from astro.models import Episode

MIN_YEAR = 1
MAX_YEAR = 9999
DEFAULT_BUFFER_MONTHS = 3


def validate_month(month: int, year: int) -> None:
    for name, value in (("month", month), ("year", year)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidWindowError(f"{name} must be an integer, got {value!r}")
    if not 1 <= month <= 12:
        raise InvalidWindowError(f"month must be within 1..12, got {month}")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidWindowError(f"year must be within {MIN_YEAR}..{MAX_YEAR}, got {year}")


def month_bounds(month: int, year: int) -> Tuple[date, date]:
    validate_month(month, year)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day (Jan 31 + 1 -> Feb 28/29)."""
    index = day.year * 12 + (day.month - 1) + months
    year, month0 = divmod(index, 12)
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidWindowError(f"{day.isoformat()} shifted by {months} months is out of range")
    month = month0 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def scan_range(month: int, year: int, buffer_months: int = DEFAULT_BUFFER_MONTHS) -> Tuple[date, date]:
    if buffer_months < 0:
        raise InvalidWindowError(f"buffer_months must be >= 0, got {buffer_months}")
    month_start, month_end = month_bounds(month, year)
    return add_months(month_start, -buffer_months), add_months(month_end, buffer_months)


def month_overlap(episode: Episode, month: int, year: int) -> bool:
    month_start, month_end = month_bounds(month, year)
    return episode.start_date <= month_end and episode.end_date >= month_start


def iter_days(start: date, end: date) -> Iterator[date]:
    if start > end:
        return
    current = start
    yield current
    while current < end:
        current += timedelta(days=1)
        yield current
