"""Calendar arithmetic for the simulation clock.

The simulation advances one :class:`SimDate` per tick.  Week numbers are
always derived from the date (``ceil(day_of_year / 7)``) and never stored
alongside it.  Day-of-week uses a closed-form Zeller congruence so that no
lookup table or ``datetime`` round-trip is needed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_YEAR: int = 2025  # calendar year of season 1

MONDAY: int = 1
FRIDAY: int = 5
SUNDAY: int = 7

_DAYS_IN_MONTH: list[int] = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]


def is_leap_year(year: int) -> bool:
    """Return True for Gregorian leap years."""
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0


def days_in_month(year: int, month: int) -> int:
    """Number of days in *month* (1-12) of *year*."""
    if month == 2 and is_leap_year(year):
        return 29
    return _DAYS_IN_MONTH[month - 1]


# ---------------------------------------------------------------------------
# Date value
# ---------------------------------------------------------------------------


@dataclass(frozen=True, order=True)
class SimDate:
    """Immutable simulation date.

    Attributes:
        year: Calendar year.
        month: Month, 1-12.
        day: Day of month, 1-31.
    """

    year: int
    month: int
    day: int

    def __post_init__(self) -> None:
        """Validate the date components."""
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in [1, 12], got {self.month}")
        if not 1 <= self.day <= days_in_month(self.year, self.month):
            raise ValueError(
                f"day {self.day} out of range for {self.year}-{self.month:02d}"
            )

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    @classmethod
    def parse(cls, text: str) -> SimDate:
        """Build a date from an ISO ``YYYY-MM-DD`` string."""
        year, month, day = (int(part) for part in text.split("-"))
        return cls(year, month, day)


# ---------------------------------------------------------------------------
# Derived quantities
# ---------------------------------------------------------------------------


def day_of_year(date: SimDate) -> int:
    """1-based ordinal day within the year."""
    total: int = date.day
    for month in range(1, date.month):
        total += days_in_month(date.year, month)
    return total


def week_number(date: SimDate) -> int:
    """Week of the year, ``ceil(day_of_year / 7)`` (1-53)."""
    return math.ceil(day_of_year(date) / 7)


def day_of_week(date: SimDate) -> int:
    """Day of week via Zeller's congruence, 1 = Monday ... 7 = Sunday.

    January and February are treated as months 13 and 14 of the previous
    year, as the congruence requires.
    """
    year, month, day = date.year, date.month, date.day
    if month < 3:
        month += 12
        year -= 1
    k: int = year % 100
    j: int = year // 100
    h: int = (day + (13 * (month + 1)) // 5 + k + k // 4 + j // 4 - 2 * j) % 7
    # h: 0 = Saturday, 1 = Sunday, 2 = Monday, ...
    return ((h + 5) % 7) + 1


def is_friday(date: SimDate) -> bool:
    return day_of_week(date) == FRIDAY


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


def advance_day(date: SimDate) -> SimDate:
    """Return the following calendar day."""
    if date.day < days_in_month(date.year, date.month):
        return SimDate(date.year, date.month, date.day + 1)
    if date.month < 12:
        return SimDate(date.year, date.month + 1, 1)
    return SimDate(date.year + 1, 1, 1)


def add_days(date: SimDate, days: int) -> SimDate:
    """Return *date* moved forward by *days* (must be >= 0)."""
    if days < 0:
        raise ValueError(f"days must be >= 0, got {days}")
    result: SimDate = date
    for _ in range(days):
        result = advance_day(result)
    return result


def _ordinal(date: SimDate) -> int:
    """Days since 0001-01-01 (proleptic Gregorian)."""
    y: int = date.year - 1
    return y * 365 + y // 4 - y // 100 + y // 400 + day_of_year(date)


def days_between(start: SimDate, end: SimDate) -> int:
    """Signed number of days from *start* to *end*."""
    return _ordinal(end) - _ordinal(start)


def date_of_week_day(year: int, week: int, weekday: int) -> SimDate:
    """Return the date in *week* of *year* that falls on *weekday*.

    Weeks are the ``ceil(day_of_year / 7)`` buckets, so the search is
    confined to those seven days.  If the requested weekday is not inside
    the bucket (possible only for the short week 53), the last day of the
    bucket is returned.

    Raises:
        ValueError: If *week* is outside 1-53 or past the end of the year.
    """
    if not 1 <= week <= 53:
        raise ValueError(f"week must be in [1, 53], got {week}")
    first_day: int = (week - 1) * 7 + 1
    year_length: int = 366 if is_leap_year(year) else 365
    if first_day > year_length:
        raise ValueError(f"week {week} does not exist in {year}")
    candidate: SimDate = _from_day_of_year(year, first_day)
    last: SimDate = candidate
    for _ in range(7):
        if day_of_week(candidate) == weekday:
            return candidate
        last = candidate
        if day_of_year(candidate) == year_length:
            break
        candidate = advance_day(candidate)
    return last


def friday_of_week(year: int, week: int) -> SimDate:
    return date_of_week_day(year, week, FRIDAY)


def sunday_of_week(year: int, week: int) -> SimDate:
    return date_of_week_day(year, week, SUNDAY)


def _from_day_of_year(year: int, ordinal: int) -> SimDate:
    month: int = 1
    remaining: int = ordinal
    while remaining > days_in_month(year, month):
        remaining -= days_in_month(year, month)
        month += 1
    return SimDate(year, month, remaining)


# ---------------------------------------------------------------------------
# Seasons
# ---------------------------------------------------------------------------


def season_to_year(season: int, base_year: int = BASE_YEAR) -> int:
    """Map a 1-based season number to its calendar year."""
    return base_year + season - 1


def season_start_date(season: int, base_year: int = BASE_YEAR) -> SimDate:
    """January 1 of the season's calendar year."""
    return SimDate(season_to_year(season, base_year), 1, 1)
