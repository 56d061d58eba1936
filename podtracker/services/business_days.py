"""
Business-day arithmetic.

A business day is Monday through Friday. There is no holiday calendar.

Usage:
    from podtracker.services.business_days import add_business_days, business_day_diff

    add_business_days(date(2024, 3, 1), 1)          # Friday → Monday 2024-03-04
    business_day_diff(date(2024, 3, 4), date(2024, 3, 18))   # 10
"""

from datetime import date, datetime, timedelta

WEEKEND = (5, 6)  # Saturday, Sunday


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def is_business_day(day) -> bool:
    return _as_date(day).weekday() not in WEEKEND


def add_business_days(start, n: int) -> date:
    """Advance ``start`` by ``n`` business days (backwards when ``n`` is negative).

    ``n == 0`` returns ``start`` unchanged, even when it falls on a weekend.
    """
    current = _as_date(start)
    step = 1 if n >= 0 else -1
    remaining = abs(n)
    while remaining:
        current += timedelta(days=step)
        if current.weekday() not in WEEKEND:
            remaining -= 1
    return current


def _business_days_through(day: date) -> int:
    # date(1, 1, 1) is a Monday, so ordinal offsets line up with weekdays.
    weeks, rem = divmod(day.toordinal() - 1, 7)
    return weeks * 5 + min(rem + 1, 5)


def business_day_diff(from_date, to_date) -> int:
    """Signed number of business days from ``from_date`` to ``to_date``.

    Counts the business days in ``(from_date, to_date]``, i.e. the number of
    steps ``add_business_days`` takes to get there; negative when
    ``to_date`` is earlier.
    """
    start = _as_date(from_date)
    end = _as_date(to_date)
    return _business_days_through(end) - _business_days_through(start)
