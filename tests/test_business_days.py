"""Business-day arithmetic: weekend skipping, signed differences, round trips."""

from datetime import date, datetime, timedelta, timezone

import pytest

from podtracker.services.business_days import (
    add_business_days,
    business_day_diff,
    is_business_day,
)

FRIDAY = date(2024, 3, 1)
SATURDAY = date(2024, 3, 2)
MONDAY = date(2024, 3, 4)


class TestAddBusinessDays:

    def test_friday_plus_one_is_monday(self):
        assert add_business_days(FRIDAY, 1) == MONDAY

    def test_monday_plus_five_is_next_monday(self):
        assert add_business_days(MONDAY, 5) == date(2024, 3, 11)

    def test_zero_returns_start_even_on_weekend(self):
        assert add_business_days(SATURDAY, 0) == SATURDAY

    def test_weekend_start_lands_on_monday(self):
        assert add_business_days(SATURDAY, 1) == MONDAY

    def test_negative_walks_backwards(self):
        assert add_business_days(MONDAY, -1) == FRIDAY
        assert add_business_days(MONDAY, -5) == date(2024, 2, 26)

    def test_datetime_input_is_reduced_to_date(self):
        stamp = datetime(2024, 3, 1, 17, 30, tzinfo=timezone.utc)
        assert add_business_days(stamp, 1) == MONDAY

    def test_sla_windows(self):
        assert add_business_days(MONDAY, 10) == date(2024, 3, 18)
        assert add_business_days(date(2024, 1, 1), 22) == date(2024, 1, 31)


class TestBusinessDayDiff:

    def test_positive_when_later(self):
        assert business_day_diff(MONDAY, date(2024, 3, 18)) == 10

    def test_negative_when_earlier(self):
        assert business_day_diff(date(2024, 3, 18), MONDAY) == -10

    def test_same_day_is_zero(self):
        assert business_day_diff(MONDAY, MONDAY) == 0

    def test_weekend_days_do_not_count(self):
        assert business_day_diff(FRIDAY, MONDAY) == 1
        assert business_day_diff(FRIDAY, SATURDAY) == 0

    def test_is_business_day(self):
        assert is_business_day(FRIDAY)
        assert not is_business_day(SATURDAY)
        assert not is_business_day(date(2024, 3, 3))


@pytest.mark.parametrize("offset", range(14))
def test_round_trip_forward_from_any_start(offset):
    start = date(2024, 2, 26) + timedelta(days=offset)
    for n in range(0, 30):
        assert business_day_diff(start, add_business_days(start, n)) == n


@pytest.mark.parametrize("offset", [0, 1, 2, 3, 4, 7, 8, 9, 10, 11])
def test_round_trip_backward_from_business_day(offset):
    start = date(2024, 2, 26) + timedelta(days=offset)
    for n in range(-20, 0):
        assert business_day_diff(start, add_business_days(start, n)) == n
