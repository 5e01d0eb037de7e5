import logging
import math
from datetime import date, timedelta

import pytest

from gymkpi.models import DateRange, Direction, Granularity
from gymkpi.periods import (
    add_months,
    anchor_range,
    baseline_range,
    bucket_key,
    growth_percent,
    relative_range,
    week_number,
)


def test_anchor_month_mid_month():
    assert anchor_range(Granularity.MONTH, date(2025, 5, 15)) == DateRange(date(2025, 5, 1), date(2025, 5, 31))


def test_anchor_month_handles_leap_february():
    assert anchor_range(Granularity.MONTH, date(2024, 2, 10)).end == date(2024, 2, 29)
    assert anchor_range(Granularity.MONTH, date(2025, 2, 10)).end == date(2025, 2, 28)


def test_anchor_week_starts_on_monday():
    # 2025-05-18 is a Sunday, the last day of the week starting 2025-05-12
    assert anchor_range(Granularity.WEEK, date(2025, 5, 18)) == DateRange(date(2025, 5, 12), date(2025, 5, 18))
    assert anchor_range(Granularity.WEEK, date(2025, 5, 12)) == DateRange(date(2025, 5, 12), date(2025, 5, 18))


def test_anchor_day_and_year():
    day = date(2025, 7, 4)
    assert anchor_range(Granularity.DAY, day) == DateRange(day, day)
    assert anchor_range(Granularity.YEAR, day) == DateRange(date(2025, 1, 1), date(2025, 12, 31))


def test_relative_month_next_and_prev():
    assert relative_range(Granularity.MONTH, Direction.NEXT, date(2025, 5, 1)) == DateRange(
        date(2025, 6, 1), date(2025, 6, 30)
    )
    assert relative_range(Granularity.MONTH, Direction.PREV, date(2025, 1, 15)) == DateRange(
        date(2024, 12, 1), date(2024, 12, 31)
    )


def test_relative_month_from_month_end_lands_on_next_month():
    assert relative_range(Granularity.MONTH, "next", date(2024, 1, 31)) == DateRange(
        date(2024, 2, 1), date(2024, 2, 29)
    )
    assert relative_range(Granularity.MONTH, "next", date(2025, 12, 31)) == DateRange(
        date(2026, 1, 1), date(2026, 1, 31)
    )


def test_relative_month_prev_then_next_is_identity():
    reference = date(2023, 1, 1)
    while reference < date(2026, 1, 1):
        month = anchor_range(Granularity.MONTH, reference)
        back = relative_range(Granularity.MONTH, Direction.PREV, month.start)
        assert relative_range(Granularity.MONTH, Direction.NEXT, back.start) == month
        reference = month.end + timedelta(days=1)


def test_relative_week_from_monday():
    assert relative_range(Granularity.WEEK, Direction.NEXT, date(2025, 5, 12)) == DateRange(
        date(2025, 5, 19), date(2025, 5, 25)
    )


def test_relative_week_realigns_unaligned_start():
    # 2025-04-01 is a Tuesday
    assert relative_range(Granularity.WEEK, Direction.NEXT, date(2025, 4, 1)) == DateRange(
        date(2025, 4, 7), date(2025, 4, 13)
    )


def test_repeated_week_navigation_does_not_drift():
    current = anchor_range(Granularity.WEEK, date(2024, 12, 18))
    for _ in range(60):
        following = relative_range(Granularity.WEEK, Direction.NEXT, current.start)
        assert following.start.weekday() == 0
        assert following.start - current.start == timedelta(days=7)
        assert following.days == 7
        current = following


def test_relative_day_and_year_cross_year_boundary():
    assert relative_range(Granularity.DAY, Direction.NEXT, date(2024, 12, 31)) == DateRange(
        date(2025, 1, 1), date(2025, 1, 1)
    )
    assert relative_range(Granularity.YEAR, Direction.PREV, date(2025, 3, 1)) == DateRange(
        date(2024, 1, 1), date(2024, 12, 31)
    )


def test_unknown_granularity_returns_identity_and_logs(caplog):
    day = date(2025, 5, 15)
    with caplog.at_level(logging.WARNING, logger="gymkpi.periods"):
        assert anchor_range("fortnight", day) == DateRange(day, day)
        assert relative_range("fortnight", Direction.NEXT, day) == DateRange(day, day)
    assert "fortnight" in caplog.text


def test_relative_range_out_of_calendar_does_not_raise():
    last = date(9999, 12, 1)
    assert relative_range(Granularity.MONTH, Direction.NEXT, last) == DateRange(last, last)


def test_last_calendar_month_is_reachable():
    december = DateRange(date(9999, 12, 1), date(9999, 12, 31))

    assert anchor_range(Granularity.MONTH, date(9999, 12, 15)) == december
    assert relative_range(Granularity.MONTH, Direction.NEXT, date(9999, 11, 1)) == december
    assert anchor_range(Granularity.YEAR, date(9999, 6, 1)).end == date(9999, 12, 31)


def test_anchor_week_at_calendar_end_does_not_raise():
    last = date(9999, 12, 31)

    assert anchor_range(Granularity.WEEK, last).contains(last)


def test_baseline_range_has_same_length_and_precedes():
    may = DateRange(date(2025, 5, 1), date(2025, 5, 31))
    assert baseline_range(may) == DateRange(date(2025, 3, 31), date(2025, 4, 30))

    custom = DateRange(date(2025, 3, 1), date(2025, 3, 10))
    previous = baseline_range(custom)
    assert previous.days == custom.days
    assert previous.end == date(2025, 2, 28)


def test_growth_percent():
    assert growth_percent(150000, 100000) == 50.0
    assert growth_percent(50, 100) == -50.0


@pytest.mark.parametrize("current", [0, 1, -5, 1e12])
def test_growth_percent_zero_baseline_is_zero(current):
    assert growth_percent(current, 0) == 0


def test_growth_percent_never_returns_non_finite():
    for current, previous in [(math.nan, 5), (5, math.inf), (math.inf, 1), (1e308, 1e-308)]:
        result = growth_percent(current, previous)
        assert math.isfinite(result)


def test_week_number_rolls_over_on_sunday():
    # 2025-01-01 is a Wednesday
    assert week_number(date(2025, 1, 1)) == 1
    assert week_number(date(2025, 1, 4)) == 1
    assert week_number(date(2025, 1, 5)) == 2


def test_week_bucket_key_uses_week_monday():
    assert bucket_key(Granularity.WEEK, date(2025, 5, 12)) == "2025-W20"
    assert bucket_key(Granularity.WEEK, date(2025, 5, 18)) == "2025-W20"
    assert bucket_key(Granularity.MONTH, date(2025, 5, 18)) == "2025-05"
    assert bucket_key(Granularity.YEAR, date(2025, 5, 18)) == "2025"
    assert bucket_key(Granularity.DAY, date(2025, 5, 18)) == "2025-05-18"


def test_add_months_clamps_day():
    assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2025, 11, 30), 2) == date(2026, 1, 30)


def test_date_range_rejects_inverted_bounds():
    with pytest.raises(ValueError):
        DateRange(date(2025, 5, 2), date(2025, 5, 1))
