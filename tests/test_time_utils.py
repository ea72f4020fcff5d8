from datetime import date

from voice_activity.time_utils import (
    MS_PER_DAY,
    date_to_ms,
    month_end,
    month_start,
    ms_to_date,
    next_month_start,
    span_days,
    week_end,
    week_start,
)


def test_date_round_trip_at_utc_midnight():
    start = date_to_ms(date(2024, 2, 29))
    assert ms_to_date(start) == date(2024, 2, 29)
    assert ms_to_date(start - 1) == date(2024, 2, 28)
    assert ms_to_date(start + MS_PER_DAY - 1) == date(2024, 2, 29)


def test_weeks_start_on_monday():
    assert week_start(date(2024, 3, 10)) == date(2024, 3, 4)
    assert week_start(date(2024, 3, 4)) == date(2024, 3, 4)
    assert week_end(date(2024, 3, 6)) == date(2024, 3, 10)
    # Weeks may straddle months
    assert week_start(date(2024, 2, 1)) == date(2024, 1, 29)


def test_month_bounds_handle_leap_years_and_december():
    assert month_start(date(2024, 2, 17)) == date(2024, 2, 1)
    assert month_end(date(2024, 2, 17)) == date(2024, 2, 29)
    assert month_end(date(2023, 2, 17)) == date(2023, 2, 28)
    assert next_month_start(date(2024, 12, 31)) == date(2025, 1, 1)


def test_span_is_inclusive():
    assert span_days(date(2024, 3, 1), date(2024, 3, 1)) == 1
    assert span_days(date(2024, 3, 1), date(2024, 3, 31)) == 31
