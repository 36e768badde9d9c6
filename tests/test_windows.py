"""
Tests for reporting windows in the business timezone.

Fixed clock: Wednesday 2024-06-12, 10:00 Asia/Kolkata (04:30 UTC).
Local midnight is 18:30 UTC the previous day.
"""

from datetime import date, datetime, timedelta

import pytest

from leadpulse.errors import InvalidDateRangeError
from leadpulse.services.windows import (
    PERIOD_NAMES,
    ReportingCalendar,
    Window,
    parse_date,
    previous_window,
)


def utc(*args) -> datetime:
    return datetime(*args)


class TestNamedPeriods:

    def test_local_today(self, calendar):
        assert calendar.local_today() == date(2024, 6, 12)

    def test_today(self, calendar):
        assert calendar.today() == Window(utc(2024, 6, 11, 18, 30), utc(2024, 6, 12, 18, 30))

    def test_yesterday(self, calendar):
        assert calendar.yesterday() == Window(utc(2024, 6, 10, 18, 30), utc(2024, 6, 11, 18, 30))

    def test_this_week_starts_monday(self, calendar):
        assert calendar.this_week() == Window(utc(2024, 6, 9, 18, 30), utc(2024, 6, 12, 18, 30))

    def test_last_week(self, calendar):
        window = calendar.last_week()
        assert window == Window(utc(2024, 6, 2, 18, 30), utc(2024, 6, 9, 18, 30))
        assert window.duration == timedelta(days=7)

    def test_this_month(self, calendar):
        assert calendar.this_month() == Window(utc(2024, 5, 31, 18, 30), utc(2024, 6, 12, 18, 30))

    def test_last_month(self, calendar):
        assert calendar.last_month() == Window(utc(2024, 4, 30, 18, 30), utc(2024, 5, 31, 18, 30))

    def test_period_windows_order(self, calendar):
        assert tuple(calendar.period_windows()) == PERIOD_NAMES

    def test_utc_late_evening_is_next_local_day(self):
        # 20:00 UTC on the 11th is already the 12th in India
        calendar = ReportingCalendar(now=lambda: datetime(2024, 6, 11, 20, 0))
        assert calendar.local_today() == date(2024, 6, 12)

    def test_january_last_month_wraps_year(self):
        calendar = ReportingCalendar(now=lambda: datetime(2024, 1, 15, 6, 0))
        window = calendar.last_month()
        assert window.start == utc(2023, 11, 30, 18, 30)
        assert window.end == utc(2023, 12, 31, 18, 30)


class TestDateRange:

    def test_inclusive_range(self, calendar):
        window = calendar.date_range("2024-06-01", "2024-06-07")
        assert window == Window(utc(2024, 5, 31, 18, 30), utc(2024, 6, 7, 18, 30))

    def test_previous_window_is_equal_length(self, calendar):
        window = calendar.date_range("2024-06-01", "2024-06-07")
        previous = window.previous()
        assert previous == Window(utc(2024, 5, 24, 18, 30), utc(2024, 5, 31, 18, 30))
        assert previous.duration == window.duration
        assert previous_window(window) == previous

    def test_defaults_to_today(self, calendar):
        assert calendar.date_range() == calendar.today()
        assert calendar.date_range("", None) == calendar.today()

    def test_lone_date_to_is_single_day(self, calendar):
        window = calendar.date_range(None, "2024-06-05")
        assert window.duration == timedelta(days=1)

    def test_lone_date_from_runs_through_today(self, calendar):
        window = calendar.date_range("2024-06-10")
        assert window.end == calendar.today().end

    def test_accepts_dates_and_datetime_strings(self, calendar):
        a = calendar.date_range(date(2024, 6, 1), datetime(2024, 6, 7, 23, 59))
        b = calendar.date_range("2024-06-01T00:00:00", "2024-06-07")
        assert a == b

    def test_inverted_range_rejected(self, calendar):
        with pytest.raises(InvalidDateRangeError):
            calendar.date_range("2024-06-07", "2024-06-01")

    def test_malformed_date_rejected(self):
        with pytest.raises(InvalidDateRangeError):
            parse_date("06/07/2024")

    def test_to_params(self, calendar):
        window = calendar.today()
        assert window.to_params() == {"start": window.start, "end": window.end}
