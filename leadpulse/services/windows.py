"""
Reporting Windows

Calendar periods (today, this week, ...) are defined in the business's
reporting timezone, while created_at_ts is stored in UTC. Every window is
computed on local calendar boundaries and then converted to naive UTC
datetimes, half-open [start, end).
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, NamedTuple, Optional, Union
from zoneinfo import ZoneInfo

from leadpulse.errors import InvalidDateRangeError

DateLike = Union[str, date, datetime, None]

PERIOD_NAMES = ("today", "yesterday", "this_week", "last_week", "this_month", "last_month")


class Window(NamedTuple):
    """Half-open UTC interval used in created_at_ts predicates."""
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def previous(self) -> "Window":
        return previous_window(self)

    def to_params(self) -> Dict[str, datetime]:
        return {"start": self.start, "end": self.end}


def previous_window(window: Window) -> Window:
    """The equal-length window immediately preceding the given one."""
    return Window(window.start - window.duration, window.start)


def parse_date(value: DateLike) -> Optional[date]:
    """Accept YYYY-MM-DD strings, dates and datetimes. Blank means None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise InvalidDateRangeError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


class ReportingCalendar:
    """
    Resolves reporting periods to UTC windows.

    Usage:
        calendar = ReportingCalendar("Asia/Kolkata")
        calendar.today()         # Window(start=..., end=...)
        calendar.date_range("2024-06-01", "2024-06-07")
    """

    def __init__(
        self,
        timezone_name: str = "Asia/Kolkata",
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.timezone_name = timezone_name
        self.tz = ZoneInfo(timezone_name)
        self._now = now or (lambda: datetime.now(timezone.utc))

    # =========================================================================
    # Conversion
    # =========================================================================

    def local_now(self) -> datetime:
        now = self._now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.tz)

    def local_today(self) -> date:
        return self.local_now().date()

    def _midnight_utc(self, day: date) -> datetime:
        local = datetime.combine(day, time.min, tzinfo=self.tz)
        return local.astimezone(timezone.utc).replace(tzinfo=None)

    def days(self, first: date, last: date) -> Window:
        """Inclusive local date span as a UTC window."""
        return Window(self._midnight_utc(first), self._midnight_utc(last + timedelta(days=1)))

    # =========================================================================
    # Named Periods
    # =========================================================================

    def today(self) -> Window:
        today = self.local_today()
        return self.days(today, today)

    def yesterday(self) -> Window:
        day = self.local_today() - timedelta(days=1)
        return self.days(day, day)

    def this_week(self) -> Window:
        """Monday of the current week through today."""
        today = self.local_today()
        return self.days(today - timedelta(days=today.weekday()), today)

    def last_week(self) -> Window:
        monday = self.local_today() - timedelta(days=self.local_today().weekday())
        return self.days(monday - timedelta(days=7), monday - timedelta(days=1))

    def this_month(self) -> Window:
        today = self.local_today()
        return self.days(today.replace(day=1), today)

    def last_month(self) -> Window:
        first_of_month = self.local_today().replace(day=1)
        last_day = first_of_month - timedelta(days=1)
        return self.days(last_day.replace(day=1), last_day)

    def period_windows(self) -> Dict[str, Window]:
        """All named periods, keyed in PERIOD_NAMES order."""
        return {name: getattr(self, name)() for name in PERIOD_NAMES}

    # =========================================================================
    # Arbitrary Ranges
    # =========================================================================

    def date_range(self, date_from: DateLike = None, date_to: DateLike = None) -> Window:
        """
        Inclusive local date range. Missing bounds default to today
        (a lone date_from runs through today, a lone date_to is one day).
        """
        first = parse_date(date_from)
        last = parse_date(date_to)

        if first is None and last is None:
            first = last = self.local_today()
        elif first is None:
            first = last
        elif last is None:
            last = max(first, self.local_today())

        if first > last:
            raise InvalidDateRangeError(f"date_from {first} is after date_to {last}")

        return self.days(first, last)
