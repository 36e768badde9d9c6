"""
Read services over the lead tables.

Usage:
    from leadpulse.services import AnalyticsService, ReportingCalendar
"""

from .windows import PERIOD_NAMES, ReportingCalendar, Window, parse_date, previous_window
from .analytics import AnalyticsService, aggregate_daily_stats

__all__ = [
    "PERIOD_NAMES",
    "ReportingCalendar",
    "Window",
    "parse_date",
    "previous_window",
    "AnalyticsService",
    "aggregate_daily_stats",
]
