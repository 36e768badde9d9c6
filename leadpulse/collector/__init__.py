"""
Read-replica fan-out collection.

Usage:
    from leadpulse.collector import FanOutExecutor

    executor = FanOutExecutor(replica.execute, breaker, config.fanout)
    stats = await executor.daily_stats_all(tables, calendar.period_windows())
"""

from .fanout import (
    BatchMode,
    FanOutExecutor,
    QueryExecutor,
    QueryMetrics,
    chunk,
    zero_comparison_record,
    zero_count_record,
    zero_daily_record,
    zero_stats_record,
)
from .queries import (
    count_in_range_query,
    count_query,
    table_size_query,
)

__all__ = [
    "BatchMode",
    "FanOutExecutor",
    "QueryExecutor",
    "QueryMetrics",
    "chunk",
    "zero_comparison_record",
    "zero_count_record",
    "zero_daily_record",
    "zero_stats_record",
    "count_in_range_query",
    "count_query",
    "table_size_query",
]
