"""
Centralized cache keys.

Raw keys only: the store qualifies them with the namespace it writes to.
"""


class CacheKeys:
    """Key constants grouped by the area that owns them."""

    class Dashboard:
        DATA = "dashboard-data"

    class Analytics:
        TABLE_MAPPINGS = "getAllTableMappings"
        TABLE_NAMES = "getAllTableNames"
        TABLE_COUNT = "getTableCount"
        TABLE_SIZE = "getTableSize"
        TABLE_COUNTS = "getAllTableCounts"
        TABLE_STATS = "getAllTableStats"
        TOTAL_COUNT = "getTotalCount"
        SUMMARY = "getAnalyticsSummary"
        TABLE_DAILY_STATS = "getTableDailyStats"
        DAILY_STATS = "getDailyStats"
        GROWTH = "getTableWiseCountsWithGrowth"
        PERIOD_LEAD_COUNTS = "getPeriodLeadCounts"

