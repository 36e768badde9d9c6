"""
Analytics Service

Cached, semantically named read operations over the lead tables. Every
public method returns an envelope:

    {"success": True, ...data}
    {"success": False, "error": "...", ...empty data}

Nothing raises across this boundary. Per-table failures are already
degraded to zero records by the fan-out executor; anything that still
escapes (mapping source down, bad date range) becomes a failure envelope.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from leadpulse.cache.config import CacheTTL
from leadpulse.cache.keys import CacheKeys
from leadpulse.cache.store import CacheStore
from leadpulse.cache.utils import cache_result, get_cache_efficiency
from leadpulse.collector.fanout import FanOutExecutor
from leadpulse.database.mappings import TableDescriptor, TableMappingSource
from leadpulse.scoring.growth import average_growth, with_growth
from leadpulse.scoring.performance import score_daily_stats
from leadpulse.services.windows import PERIOD_NAMES, DateLike, ReportingCalendar, Window

logger = logging.getLogger(__name__)


def aggregate_daily_stats(stats: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Sum per-table daily stats in memory."""
    aggregated = {name: sum(record.get(name, 0) for record in stats) for name in PERIOD_NAMES}
    aggregated["total_records"] = sum(record.get("total_records", 0) for record in stats)
    aggregated["tables_with_data"] = sum(1 for record in stats if record.get("has_data"))
    aggregated["total_tables"] = len(stats)
    return aggregated


class AnalyticsService:
    """
    Aggregations across every active lead table.

    Usage:
        service = AnalyticsService(mappings, executor, manager["analytics"], calendar)
        result = await service.get_daily_stats()
        if result["success"]:
            result["aggregated"]["today"]
    """

    def __init__(
        self,
        mapping_source: TableMappingSource,
        executor: FanOutExecutor,
        cache: CacheStore,
        calendar: Optional[ReportingCalendar] = None,
        dashboard_cache: Optional[CacheStore] = None,
    ):
        self.mapping_source = mapping_source
        self.executor = executor
        self.cache = cache
        self.dashboard_cache = dashboard_cache or cache
        self.calendar = calendar or ReportingCalendar()

        keys = CacheKeys.Analytics
        self._mappings = cache_result(
            self._load_mappings, cache, keys.TABLE_MAPPINGS, ttl=CacheTTL.TABLE_MAPPINGS)
        self._table_count = cache_result(
            self.executor.count, cache, keys.TABLE_COUNT, ttl=CacheTTL.TABLE_COUNT)
        self._table_size = cache_result(
            self.executor.size_mb, cache, keys.TABLE_SIZE, ttl=CacheTTL.TABLE_SIZE)
        self._all_counts = cache_result(
            self._compute_all_counts, cache, keys.TABLE_COUNTS, ttl=CacheTTL.ALL_TABLE_COUNTS)
        self._all_stats = cache_result(
            self._compute_all_stats, cache, keys.TABLE_STATS, ttl=CacheTTL.ALL_TABLE_STATS)
        self._table_daily_stats = cache_result(
            self._compute_table_daily_stats, cache, keys.TABLE_DAILY_STATS, ttl=CacheTTL.TABLE_DAILY_STATS)
        self._daily_stats = cache_result(
            self._compute_daily_stats, cache, keys.DAILY_STATS, ttl=CacheTTL.DAILY_STATS)
        self._growth = cache_result(
            self._compute_growth, cache, keys.GROWTH, ttl=CacheTTL.GROWTH)
        self._dashboard = cache_result(
            self._compute_dashboard, self.dashboard_cache, CacheKeys.Dashboard.DATA, ttl=CacheTTL.DASHBOARD)

    # =========================================================================
    # Envelope
    # =========================================================================

    async def _envelope(
        self,
        operation: str,
        fn: Callable[[], Awaitable[Dict[str, Any]]],
        empty: Dict[str, Any],
    ) -> Dict[str, Any]:
        try:
            data = await fn()
        except Exception as e:
            logger.error(f"Error in {operation}: {e}")
            return {"success": False, "error": f"{operation} failed: {e}", **empty}
        return {"success": True, **data}

    # =========================================================================
    # Computations (cached)
    # =========================================================================

    async def _load_mappings(self) -> List[TableDescriptor]:
        return list(await self.mapping_source.get_active_mappings())

    async def _table_names(self) -> List[str]:
        return [m.table_name for m in await self._mappings()]

    async def _compute_all_counts(self) -> List[Dict[str, Any]]:
        mappings = await self._mappings()
        counts = await self.executor.count_all([m.table_name for m in mappings])
        return [
            {
                "table_name": m.table_name,
                "custom_table_name": m.custom_table_name,
                "count": record["count"],
            }
            for m, record in zip(mappings, counts)
        ]

    async def _compute_all_stats(self) -> List[Dict[str, Any]]:
        mappings = await self._mappings()
        stats = await self.executor.stats_all([m.table_name for m in mappings])
        return [
            {
                "table_name": m.table_name,
                "custom_table_name": m.custom_table_name,
                "count": record["count"],
                "size_mb": record["size_mb"],
            }
            for m, record in zip(mappings, stats)
        ]

    async def _compute_table_daily_stats(self, table_name: str, as_of: str) -> Dict[str, Any]:
        return await self.executor.daily_stats(table_name, self.calendar.period_windows())

    async def _compute_daily_stats(self, table_names: Optional[List[str]], as_of: str) -> List[Dict[str, Any]]:
        if table_names is None:
            table_names = await self._table_names()
        return await self.executor.daily_stats_all(table_names, self.calendar.period_windows())

    async def _compute_growth(self, start, end) -> List[Dict[str, Any]]:
        window = Window(start, end)
        mappings = await self._mappings()
        rows = await self.executor.compare_all(
            [m.table_name for m in mappings], window, window.previous()
        )

        results = []
        for m, row in zip(mappings, rows):
            record = with_growth(row)
            record["display_name"] = m.display_name
            results.append(record)

        results.sort(key=lambda r: r["count"], reverse=True)
        return results

    async def _compute_dashboard(self, start, end) -> Dict[str, Any]:
        mappings = await self._mappings()
        table_counts = await self._growth(start, end)
        daily = await self._daily_stats(None, self._as_of())
        counts = await self._all_counts()

        aggregated = aggregate_daily_stats(daily)
        return {
            "total_tables": len(mappings),
            "total_records": sum(c["count"] for c in counts),
            "period_counts": {name: aggregated[name] for name in PERIOD_NAMES},
            "table_counts": table_counts,
            "total_leads": sum(r["count"] for r in table_counts),
            "average_growth": round(average_growth(table_counts), 2),
        }

    def _as_of(self) -> str:
        # Window-based results are keyed by local date so they roll over at midnight
        return self.calendar.local_today().isoformat()

    # =========================================================================
    # Table Mappings
    # =========================================================================

    async def get_all_table_mappings(self) -> Dict[str, Any]:
        async def run():
            return {"mappings": [m.to_dict() for m in await self._mappings()]}
        return await self._envelope("get_all_table_mappings", run, {"mappings": []})

    async def get_all_table_names(self) -> Dict[str, Any]:
        async def run():
            return {"table_names": await self._table_names()}
        return await self._envelope("get_all_table_names", run, {"table_names": []})

    # =========================================================================
    # Counts and Sizes
    # =========================================================================

    async def get_table_count(self, table_name: str) -> Dict[str, Any]:
        async def run():
            return {"table_name": table_name, "count": await self._table_count(table_name)}
        return await self._envelope("get_table_count", run, {"table_name": table_name, "count": 0})

    async def get_table_size(self, table_name: str) -> Dict[str, Any]:
        async def run():
            return {"table_name": table_name, "size_mb": await self._table_size(table_name)}
        return await self._envelope("get_table_size", run, {"table_name": table_name, "size_mb": 0.0})

    async def get_all_table_counts(self) -> Dict[str, Any]:
        async def run():
            return {"counts": await self._all_counts()}
        return await self._envelope("get_all_table_counts", run, {"counts": []})

    async def get_all_table_stats(self) -> Dict[str, Any]:
        async def run():
            return {"stats": await self._all_stats()}
        return await self._envelope("get_all_table_stats", run, {"stats": []})

    async def get_total_count(self) -> Dict[str, Any]:
        async def run():
            return {"total": sum(c["count"] for c in await self._all_counts())}
        return await self._envelope("get_total_count", run, {"total": 0})

    async def get_analytics_summary(self) -> Dict[str, Any]:
        async def run():
            stats = await self._all_stats()
            total_tables = len(stats)
            total_records = sum(s["count"] for s in stats)
            return {
                "summary": {
                    "total_tables": total_tables,
                    "total_records": total_records,
                    "total_size_mb": round(sum(s["size_mb"] for s in stats), 2),
                    "average_records_per_table": round(total_records / total_tables) if total_tables else 0,
                }
            }

        empty = {
            "summary": {
                "total_tables": 0,
                "total_records": 0,
                "total_size_mb": 0.0,
                "average_records_per_table": 0,
            }
        }
        return await self._envelope("get_analytics_summary", run, empty)

    # =========================================================================
    # Time Windows
    # =========================================================================

    async def get_table_daily_stats(self, table_name: str) -> Dict[str, Any]:
        async def run():
            return {"stats": await self._table_daily_stats(table_name, self._as_of())}

        empty = {"stats": {"table_name": table_name, **{n: 0 for n in PERIOD_NAMES},
                           "total_records": 0, "has_data": False}}
        return await self._envelope("get_table_daily_stats", run, empty)

    async def get_daily_stats(self, table_names: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        """Per-table period breakdown plus in-memory totals. Defaults to all mapped tables."""
        async def run():
            names = list(table_names) if table_names is not None else None
            stats = await self._daily_stats(names, self._as_of())
            return {"stats": stats, "aggregated": aggregate_daily_stats(stats)}

        return await self._envelope(
            "get_daily_stats", run, {"stats": [], "aggregated": aggregate_daily_stats([])}
        )

    async def get_table_wise_counts_with_growth(
        self,
        date_from: DateLike = None,
        date_to: DateLike = None,
    ) -> Dict[str, Any]:
        """
        Per-table counts for an inclusive local date range against the
        equal-length range before it, sorted by count descending.
        """
        async def run():
            window = self.calendar.date_range(date_from, date_to)
            previous = window.previous()
            rows = await self._growth(window.start, window.end)
            return {
                "data": rows,
                "total_leads": sum(r["count"] for r in rows),
                "average_growth": round(average_growth(rows), 2),
                "period": {
                    "start": window.start.isoformat(),
                    "end": window.end.isoformat(),
                    "previous_start": previous.start.isoformat(),
                    "previous_end": previous.end.isoformat(),
                },
            }

        empty = {"data": [], "total_leads": 0, "average_growth": 0.0}
        return await self._envelope("get_table_wise_counts_with_growth", run, empty)

    async def get_period_lead_counts(self) -> Dict[str, Any]:
        """Lead totals for today through last month, summed across tables."""
        async def run():
            aggregated = aggregate_daily_stats(await self._daily_stats(None, self._as_of()))
            counts = {name: aggregated[name] for name in PERIOD_NAMES}
            counts["total"] = aggregated["total_records"]
            return {"counts": counts}

        empty = {"counts": {**{name: 0 for name in PERIOD_NAMES}, "total": 0}}
        return await self._envelope("get_period_lead_counts", run, empty)

    async def get_dashboard_data(
        self,
        date_from: DateLike = None,
        date_to: DateLike = None,
    ) -> Dict[str, Any]:
        async def run():
            window = self.calendar.date_range(date_from, date_to)
            return {"data": await self._dashboard(window.start, window.end)}

        empty = {
            "data": {
                "total_tables": 0,
                "total_records": 0,
                "period_counts": {name: 0 for name in PERIOD_NAMES},
                "table_counts": [],
                "total_leads": 0,
                "average_growth": 0.0,
            }
        }
        return await self._envelope("get_dashboard_data", run, empty)

    async def get_performance_scores(self) -> Dict[str, Any]:
        """Performance score and trend per table, best first."""
        async def run():
            stats = await self._daily_stats(None, self._as_of())
            return {"scores": [score.to_dict() for score in score_daily_stats(stats)]}
        return await self._envelope("get_performance_scores", run, {"scores": []})

    # =========================================================================
    # Cache Control and Metrics
    # =========================================================================

    async def invalidate(self) -> Dict[str, Any]:
        """Drop every cached aggregate."""
        async def run():
            cleared = self.cache.size()
            self.cache.clear()
            if self.dashboard_cache is not self.cache:
                cleared += self.dashboard_cache.size()
                self.dashboard_cache.clear()
            logger.info(f"Analytics cache invalidated ({cleared} entries)")
            return {"cleared": cleared}
        return await self._envelope("invalidate", run, {"cleared": 0})

    async def warm(self) -> Dict[str, Any]:
        """Populate the main aggregates concurrently. Partial failure is reported, not raised."""
        async def run():
            operations = {
                "table_mappings": self.get_all_table_mappings,
                "table_counts": self.get_all_table_counts,
                "table_stats": self.get_all_table_stats,
                "total_count": self.get_total_count,
                "summary": self.get_analytics_summary,
                "daily_stats": self.get_daily_stats,
            }
            results = await asyncio.gather(*(op() for op in operations.values()))
            return {"warmed": {name: r["success"] for name, r in zip(operations, results)}}
        return await self._envelope("warm", run, {"warmed": {}})

    async def get_metrics(self) -> Dict[str, Any]:
        async def run():
            stats = self.cache.get_stats()
            return {
                "queries": self.executor.get_metrics(),
                "circuit_breaker": self.executor.breaker.get_status(),
                "cache": {
                    "stats": stats.to_dict() if stats else None,
                    **get_cache_efficiency(self.cache),
                },
            }
        return await self._envelope("get_metrics", run, {})
