"""
Pytest Configuration and Shared Fixtures

Provides fake clocks, a scripted read replica and preconfigured
components for all test modules. Nothing here touches a real database.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

import pytest

from leadpulse.cache.config import CacheConfig, FanOutConfig
from leadpulse.cache.manager import CacheManager
from leadpulse.cache.store import CacheStore
from leadpulse.collector.fanout import FanOutExecutor
from leadpulse.database.circuit_breaker import CircuitBreaker
from leadpulse.database.mappings import StaticTableMappingSource, TableDescriptor
from leadpulse.services.analytics import AnalyticsService
from leadpulse.services.windows import ReportingCalendar


# 2024-06-12 (a Wednesday) 10:00 in Asia/Kolkata
FIXED_NOW = datetime(2024, 6, 12, 4, 30, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class ScriptedReplica:
    """
    Query executor double.

    Answers COUNT(*) from a table -> total map, windowed counts from a
    (table, window start) -> count map and size queries from a size map.
    Tables listed in `failing` raise the configured error; `transient`
    raises that many retryable errors before answering.
    """

    def __init__(
        self,
        totals: Optional[Dict[str, int]] = None,
        windowed: Optional[Dict[tuple, int]] = None,
        sizes: Optional[Dict[str, float]] = None,
        failing: Optional[Dict[str, Exception]] = None,
        transient: int = 0,
    ):
        self.totals = totals or {}
        self.windowed = windowed or {}
        self.sizes = sizes or {}
        self.failing = failing or {}
        self.transient = transient
        self.calls: List[tuple] = []

    @staticmethod
    def _table_of(sql: str, params: Mapping[str, Any]) -> str:
        if "table_name" in params:
            return params["table_name"]
        return sql.split("`")[1] if "`" in sql else ""

    async def __call__(self, sql: str, params: Mapping[str, Any]):
        self.calls.append((sql, dict(params)))
        table = self._table_of(sql, params)

        if self.transient > 0:
            self.transient -= 1
            raise RuntimeError("QueuePool limit of size 2 overflow 0 reached")

        if table in self.failing:
            raise self.failing[table]

        if "SELECT 1" in sql:
            return [{"ok": 1}]
        if "information_schema" in sql:
            return [{"size_mb": self.sizes.get(table, 0.0)}]
        if "start" in params:
            return [[{"count": self.windowed.get((table, params["start"]), 0)}], []]
        return [{"count": self.totals.get(table, 0)}]

    def queries_for(self, table: str) -> List[tuple]:
        return [c for c in self.calls if f"`{table}`" in c[0] or c[1].get("table_name") == table]


async def no_sleep(seconds: float):
    return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fanout_config() -> FanOutConfig:
    """Fan-out tuned for tests: no waits, short timeout."""
    return FanOutConfig(
        batch_size=2,
        inter_batch_delay=0.0,
        daily_stats_batch_size=1,
        daily_stats_delay=0.0,
        initial_delay=0.3,
        retry_delay=0.0,
        query_timeout=1.0,
    )


@pytest.fixture
def cache_config(fanout_config) -> CacheConfig:
    return CacheConfig(
        enabled=True,
        circuit_breaker_threshold=5,
        circuit_breaker_recovery_seconds=30.0,
        fanout=fanout_config,
    )


@pytest.fixture
def breaker(clock) -> CircuitBreaker:
    return CircuitBreaker("test-replica", failure_threshold=3, recovery_timeout=30.0, clock=clock)


@pytest.fixture
def calendar() -> ReportingCalendar:
    return ReportingCalendar("Asia/Kolkata", now=lambda: FIXED_NOW)


@pytest.fixture
def make_executor(breaker, fanout_config) -> Callable[..., FanOutExecutor]:
    def factory(execute, config: Optional[FanOutConfig] = None, sleep=no_sleep, clock=None):
        kwargs = {"sleep": sleep}
        if clock is not None:
            kwargs["clock"] = clock
        return FanOutExecutor(execute, breaker, config or fanout_config, **kwargs)
    return factory


@pytest.fixture
def mapping_source() -> StaticTableMappingSource:
    return StaticTableMappingSource([
        TableDescriptor("gb_men_x_tamil", "Men X Tamil"),
        TableDescriptor("gb_keto_hindi", None),
    ])


@pytest.fixture
def analytics_store(clock) -> CacheStore:
    return CacheStore(namespace="analytics", ttl=180, max_size=150, clock=clock)


@pytest.fixture
def make_service(mapping_source, analytics_store, calendar, make_executor):
    def factory(replica, source=None, store=None) -> AnalyticsService:
        return AnalyticsService(
            source or mapping_source,
            make_executor(replica),
            store or analytics_store,
            calendar,
        )
    return factory


@pytest.fixture
def manager(cache_config, clock) -> CacheManager:
    return CacheManager(cache_config, clock=clock)
