"""
Composition root.

Builds one instance of each component per process and wires them
together. Nothing in the core reaches for module-level singletons; the
API and scripts get everything from a Container.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from leadpulse.cache.config import CacheConfig, get_cache_config
from leadpulse.cache.invalidation import CacheInvalidator
from leadpulse.cache.manager import CacheManager
from leadpulse.cache.monitoring import CacheMonitor
from leadpulse.cache.warming import CacheWarmer
from leadpulse.collector.fanout import FanOutExecutor, QueryExecutor
from leadpulse.database.circuit_breaker import CircuitBreaker
from leadpulse.database.mappings import SqlTableMappingSource, TableMappingSource
from leadpulse.database.session import (
    ReadReplica,
    create_read_replica_engine,
    create_write_engine,
    get_session_factory,
)
from leadpulse.services.analytics import AnalyticsService
from leadpulse.services.windows import ReportingCalendar
from leadpulse.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Wired application components."""
    settings: Settings
    cache_config: CacheConfig
    cache_manager: CacheManager
    breaker: CircuitBreaker
    executor: FanOutExecutor
    mapping_source: TableMappingSource
    calendar: ReportingCalendar
    analytics: AnalyticsService
    monitor: CacheMonitor
    invalidator: CacheInvalidator
    warmer: CacheWarmer
    read_replica: Optional[ReadReplica] = None

    def start(self, warm: bool = False):
        """Start background sweeps (and warming if asked). Needs a running loop."""
        self.cache_manager.start(self.cache_config.cleanup_interval_seconds)
        if warm:
            self.warmer.start_background_warmer(self.cache_config.warming_interval_seconds)

    async def shutdown(self):
        await self.warmer.stop_background_warmer()
        await self.cache_manager.stop()
        if self.read_replica is not None:
            self.read_replica.dispose()


def build_container(
    settings: Optional[Settings] = None,
    cache_config: Optional[CacheConfig] = None,
    execute: Optional[QueryExecutor] = None,
    mapping_source: Optional[TableMappingSource] = None,
    now: Optional[Callable[[], datetime]] = None,
) -> Container:
    """
    Wire every component.

    execute and mapping_source default to the configured read replica and
    write store; pass stubs to run without databases.
    """
    settings = settings or get_settings()
    cache_config = cache_config or get_cache_config()

    read_replica = None
    if execute is None:
        read_replica = ReadReplica(create_read_replica_engine(settings))
        execute = read_replica.execute

    if mapping_source is None:
        mapping_source = SqlTableMappingSource(get_session_factory(create_write_engine(settings)))

    manager = CacheManager(cache_config)
    breaker = CircuitBreaker(
        name="read-replica",
        failure_threshold=cache_config.circuit_breaker_threshold,
        recovery_timeout=cache_config.circuit_breaker_recovery_seconds,
    )
    executor = FanOutExecutor(execute, breaker, cache_config.fanout)
    calendar = ReportingCalendar(settings.REPORTING_TIMEZONE, now=now)

    analytics = AnalyticsService(
        mapping_source,
        executor,
        manager["analytics"],
        calendar,
        dashboard_cache=manager["dashboard"],
    )

    logger.info(
        f"Container built (timezone={settings.REPORTING_TIMEZONE}, "
        f"cache_enabled={cache_config.enabled})"
    )

    return Container(
        settings=settings,
        cache_config=cache_config,
        cache_manager=manager,
        breaker=breaker,
        executor=executor,
        mapping_source=mapping_source,
        calendar=calendar,
        analytics=analytics,
        monitor=CacheMonitor(manager, cache_config, breaker=breaker, ping=executor.ping),
        invalidator=CacheInvalidator(manager),
        warmer=CacheWarmer(analytics, cache_config),
        read_replica=read_replica,
    )
