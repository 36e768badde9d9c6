"""
LeadPulse Caching Layer

In-process caching in front of the read replica, where every dashboard
number is a fan-out over dozens of lead tables:
- CacheStore: namespaced TTL store with stats, batch eviction, version tags
- with_cache / cache_result / cached: async memoization with single-flight
- CacheManager: one store per namespace preset (global, tables, clients,
  dashboard, analytics)
- CacheInvalidator: event-driven invalidation
- CacheMonitor: health checks and metrics
- CacheWarmer: proactive and periodic warming

Usage:
    manager = CacheManager()
    analytics = manager.get_cache("analytics")

    get_count = cache_result(fetch_count, analytics, "getTableCount", ttl=CacheTTL.TABLE_COUNT)
    await get_count("gb_keto_hindi")   # miss, queries the replica
    await get_count("gb_keto_hindi")   # hit

    invalidator = CacheInvalidator(manager)
    invalidator.handle_event(CacheEvent.TABLE_MAPPING_UPDATED, table_name="gb_keto_hindi")
"""

from leadpulse.cache.config import (
    CacheConfig,
    CacheTTL,
    FanOutConfig,
    NAMESPACE_PRESETS,
    NamespacePreset,
    get_cache_config,
)
from leadpulse.cache.store import CacheEntry, CacheStats, CacheStore
from leadpulse.cache.keys import CacheKeys
from leadpulse.cache.utils import (
    batch_cache_get,
    batch_cache_set,
    cache_result,
    cached,
    check_cache_health,
    generate_cache_key,
    get_cache_efficiency,
    invalidate_cache_pattern,
    warm_cache,
    with_cache,
)
from leadpulse.cache.manager import CacheManager
from leadpulse.cache.invalidation import CacheEvent, CacheInvalidator, InvalidationResult
from leadpulse.cache.monitoring import CacheMetrics, CacheMonitor, HealthCheckResult, HealthStatus
from leadpulse.cache.warming import CacheWarmer

__all__ = [
    # Config
    "CacheConfig",
    "CacheTTL",
    "FanOutConfig",
    "NAMESPACE_PRESETS",
    "NamespacePreset",
    "get_cache_config",
    # Store
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "CacheKeys",
    # Utilities
    "batch_cache_get",
    "batch_cache_set",
    "cache_result",
    "cached",
    "check_cache_health",
    "generate_cache_key",
    "get_cache_efficiency",
    "invalidate_cache_pattern",
    "warm_cache",
    "with_cache",
    # Management
    "CacheManager",
    "CacheEvent",
    "CacheInvalidator",
    "InvalidationResult",
    "CacheMetrics",
    "CacheMonitor",
    "HealthCheckResult",
    "HealthStatus",
    "CacheWarmer",
]
