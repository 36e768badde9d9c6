"""
Cache Manager

Registry of the named cache stores used across the app. Each store gets
its TTL and size cap from NAMESPACE_PRESETS:

- global: cross-cutting results
- tables: per-table lookups
- clients: client lists and details
- dashboard: dashboard bundles
- analytics: fan-out aggregates
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from leadpulse.cache.config import CacheConfig, NAMESPACE_PRESETS, get_cache_config
from leadpulse.cache.store import CacheStore
from leadpulse.cache.utils import get_cache_efficiency


logger = logging.getLogger(__name__)


class CacheManager:
    """
    Owns one CacheStore per preset namespace.

    Usage:
        manager = CacheManager()
        analytics = manager.get_cache("analytics")
        manager.clear_cache("dashboard")
        manager.get_all_health()
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or get_cache_config()
        self._caches: Dict[str, CacheStore] = {
            name: CacheStore(
                namespace=name,
                ttl=preset.ttl,
                max_size=preset.max_size,
                version=self.config.version,
                enabled=self.config.enabled,
                clock=clock,
            )
            for name, preset in NAMESPACE_PRESETS.items()
        }

    @property
    def names(self) -> List[str]:
        return list(self._caches)

    def get_cache(self, name: str) -> Optional[CacheStore]:
        return self._caches.get(name)

    def __getitem__(self, name: str) -> CacheStore:
        return self._caches[name]

    def get_all_caches(self) -> Dict[str, CacheStore]:
        return dict(self._caches)

    # =========================================================================
    # Clearing
    # =========================================================================

    def clear_cache(self, name: str) -> bool:
        """Clear one store. False if no store has that name."""
        cache = self._caches.get(name)
        if cache is None:
            return False
        cache.clear()
        return True

    def clear_all(self) -> int:
        """Clear every store. Returns number of entries removed."""
        removed = sum(cache.size() for cache in self._caches.values())
        for cache in self._caches.values():
            cache.clear()
        logger.info(f"All caches cleared ({removed} entries)")
        return removed

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_all_stats(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """store name -> namespace -> stats dict"""
        return {
            name: {ns: stats.to_dict() for ns, stats in cache.get_all_stats().items()}
            for name, cache in self._caches.items()
        }

    def get_all_health(self) -> Dict[str, Dict[str, Any]]:
        """Per "store:namespace" health, healthy when hit rate >= min_hit_rate."""
        health = {}
        for name, cache in self._caches.items():
            for ns, stats in cache.get_all_stats().items():
                health[f"{name}:{ns}"] = {
                    "healthy": stats.hit_rate >= self.config.min_hit_rate,
                    "hit_rate": stats.hit_rate,
                    "size": stats.size,
                    "max_size": stats.max_size,
                    "total_requests": stats.total_requests,
                }
        return health

    def get_performance_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Hit/miss totals per store with an efficiency rating."""
        metrics = {}
        for name, cache in self._caches.items():
            all_stats = cache.get_all_stats().values()
            hits = sum(s.hits for s in all_stats)
            misses = sum(s.misses for s in all_stats)
            total = sum(s.total_requests for s in all_stats)

            metrics[name] = {
                "total_hits": hits,
                "total_misses": misses,
                "total_requests": total,
                "overall_hit_rate": round(hits / total * 100, 2) if total else 0.0,
                "efficiency": get_cache_efficiency(cache)["efficiency"],
            }
        return metrics

    def get_recommendations(self) -> List[str]:
        recommendations = []
        for key, health in self.get_all_health().items():
            if health["total_requests"] == 0:
                recommendations.append(f"Cache {key} is not being used - verify integration")
                continue
            if health["hit_rate"] < self.config.min_hit_rate:
                recommendations.append(
                    f"Consider increasing TTL for {key} (hit rate: {health['hit_rate']:.1f}%)"
                )
            if health["size"] > health["max_size"] * self.config.capacity_warning_ratio:
                recommendations.append(
                    f"Consider increasing max_size for {key} ({health['size']}/{health['max_size']})"
                )
        return recommendations

    def export(self) -> Dict[str, Dict[str, Any]]:
        return {name: cache.export() for name, cache in self._caches.items()}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, interval: Optional[float] = None):
        """Start the expiry sweep on every store. Needs a running loop."""
        interval = interval or self.config.cleanup_interval_seconds
        for cache in self._caches.values():
            cache.start_cleanup(interval)
        logger.info(f"Cache sweeps started for {len(self._caches)} stores (interval: {interval}s)")

    async def stop(self):
        for cache in self._caches.values():
            await cache.stop_cleanup()
        logger.info("Cache sweeps stopped")
