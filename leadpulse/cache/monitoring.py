"""
Cache Monitoring

Health checks, metrics collection, and trend summaries for the in-memory
cache stores and the read replica behind them.
"""

import logging
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from leadpulse.cache.config import CacheConfig, get_cache_config
from leadpulse.cache.manager import CacheManager
from leadpulse.database.circuit_breaker import CircuitBreaker


logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Health check status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class CacheMetrics:
    """Point-in-time cache metrics across all stores."""
    timestamp: datetime

    # Hit/miss statistics
    hits: int
    misses: int
    hit_rate: float

    # Capacity
    entries: int
    capacity: int

    # Read replica guard
    circuit_breaker_open: bool


@dataclass
class HealthCheckResult:
    """Result of a health check."""
    status: HealthStatus
    latency_ms: float
    checks: Dict[str, bool]
    issues: List[Dict[str, Any]]
    metrics: Optional[CacheMetrics] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
            "checks": self.checks,
            "issues": self.issues,
            "metrics": asdict(self.metrics) if self.metrics else None,
            "timestamp": self.timestamp.isoformat(),
        }


class CacheMonitor:
    """
    Monitors cache health and performance.

    Provides:
    - Health checks (hit rate, capacity, usage, circuit breaker, replica ping)
    - Metrics history for trend analysis
    """

    def __init__(
        self,
        manager: CacheManager,
        config: Optional[CacheConfig] = None,
        breaker: Optional[CircuitBreaker] = None,
        ping: Optional[Callable[[], Awaitable[bool]]] = None,
    ):
        self.manager = manager
        self._config = config or get_cache_config()
        self._breaker = breaker
        self._ping = ping
        self._metrics_history: List[CacheMetrics] = []
        self._max_history = 1000  # Keep last 1000 samples

    def _totals(self) -> Dict[str, int]:
        hits = misses = entries = capacity = 0
        for cache in self.manager.get_all_caches().values():
            for stats in cache.get_all_stats().values():
                hits += stats.hits
                misses += stats.misses
            entries += cache.size()
            capacity += cache.max_size
        return {"hits": hits, "misses": misses, "entries": entries, "capacity": capacity}

    async def health_check(self, breaker: Optional[CircuitBreaker] = None) -> HealthCheckResult:
        """
        Perform comprehensive health check.

        Returns:
            HealthCheckResult with status, latency, and issues
        """
        start_time = time.time()
        breaker = breaker or self._breaker
        checks = {}
        issues = []

        # Check 1: Read replica connectivity
        if self._ping is not None:
            checks["connectivity"] = await self._ping()
            if not checks["connectivity"]:
                issues.append({
                    "type": "connectivity",
                    "severity": "critical",
                    "message": "Read replica health check failed",
                    "action": "Check read replica status and READ_REPLICA_DATABASE_URL",
                })

        # Check 2: Hit rate per store
        health = self.manager.get_all_health()
        low_hit_rate = [
            key for key, h in health.items()
            if h["total_requests"] > 100 and h["hit_rate"] < self._config.min_hit_rate
        ]
        checks["hit_rate"] = not low_hit_rate
        for key in low_hit_rate:
            issues.append({
                "type": "hit_rate",
                "severity": "warning",
                "message": f"Low cache hit rate on {key}: {health[key]['hit_rate']:.1f}%",
                "threshold": self._config.min_hit_rate,
                "action": "Review cache TTLs and key generation",
            })

        # Check 3: Capacity
        near_full = [
            key for key, h in health.items()
            if h["size"] > h["max_size"] * self._config.capacity_warning_ratio
        ]
        checks["capacity"] = not near_full
        for key in near_full:
            issues.append({
                "type": "capacity",
                "severity": "warning",
                "message": f"Cache {key} nearly full: {health[key]['size']}/{health[key]['max_size']}",
                "action": "Increase max_size or reduce TTL for this namespace",
            })

        # Check 4: Usage
        totals = self._totals()
        checks["usage"] = (totals["hits"] + totals["misses"]) > 0
        if not checks["usage"]:
            issues.append({
                "type": "usage",
                "severity": "info",
                "message": "No cache requests recorded yet",
                "action": "Verify cache integration in data fetching functions",
            })

        # Check 5: Circuit breaker
        circuit_breaker_open = bool(breaker and breaker.is_open)
        checks["circuit_breaker"] = not circuit_breaker_open
        if circuit_breaker_open:
            issues.append({
                "type": "circuit_breaker",
                "severity": "critical",
                "message": f"Circuit breaker '{breaker.name}' is open (replica queries rejected)",
                "action": "Investigate read replica connectivity and pool exhaustion",
            })

        # Determine overall status
        if not checks.get("connectivity", True) or circuit_breaker_open:
            status = HealthStatus.UNHEALTHY
        elif not (checks["hit_rate"] and checks["capacity"]):
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY

        metrics = self._collect_metrics(totals, circuit_breaker_open)

        return HealthCheckResult(
            status=status,
            latency_ms=(time.time() - start_time) * 1000,
            checks=checks,
            issues=issues,
            metrics=metrics,
        )

    def _collect_metrics(self, totals: Dict[str, int], circuit_breaker_open: bool) -> CacheMetrics:
        requests = totals["hits"] + totals["misses"]
        metrics = CacheMetrics(
            timestamp=datetime.utcnow(),
            hits=totals["hits"],
            misses=totals["misses"],
            hit_rate=totals["hits"] / requests if requests else 0.0,
            entries=totals["entries"],
            capacity=totals["capacity"],
            circuit_breaker_open=circuit_breaker_open,
        )

        # Store in history
        self._metrics_history.append(metrics)
        if len(self._metrics_history) > self._max_history:
            self._metrics_history = self._metrics_history[-self._max_history:]

        return metrics

    def get_metrics(self) -> CacheMetrics:
        """Get current metrics."""
        breaker_open = bool(self._breaker and self._breaker.is_open)
        return self._collect_metrics(self._totals(), breaker_open)

    def get_metrics_history(
        self,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[CacheMetrics]:
        """Get metrics history."""
        history = self._metrics_history

        if since:
            history = [m for m in history if m.timestamp >= since]

        return history[-limit:]

    async def get_summary(self) -> Dict[str, Any]:
        """Get summary of cache performance."""
        health = await self.health_check()

        recent = self.get_metrics_history(
            since=datetime.utcnow() - timedelta(hours=1),
            limit=60,
        )

        hit_rate_trend = "stable"
        if len(recent) >= 10:
            first_half = recent[:len(recent)//2]
            second_half = recent[len(recent)//2:]

            first_hit_rate = sum(m.hit_rate for m in first_half) / len(first_half)
            second_hit_rate = sum(m.hit_rate for m in second_half) / len(second_half)
            if second_hit_rate > first_hit_rate + 0.05:
                hit_rate_trend = "improving"
            elif second_hit_rate < first_hit_rate - 0.05:
                hit_rate_trend = "degrading"

        metrics = health.metrics
        return {
            "health": {
                "status": health.status.value,
                "issues_count": len(health.issues),
                "critical_issues": len([i for i in health.issues if i.get("severity") == "critical"]),
            },
            "performance": {
                "hit_rate_percent": round(metrics.hit_rate * 100, 2),
                "hit_rate_trend": hit_rate_trend,
                "stores": self.manager.get_performance_metrics(),
            },
            "storage": {
                "entries": metrics.entries,
                "capacity": metrics.capacity,
                "utilization": round(metrics.entries / metrics.capacity, 4) if metrics.capacity else 0.0,
            },
            "reliability": {
                "circuit_breaker": self._breaker.get_status() if self._breaker else None,
            },
            "timestamp": datetime.utcnow().isoformat(),
        }
