"""
Cache Configuration

Centralized configuration for the in-memory caching layer and the
fan-out query engine it sits in front of.

Batch sizes, delays and breaker thresholds were tuned against a read
replica with a two-connection pool. They stay configurable per deployment
through environment variables.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Optional, Tuple
from functools import lru_cache


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass(frozen=True)
class CacheTTL:
    """
    Cache TTL configuration by data type.

    Row counts move constantly (leads arrive all day) but the dashboard
    tolerates a few minutes of staleness. Mappings change only when an admin
    edits them, so they are kept longer.
    """

    # Table mapping list (admin edits are rare)
    TABLE_MAPPINGS: timedelta = timedelta(minutes=10)
    TABLE_NAMES: timedelta = timedelta(minutes=10)

    # Per-table aggregates
    TABLE_COUNT: timedelta = timedelta(minutes=5)
    TABLE_SIZE: timedelta = timedelta(minutes=10)
    TABLE_DAILY_STATS: timedelta = timedelta(minutes=5)

    # Fan-out aggregates
    ALL_TABLE_COUNTS: timedelta = timedelta(minutes=3)
    ALL_TABLE_STATS: timedelta = timedelta(minutes=3)
    TOTAL_COUNT: timedelta = timedelta(minutes=3)
    ANALYTICS_SUMMARY: timedelta = timedelta(minutes=3)
    DAILY_STATS: timedelta = timedelta(minutes=5)
    GROWTH: timedelta = timedelta(minutes=3)
    PERIOD_LEAD_COUNTS: timedelta = timedelta(minutes=5)

    # Dashboard bundle
    DASHBOARD: timedelta = timedelta(minutes=2)

    @classmethod
    def for_operation(cls, operation: str) -> timedelta:
        """Get TTL for an aggregation operation name."""
        mapping = {
            "table-mappings": cls.TABLE_MAPPINGS,
            "table-names": cls.TABLE_NAMES,
            "table-count": cls.TABLE_COUNT,
            "table-size": cls.TABLE_SIZE,
            "table-daily-stats": cls.TABLE_DAILY_STATS,
            "all-table-counts": cls.ALL_TABLE_COUNTS,
            "all-table-stats": cls.ALL_TABLE_STATS,
            "total-count": cls.TOTAL_COUNT,
            "summary": cls.ANALYTICS_SUMMARY,
            "daily-stats": cls.DAILY_STATS,
            "growth": cls.GROWTH,
            "period-lead-counts": cls.PERIOD_LEAD_COUNTS,
            "dashboard": cls.DASHBOARD,
        }
        return mapping.get(operation, cls.ALL_TABLE_COUNTS)


@dataclass(frozen=True)
class NamespacePreset:
    """Default TTL and size cap for one cache namespace."""
    ttl: timedelta
    max_size: int


NAMESPACE_PRESETS: Dict[str, NamespacePreset] = {
    "global": NamespacePreset(ttl=timedelta(minutes=5), max_size=1000),
    "tables": NamespacePreset(ttl=timedelta(minutes=5), max_size=500),
    "clients": NamespacePreset(ttl=timedelta(minutes=10), max_size=300),
    "dashboard": NamespacePreset(ttl=timedelta(minutes=2), max_size=200),
    "analytics": NamespacePreset(ttl=timedelta(minutes=3), max_size=150),
}


@dataclass
class FanOutConfig:
    """
    Tunables for the batched fan-out executor.

    The adaptive delay is an additive-increase/additive-decrease throttle:
    slow batches add `increase_step`, fast batches subtract `decrease_step`,
    always clamped to [min_delay, max_delay]. All durations are seconds.
    """

    batch_size: int = 5
    inter_batch_delay: float = 0.3

    # Time-windowed stats issue several queries per table, so one table per batch
    daily_stats_batch_size: int = 1
    daily_stats_delay: float = 0.4

    # Adaptive delay
    initial_delay: float = 0.3
    min_delay: float = 0.1
    max_delay: float = 1.0
    slow_batch_threshold: float = 2.0
    fast_batch_threshold: float = 0.5
    increase_step: float = 0.1
    decrease_step: float = 0.05

    # Bounded parallel batches
    max_concurrent_batches: int = 2

    # Retry on known transient driver errors (matched on message text)
    max_retries: int = 3
    retry_delay: float = 1.0
    retryable_patterns: Tuple[str, ...] = ("Queue limit", "QueuePool limit")

    # Per-table query timeout; None disables it
    query_timeout: Optional[float] = 10.0

    def __post_init__(self):
        if self.batch_size < 1 or self.daily_stats_batch_size < 1:
            raise ValueError("batch sizes must be >= 1")
        if self.max_concurrent_batches < 1:
            raise ValueError("max_concurrent_batches must be >= 1")
        if self.min_delay > self.max_delay:
            raise ValueError("min_delay must not exceed max_delay")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @classmethod
    def from_env(cls) -> "FanOutConfig":
        """Build from FANOUT_* environment variables."""
        return cls(
            batch_size=_env_int("FANOUT_BATCH_SIZE", 5),
            inter_batch_delay=_env_float("FANOUT_INTER_BATCH_DELAY", 0.3),
            daily_stats_batch_size=_env_int("FANOUT_DAILY_STATS_BATCH_SIZE", 1),
            daily_stats_delay=_env_float("FANOUT_DAILY_STATS_DELAY", 0.4),
            initial_delay=_env_float("FANOUT_INITIAL_DELAY", 0.3),
            min_delay=_env_float("FANOUT_MIN_DELAY", 0.1),
            max_delay=_env_float("FANOUT_MAX_DELAY", 1.0),
            slow_batch_threshold=_env_float("FANOUT_SLOW_BATCH_THRESHOLD", 2.0),
            fast_batch_threshold=_env_float("FANOUT_FAST_BATCH_THRESHOLD", 0.5),
            increase_step=_env_float("FANOUT_INCREASE_STEP", 0.1),
            decrease_step=_env_float("FANOUT_DECREASE_STEP", 0.05),
            max_concurrent_batches=_env_int("FANOUT_MAX_CONCURRENT_BATCHES", 2),
            max_retries=_env_int("FANOUT_MAX_RETRIES", 3),
            retry_delay=_env_float("FANOUT_RETRY_DELAY", 1.0),
            query_timeout=_env_float("FANOUT_QUERY_TIMEOUT", 10.0),
        )


@dataclass
class CacheConfig:
    """
    Main cache configuration.

    Settings can be overridden via environment variables:
    - CACHE_ENABLED: Enable/disable memoization globally
    - CACHE_DEFAULT_TTL_SECONDS / CACHE_MAX_SIZE: defaults for ad-hoc stores
    - CACHE_CLEANUP_INTERVAL_SECONDS: background expiry sweep interval
    - CIRCUIT_BREAKER_THRESHOLD / CIRCUIT_BREAKER_RECOVERY_SECONDS
    """

    enabled: bool = field(default_factory=lambda: os.getenv(
        "CACHE_ENABLED",
        "true"
    ).lower() == "true")

    default_ttl_seconds: float = field(default_factory=lambda: _env_float(
        "CACHE_DEFAULT_TTL_SECONDS", 300.0
    ))
    max_size: int = field(default_factory=lambda: _env_int(
        "CACHE_MAX_SIZE", 1000
    ))
    version: str = field(default_factory=lambda: os.getenv(
        "CACHE_VERSION", "1.0.0"
    ))

    # Background sweep (memory reclamation only, expiry is lazy)
    cleanup_interval_seconds: float = field(default_factory=lambda: _env_float(
        "CACHE_CLEANUP_INTERVAL_SECONDS", 60.0
    ))

    # Circuit breaker around the read replica
    circuit_breaker_threshold: int = field(default_factory=lambda: _env_int(
        "CIRCUIT_BREAKER_THRESHOLD", 5
    ))
    circuit_breaker_recovery_seconds: float = field(default_factory=lambda: _env_float(
        "CIRCUIT_BREAKER_RECOVERY_SECONDS", 30.0
    ))

    # Health thresholds
    min_hit_rate: float = 20.0
    capacity_warning_ratio: float = 0.9

    # Background warming
    warming_interval_seconds: float = field(default_factory=lambda: _env_float(
        "CACHE_WARMING_INTERVAL_SECONDS", 120.0
    ))

    fanout: FanOutConfig = field(default_factory=FanOutConfig.from_env)


@lru_cache(maxsize=1)
def get_cache_config() -> CacheConfig:
    """Get singleton cache configuration."""
    return CacheConfig()
