"""
In-Memory Cache Store

Namespaced TTL cache used in front of the read replica:
- Keys are qualified as ``namespace:key`` so namespaces never collide
- Lazy expiry on read, plus an optional background sweep for memory
- Coarse batch eviction (oldest 20%) once a namespace reaches its cap
- Per-namespace hit/miss statistics
- Version tags for coordinated invalidation across unrelated keys

The store is used from a single asyncio event loop. Mutations never
suspend, so no lock is taken.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, asdict, replace
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Union


logger = logging.getLogger(__name__)

TTLValue = Union[float, int, timedelta]

# Share of a namespace's cap removed per eviction pass
EVICTION_RATIO = 0.2

NAMESPACE_SEPARATOR = ":"


def _check_namespace(namespace: str):
    if NAMESPACE_SEPARATOR in namespace:
        raise ValueError(
            f"namespace must not contain {NAMESPACE_SEPARATOR!r}, got {namespace!r}"
        )


def to_seconds(value: TTLValue) -> float:
    """Normalize a TTL given as seconds or timedelta."""
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


@dataclass
class CacheEntry:
    """A single cached value."""
    key: str
    data: Any
    timestamp: float
    ttl: float
    version: Optional[str] = None

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp >= self.ttl

    def remaining(self, now: float) -> float:
        return max(0.0, self.ttl - (now - self.timestamp))


@dataclass
class CacheStats:
    """Per-namespace cache statistics. hit_rate is a percentage."""
    namespace: str
    max_size: int
    hits: int = 0
    misses: int = 0
    total_requests: int = 0
    hit_rate: float = 0.0
    size: int = 0

    def record(self, hit: bool):
        self.total_requests += 1
        if hit:
            self.hits += 1
        else:
            self.misses += 1
        self.hit_rate = (self.hits / self.total_requests) * 100

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CacheStore:
    """
    Generic in-process TTL cache with namespace isolation.

    Usage:
        store = CacheStore(namespace="analytics", ttl=180, max_size=150)
        store.set("table-count:gb_keto_hindi", 42)
        store.get("table-count:gb_keto_hindi")  # 42

        # Other namespaces on the same store stay isolated
        store.set("k", "a", namespace="x")
        store.get("k", namespace="y")  # None
    """

    def __init__(
        self,
        namespace: str = "default",
        ttl: TTLValue = 300.0,
        max_size: int = 1000,
        version: str = "1.0.0",
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        ttl_seconds = to_seconds(ttl)
        if ttl_seconds <= 0:
            raise ValueError(f"ttl must be positive, got {ttl!r}")
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size!r}")
        if not namespace:
            raise ValueError("namespace must be a non-empty string")
        _check_namespace(namespace)

        self.namespace = namespace
        self.ttl = ttl_seconds
        self.max_size = max_size
        self.version = version
        self.enabled = enabled
        self._clock = clock

        self._store: Dict[str, CacheEntry] = {}
        self._stats: Dict[str, CacheStats] = {}
        self._cleanup_task: Optional[asyncio.Task] = None

        self._init_stats(namespace)

    # =========================================================================
    # Internals
    # =========================================================================

    def _init_stats(self, namespace: str) -> CacheStats:
        stats = CacheStats(namespace=namespace, max_size=self.max_size)
        self._stats[namespace] = stats
        return stats

    def _stats_for(self, namespace: str) -> CacheStats:
        stats = self._stats.get(namespace)
        if stats is None:
            stats = self._init_stats(namespace)
        return stats

    def _ns(self, namespace: Optional[str]) -> str:
        if namespace:
            _check_namespace(namespace)
            return namespace
        return self.namespace

    def make_key(self, key: str, namespace: Optional[str] = None) -> str:
        """Qualify a raw key with its namespace."""
        return f"{self._ns(namespace)}:{key}"

    def _namespace_keys(self, namespace: str) -> List[str]:
        prefix = f"{namespace}:"
        return [k for k in self._store if k.startswith(prefix)]

    def _refresh_size(self, namespace: str):
        self._stats_for(namespace).size = len(self._namespace_keys(namespace))

    def _enforce_max_size(self, namespace: str):
        keys = self._namespace_keys(namespace)
        if len(keys) < self.max_size:
            return

        # Not LRU: oldest by insertion time, removed in one batch
        keys.sort(key=lambda k: self._store[k].timestamp)
        to_remove = math.ceil(self.max_size * EVICTION_RATIO)
        for key in keys[:to_remove]:
            del self._store[key]

        logger.debug(
            f"Evicted {min(to_remove, len(keys))} entries from namespace "
            f"'{namespace}' (cap {self.max_size})"
        )

    # =========================================================================
    # Core Operations
    # =========================================================================

    def set(
        self,
        key: str,
        data: Any,
        ttl: Optional[TTLValue] = None,
        version: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> None:
        """Store or overwrite an entry under the namespace-qualified key."""
        if not self.enabled:
            return

        ns = self._ns(namespace)
        full_key = self.make_key(key, ns)
        entry = CacheEntry(
            key=full_key,
            data=data,
            timestamp=self._clock(),
            ttl=to_seconds(ttl) if ttl is not None else self.ttl,
            version=version or self.version,
        )

        # Re-insert so dict order follows insertion time
        self._store.pop(full_key, None)
        self._store[full_key] = entry

        self._enforce_max_size(ns)
        self._refresh_size(ns)

    def get(self, key: str, namespace: Optional[str] = None) -> Optional[Any]:
        """
        Get a live value.

        Returns None (and records a miss) if the key is absent or expired.
        Expired entries are deleted on read.
        """
        ns = self._ns(namespace)
        stats = self._stats_for(ns)

        if not self.enabled:
            stats.record(hit=False)
            return None

        full_key = self.make_key(key, ns)
        entry = self._store.get(full_key)

        if entry is None:
            stats.record(hit=False)
            return None

        if entry.is_expired(self._clock()):
            del self._store[full_key]
            stats.record(hit=False)
            self._refresh_size(ns)
            return None

        stats.record(hit=True)
        return entry.data

    def has(self, key: str, namespace: Optional[str] = None) -> bool:
        """Check liveness with the same expiry rule as get, without stats."""
        full_key = self.make_key(key, namespace)
        entry = self._store.get(full_key)

        if entry is None:
            return False

        if entry.is_expired(self._clock()):
            del self._store[full_key]
            self._refresh_size(self._ns(namespace))
            return False

        return True

    def delete(self, key: str, namespace: Optional[str] = None) -> bool:
        """Delete a single key. Returns True if it existed."""
        return self.delete_qualified(self.make_key(key, namespace))

    def delete_qualified(self, full_key: str) -> bool:
        """Delete by already-qualified key (as returned by keys())."""
        if self._store.pop(full_key, None) is None:
            return False
        namespace = full_key.split(":", 1)[0]
        if namespace in self._stats:
            self._refresh_size(namespace)
        return True

    def clear(self, namespace: Optional[str] = None) -> None:
        """Remove a namespace's entries (or all entries) and reset its stats."""
        if namespace:
            _check_namespace(namespace)
            for key in self._namespace_keys(namespace):
                del self._store[key]
            self._init_stats(namespace)
            logger.info(f"Cache namespace '{namespace}' cleared")
            return

        self._store.clear()
        self._stats.clear()
        self._init_stats(self.namespace)
        logger.info(f"Cache store '{self.namespace}' cleared")

    def invalidate_by_version(self, version: str) -> int:
        """Remove every entry tagged with the given version."""
        stale = [k for k, e in self._store.items() if e.version == version]
        for key in stale:
            self.delete_qualified(key)
        if stale:
            logger.info(f"Invalidated {len(stale)} entries with version {version}")
        return len(stale)

    def keys(self, namespace: Optional[str] = None) -> List[str]:
        """Qualified keys currently held, optionally limited to a namespace."""
        if namespace:
            return self._namespace_keys(self._ns(namespace))
        return list(self._store)

    def size(self, namespace: Optional[str] = None) -> int:
        if namespace:
            return len(self._namespace_keys(self._ns(namespace)))
        return len(self._store)

    def ttl_remaining(self, key: str, namespace: Optional[str] = None) -> float:
        """Seconds left for a key, 0.0 if absent or expired."""
        entry = self._store.get(self.make_key(key, namespace))
        if entry is None:
            return 0.0
        return entry.remaining(self._clock())

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self, namespace: Optional[str] = None) -> Optional[CacheStats]:
        """Snapshot of a namespace's statistics, None if never used."""
        stats = self._stats.get(self._ns(namespace))
        return replace(stats) if stats else None

    def get_all_stats(self) -> Dict[str, CacheStats]:
        return {ns: replace(stats) for ns, stats in self._stats.items()}

    def export(self) -> Dict[str, Any]:
        """Debug snapshot of entries, stats and options."""
        return {
            "store": {k: asdict(e) for k, e in self._store.items()},
            "stats": {ns: s.to_dict() for ns, s in self._stats.items()},
            "options": {
                "namespace": self.namespace,
                "ttl": self.ttl,
                "max_size": self.max_size,
                "version": self.version,
                "enabled": self.enabled,
            },
        }

    # =========================================================================
    # Background Sweep
    # =========================================================================

    def cleanup(self) -> int:
        """Delete every expired entry. Returns count removed."""
        now = self._clock()
        expired = [k for k, e in self._store.items() if e.is_expired(now)]
        for key in expired:
            self.delete_qualified(key)
        if expired:
            logger.debug(f"Swept {len(expired)} expired entries from '{self.namespace}'")
        return len(expired)

    def start_cleanup(self, interval: float = 60.0) -> None:
        """Schedule the periodic sweep on the running event loop."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return

        async def cleanup_loop():
            while True:
                await asyncio.sleep(interval)
                self.cleanup()

        self._cleanup_task = asyncio.get_running_loop().create_task(cleanup_loop())
        logger.debug(f"Cache sweep started for '{self.namespace}' every {interval}s")

    async def stop_cleanup(self) -> None:
        """Cancel the periodic sweep if running."""
        if self._cleanup_task is None:
            return
        self._cleanup_task.cancel()
        try:
            await self._cleanup_task
        except asyncio.CancelledError:
            pass
        self._cleanup_task = None
