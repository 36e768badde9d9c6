"""
Cache Utilities

Helpers that make an async lookup cache-aware without touching its body:
- with_cache / cache_result / cached: memoization wrappers
- invalidate_cache_pattern: substring or regex invalidation
- warm_cache: best-effort parallel population
- get_cache_efficiency / check_cache_health: diagnostics only
"""

import asyncio
import json
import logging
import re
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from leadpulse.cache.store import CacheStore, TTLValue


logger = logging.getLogger(__name__)

AsyncFn = Callable[..., Awaitable[Any]]


def with_cache(
    fn: AsyncFn,
    store: CacheStore,
    key_generator: Callable[..., str],
    ttl: Optional[TTLValue] = None,
    version: Optional[str] = None,
    namespace: Optional[str] = None,
    single_flight: bool = True,
) -> AsyncFn:
    """
    Wrap an async function with a cache lookup.

    On a hit the cached value is returned and fn is not called. On a miss fn
    is awaited and its result stored. None results are never cached.

    With single_flight, concurrent callers on the same cold key share one
    in-flight call instead of each invoking fn. If that call raises, every
    waiter gets the exception and nothing is cached. If the calling task is
    cancelled, waiters retry and one of them becomes the new caller.
    """
    in_flight: Dict[str, asyncio.Future] = {}

    @wraps(fn)
    async def wrapper(*args, **kwargs):
        key = key_generator(*args, **kwargs)

        while True:
            cached_value = store.get(key, namespace)
            if cached_value is not None:
                logger.debug(f"Cache hit: {key}")
                return cached_value

            if not (single_flight and key in in_flight):
                break

            pending = in_flight[key]
            logger.debug(f"Joining in-flight call: {key}")
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                # Only the leader was cancelled; take over the call
                if not pending.cancelled():
                    raise
                logger.debug(f"In-flight call cancelled, retrying: {key}")

        future = asyncio.get_running_loop().create_future()
        if single_flight:
            in_flight[key] = future

        try:
            result = await fn(*args, **kwargs)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unobserved failure is not reported twice
            future.exception()
            raise
        else:
            if result is not None:
                store.set(key, result, ttl=ttl, version=version, namespace=namespace)
            future.set_result(result)
            return result
        finally:
            if in_flight.get(key) is future:
                del in_flight[key]

    def key_for(*args, **kwargs) -> str:
        return key_generator(*args, **kwargs)

    def invalidate(*args, **kwargs) -> bool:
        return store.delete(key_generator(*args, **kwargs), namespace)

    wrapper.cache_store = store
    wrapper.key_for = key_for
    wrapper.invalidate = invalidate
    return wrapper


def _stringify(arg: Any) -> str:
    if isinstance(arg, (dict, list, tuple)):
        return json.dumps(arg, default=str)
    return str(arg)


def generate_cache_key(fn_name: str, *args, **kwargs) -> str:
    """
    Build a key from a function name and its arguments.

    Containers are JSON-encoded in the order given, so argument order and
    shape are part of the key.
    """
    parts = [_stringify(arg) for arg in args]
    if kwargs:
        parts.append(json.dumps(kwargs, sort_keys=True, default=str))
    return f"{fn_name}:{':'.join(parts)}"


def cache_result(
    fn: AsyncFn,
    store: CacheStore,
    fn_name: str,
    **options,
) -> AsyncFn:
    """with_cache keyed on fn_name plus the call arguments."""
    return with_cache(
        fn,
        store,
        lambda *args, **kwargs: generate_cache_key(fn_name, *args, **kwargs),
        **options,
    )


def cached(store: CacheStore, fn_name: Optional[str] = None, **options):
    """
    Decorator form of cache_result.

    Usage:
        @cached(analytics_cache, "getTableCount", ttl=CacheTTL.TABLE_COUNT)
        async def get_table_count(table_name): ...
    """
    def decorator(fn: AsyncFn) -> AsyncFn:
        return cache_result(fn, store, fn_name or fn.__qualname__, **options)
    return decorator


# =============================================================================
# Batch Operations
# =============================================================================

def batch_cache_get(
    store: CacheStore,
    keys: Iterable[str],
    namespace: Optional[str] = None,
) -> Dict[str, Any]:
    """Look up several keys. Missing or expired keys map to None."""
    return {key: store.get(key, namespace) for key in keys}


def batch_cache_set(
    store: CacheStore,
    entries: Iterable[Dict[str, Any]],
) -> None:
    """Store entries shaped {"key", "data", optional "ttl"/"version"/"namespace"}."""
    for entry in entries:
        store.set(
            entry["key"],
            entry["data"],
            ttl=entry.get("ttl"),
            version=entry.get("version"),
            namespace=entry.get("namespace"),
        )


# =============================================================================
# Invalidation and Warming
# =============================================================================

def invalidate_cache_pattern(
    store: CacheStore,
    pattern: Union[str, re.Pattern],
) -> int:
    """
    Delete every qualified key containing a substring or matching a regex.

    Returns count deleted.
    """
    if isinstance(pattern, str):
        matches = [key for key in store.keys() if pattern in key]
    else:
        matches = [key for key in store.keys() if pattern.search(key)]

    deleted = sum(1 for key in matches if store.delete_qualified(key))
    if deleted:
        label = pattern if isinstance(pattern, str) else pattern.pattern
        logger.info(f"Invalidated {deleted} keys matching {label!r}")
    return deleted


async def warm_cache(
    store: CacheStore,
    keys: List[str],
    fetcher: Callable[[str], Awaitable[Any]],
    ttl: Optional[TTLValue] = None,
    version: Optional[str] = None,
    namespace: Optional[str] = None,
) -> Dict[str, bool]:
    """
    Populate keys in parallel. Individual fetch failures are logged, not raised.

    Returns key -> success.
    """
    async def warm_one(key: str) -> bool:
        data = await fetcher(key)
        store.set(key, data, ttl=ttl, version=version, namespace=namespace)
        return True

    outcomes = await asyncio.gather(
        *(warm_one(key) for key in keys),
        return_exceptions=True,
    )

    results = {}
    for key, outcome in zip(keys, outcomes):
        if isinstance(outcome, Exception):
            logger.warning(f"Failed to warm cache for key {key}: {outcome}")
            results[key] = False
        else:
            results[key] = True
    return results


# =============================================================================
# Diagnostics
# =============================================================================

def get_cache_efficiency(
    store: CacheStore,
    namespace: Optional[str] = None,
) -> Dict[str, Any]:
    """Qualitative efficiency rating from the hit rate (percent)."""
    stats = store.get_stats(namespace)
    if not stats:
        return {"hit_rate": 0.0, "miss_rate": 0.0, "efficiency": "No data"}

    hit_rate = stats.hit_rate
    if hit_rate >= 80:
        efficiency = "Excellent"
    elif hit_rate >= 60:
        efficiency = "Good"
    elif hit_rate >= 40:
        efficiency = "Fair"
    else:
        efficiency = "Poor"

    return {
        "hit_rate": hit_rate,
        "miss_rate": 100 - hit_rate,
        "efficiency": efficiency,
    }


def check_cache_health(
    store: CacheStore,
    namespace: Optional[str] = None,
    min_hit_rate: float = 20.0,
    capacity_warning_ratio: float = 0.9,
) -> Dict[str, Any]:
    """Flag low hit rate, near-capacity and unused namespaces. No side effects."""
    stats = store.get_stats(namespace)
    if not stats:
        return {
            "healthy": False,
            "issues": ["No cache statistics available"],
            "recommendations": ["Check cache initialization"],
        }

    issues = []
    recommendations = []

    if stats.hit_rate < min_hit_rate:
        issues.append(f"Low cache hit rate: {stats.hit_rate:.1f}%")
        recommendations.append("Consider increasing TTL or improving cache keys")

    if stats.size > stats.max_size * capacity_warning_ratio:
        issues.append(f"Cache nearly full: {stats.size}/{stats.max_size}")
        recommendations.append("Consider increasing max_size or reducing TTL")

    if stats.total_requests == 0:
        issues.append("Cache not being used")
        recommendations.append("Verify cache integration in data fetching functions")

    return {
        "healthy": not issues,
        "issues": issues,
        "recommendations": recommendations,
    }
