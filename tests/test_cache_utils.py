"""
Tests for memoization and cache helpers.

These tests verify:
- with_cache / cache_result / cached hit and miss behavior
- Single-flight sharing of cold-key calls
- Pattern invalidation
- Warming and diagnostics
"""

import asyncio
import re
from unittest.mock import AsyncMock

import pytest

from leadpulse.cache.store import CacheStore
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


@pytest.fixture
def store(clock):
    return CacheStore(namespace="analytics", ttl=60, clock=clock)


class TestWithCache:

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self, store):
        fn = AsyncMock(return_value=42)
        wrapped = with_cache(fn, store, lambda t: f"count:{t}")

        assert await wrapped("gb_keto_hindi") == 42
        assert await wrapped("gb_keto_hindi") == 42
        fn.assert_awaited_once_with("gb_keto_hindi")

    @pytest.mark.asyncio
    async def test_distinct_arguments_are_distinct_keys(self, store):
        fn = AsyncMock(side_effect=lambda t: len(t))
        wrapped = with_cache(fn, store, lambda t: f"count:{t}")

        assert await wrapped("a") == 1
        assert await wrapped("bbb") == 3
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_none_is_not_cached(self, store):
        fn = AsyncMock(return_value=None)
        wrapped = with_cache(fn, store, lambda: "k")

        await wrapped()
        await wrapped()
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_zero_and_empty_list_are_cached(self, store):
        fn = AsyncMock(return_value=[])
        wrapped = with_cache(fn, store, lambda: "k")

        await wrapped()
        await wrapped()
        fn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_expired_value_is_recomputed(self, store, clock):
        fn = AsyncMock(side_effect=[1, 2])
        wrapped = with_cache(fn, store, lambda: "k", ttl=10)

        assert await wrapped() == 1
        clock.advance(11)
        assert await wrapped() == 2

    @pytest.mark.asyncio
    async def test_errors_propagate_and_are_not_cached(self, store):
        fn = AsyncMock(side_effect=[RuntimeError("boom"), 7])
        wrapped = with_cache(fn, store, lambda: "k")

        with pytest.raises(RuntimeError):
            await wrapped()
        assert await wrapped() == 7

    @pytest.mark.asyncio
    async def test_concurrent_cold_calls_share_one_invocation(self, store):
        calls = 0
        release = asyncio.Event()

        async def slow():
            nonlocal calls
            calls += 1
            await release.wait()
            return "value"

        wrapped = with_cache(slow, store, lambda: "k")
        tasks = [asyncio.ensure_future(wrapped()) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()

        assert await asyncio.gather(*tasks) == ["value"] * 5
        assert calls == 1

    @pytest.mark.asyncio
    async def test_shared_failure_reaches_every_waiter(self, store):
        release = asyncio.Event()

        async def failing():
            await release.wait()
            raise RuntimeError("replica down")

        wrapped = with_cache(failing, store, lambda: "k")
        tasks = [asyncio.ensure_future(wrapped()) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, RuntimeError) for r in results)
        assert store.get("k") is None

    @pytest.mark.asyncio
    async def test_cancelled_leader_hands_call_to_waiter(self, store):
        calls = 0
        release = asyncio.Event()

        async def slow():
            nonlocal calls
            calls += 1
            await release.wait()
            return f"value-{calls}"

        wrapped = with_cache(slow, store, lambda: "k")
        leader = asyncio.ensure_future(wrapped())
        await asyncio.sleep(0)
        waiter = asyncio.ensure_future(wrapped())
        await asyncio.sleep(0)

        leader.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leader
        release.set()

        assert await waiter == "value-2"
        assert calls == 2
        assert store.get("k") == "value-2"

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_call(self, store):
        release = asyncio.Event()

        async def slow():
            await release.wait()
            return "value"

        wrapped = with_cache(slow, store, lambda: "k")
        leader = asyncio.ensure_future(wrapped())
        await asyncio.sleep(0)
        waiter = asyncio.ensure_future(wrapped())
        await asyncio.sleep(0)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        release.set()

        assert await leader == "value"

    @pytest.mark.asyncio
    async def test_without_single_flight_each_caller_runs(self, store):
        calls = 0
        release = asyncio.Event()

        async def slow():
            nonlocal calls
            calls += 1
            await release.wait()
            return 1

        wrapped = with_cache(slow, store, lambda: "k", single_flight=False)
        tasks = [asyncio.ensure_future(wrapped()) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(*tasks)
        assert calls == 3

    @pytest.mark.asyncio
    async def test_invalidate_helper(self, store):
        fn = AsyncMock(side_effect=[1, 2])
        wrapped = with_cache(fn, store, lambda t: f"count:{t}")

        await wrapped("a")
        assert wrapped.invalidate("a") is True
        assert await wrapped("a") == 2
        assert wrapped.key_for("a") == "count:a"


class TestCacheResult:

    def test_generate_cache_key(self):
        assert generate_cache_key("getTableCount", "gb_keto_hindi") == "getTableCount:gb_keto_hindi"
        assert generate_cache_key("getDailyStats", ["a", "b"], "2024-06-12") == \
            'getDailyStats:["a", "b"]:2024-06-12'
        assert generate_cache_key("getAllTableCounts") == "getAllTableCounts:"

    def test_kwargs_are_sorted_in_key(self):
        a = generate_cache_key("f", x=1, y=2)
        b = generate_cache_key("f", y=2, x=1)
        assert a == b

    @pytest.mark.asyncio
    async def test_cache_result_uses_function_name(self, store):
        fn = AsyncMock(return_value=10)
        wrapped = cache_result(fn, store, "getTableCount")

        await wrapped("gb_keto_hindi")
        assert store.keys() == ["analytics:getTableCount:gb_keto_hindi"]

    @pytest.mark.asyncio
    async def test_cached_decorator(self, store):
        calls = []

        @cached(store, "getTotalCount")
        async def total():
            calls.append(1)
            return 99

        assert await total() == 99
        assert await total() == 99
        assert len(calls) == 1


class TestBatchAndInvalidation:

    def test_batch_set_and_get(self, store):
        batch_cache_set(store, [
            {"key": "a", "data": 1},
            {"key": "b", "data": 2, "ttl": 5},
        ])
        assert batch_cache_get(store, ["a", "b", "c"]) == {"a": 1, "b": 2, "c": None}

    def test_invalidate_by_substring(self, store):
        store.set("getTableCount:gb_keto_hindi", 1)
        store.set("getTableSize:gb_keto_hindi", 2)
        store.set("getTableCount:gb_men_x_tamil", 3)

        assert invalidate_cache_pattern(store, "gb_keto_hindi") == 2
        assert store.get("getTableCount:gb_men_x_tamil") == 3

    def test_invalidate_by_regex(self, store):
        store.set("getTableCount:a", 1)
        store.set("getTableSize:a", 2)
        assert invalidate_cache_pattern(store, re.compile(r":getTableCount:")) == 1
        assert store.size() == 1

    @pytest.mark.asyncio
    async def test_warm_cache_reports_per_key(self, store):
        async def fetcher(key):
            if key == "bad":
                raise RuntimeError("nope")
            return key.upper()

        results = await warm_cache(store, ["a", "bad"], fetcher)
        assert results == {"a": True, "bad": False}
        assert store.get("a") == "A"


class TestDiagnostics:

    def test_efficiency_ratings(self, store):
        store.set("k", 1)
        for _ in range(9):
            store.get("k")
        store.get("missing")
        efficiency = get_cache_efficiency(store)
        assert efficiency["efficiency"] == "Excellent"
        assert efficiency["hit_rate"] == pytest.approx(90.0)
        assert efficiency["miss_rate"] == pytest.approx(10.0)

    def test_efficiency_without_stats(self, store):
        assert get_cache_efficiency(store, "unused")["efficiency"] == "No data"

    def test_health_flags_unused_cache(self, store):
        health = check_cache_health(store)
        assert health["healthy"] is False
        assert "Cache not being used" in health["issues"]

    def test_health_flags_low_hit_rate(self, store):
        for _ in range(10):
            store.get("missing")
        health = check_cache_health(store)
        assert any("Low cache hit rate" in issue for issue in health["issues"])

    def test_healthy_cache(self, store):
        store.set("k", 1)
        store.get("k")
        assert check_cache_health(store)["healthy"] is True
