"""
Batched Fan-Out Executor

Runs one aggregate per table across dozens of dynamically named tables
without exhausting the read replica's two-connection pool:

- Tables are split into batches; tables within a batch run concurrently
- Batches run in order with a fixed or adaptive delay between them
- A parallel variant keeps up to max_concurrent_batches batches in flight
- Every query goes through the circuit breaker with a timeout and a
  bounded retry on known transient pool errors
- A failing table never aborts the fan-out: it is logged and replaced by
  a zero-valued record, so output length and order always match input
"""

import asyncio
import logging
import time
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from leadpulse.cache.config import FanOutConfig
from leadpulse.database.circuit_breaker import CircuitBreaker
from leadpulse.database.results import extract_number
from leadpulse.errors import CircuitBreakerOpenError, QueryTimeoutError

from .queries import count_in_range_query, count_query, ping_query, table_size_query

logger = logging.getLogger(__name__)

QueryExecutor = Callable[[str, Mapping[str, Any]], Awaitable[Any]]
Processor = Callable[[str], Awaitable[Any]]
Fallback = Callable[[str], Any]
WindowMap = Mapping[str, Tuple[Any, Any]]


class BatchMode(Enum):
    """How batches are scheduled."""
    SEQUENTIAL = "sequential"   # fixed delay between batches
    ADAPTIVE = "adaptive"       # delay tuned by batch duration
    PARALLEL = "parallel"       # bounded concurrent batches, adaptive delay


@dataclass
class QueryMetrics:
    """Running totals for replica queries. Times are seconds."""
    total_queries: int = 0
    successful_queries: int = 0
    failed_queries: int = 0
    retried_queries: int = 0
    timed_out_queries: int = 0
    rejected_queries: int = 0
    average_response_time: float = 0.0

    def record(self, success: bool, response_time: float):
        self.total_queries += 1
        if success:
            self.successful_queries += 1
        else:
            self.failed_queries += 1
        self.average_response_time += (
            response_time - self.average_response_time
        ) / self.total_queries

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Zero Records
# =============================================================================

def zero_count_record(table_name: str) -> Dict[str, Any]:
    return {"table_name": table_name, "count": 0}


def zero_stats_record(table_name: str) -> Dict[str, Any]:
    return {"table_name": table_name, "count": 0, "size_mb": 0.0}


def zero_comparison_record(table_name: str) -> Dict[str, Any]:
    return {"table_name": table_name, "count": 0, "previous_count": 0}


def zero_daily_record(table_name: str, window_names: Sequence[str]) -> Dict[str, Any]:
    record: Dict[str, Any] = {"table_name": table_name}
    record.update({name: 0 for name in window_names})
    record.update({"total_records": 0, "has_data": False})
    return record


def chunk(items: Sequence[str], size: int) -> List[List[str]]:
    """Split into consecutive batches of at most size items."""
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class FanOutExecutor:
    """
    Per-table aggregate runner over a query-execution interface.

    Usage:
        executor = FanOutExecutor(replica.execute, breaker, FanOutConfig())
        counts = await executor.count_all(["gb_keto_hindi", "gb_men_x_tamil"])
        # [{"table_name": "gb_keto_hindi", "count": 45}, ...]
    """

    def __init__(
        self,
        execute: QueryExecutor,
        breaker: CircuitBreaker,
        config: Optional[FanOutConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._execute = execute
        self.breaker = breaker
        self.config = config or FanOutConfig()
        self._sleep = sleep
        self._clock = clock

        self.current_delay = self.config.initial_delay
        self.metrics = QueryMetrics()

    # =========================================================================
    # Single Query Policy
    # =========================================================================

    def is_retryable(self, error: BaseException) -> bool:
        message = str(error)
        return any(pattern in message for pattern in self.config.retryable_patterns)

    async def _timed_query(self, sql: str, params: Mapping[str, Any], table_name: Optional[str]):
        if self.config.query_timeout is None:
            return await self._execute(sql, params)
        try:
            return await asyncio.wait_for(self._execute(sql, params), self.config.query_timeout)
        except asyncio.TimeoutError:
            self.metrics.timed_out_queries += 1
            raise QueryTimeoutError(
                f"Query timed out after {self.config.query_timeout}s",
                table_name=table_name,
            )

    async def query(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
        table_name: Optional[str] = None,
    ) -> Any:
        """
        Run one statement through the breaker with timeout and retry.

        Errors whose message matches a retryable pattern are retried up to
        max_retries times after retry_delay. Anything else propagates.
        """
        params = params or {}
        attempt = 0

        while True:
            start = self._clock()
            try:
                result = await self.breaker.execute(self._timed_query, sql, params, table_name)
            except CircuitBreakerOpenError:
                self.metrics.rejected_queries += 1
                raise
            except Exception as e:
                self.metrics.record(False, self._clock() - start)

                if attempt < self.config.max_retries and self.is_retryable(e):
                    attempt += 1
                    self.metrics.retried_queries += 1
                    logger.warning(
                        f"Transient error on table {table_name} (attempt {attempt}): {e}. "
                        f"Retrying in {self.config.retry_delay}s..."
                    )
                    await self._sleep(self.config.retry_delay)
                    continue
                raise

            self.metrics.record(True, self._clock() - start)
            return result

    async def ping(self) -> bool:
        """SELECT 1 through the full query policy."""
        sql, params = ping_query()
        try:
            await self.query(sql, params)
            return True
        except Exception as e:
            logger.warning(f"Read replica health check failed: {e}")
            return False

    # =========================================================================
    # Per-Table Aggregates
    # =========================================================================

    async def count(self, table_name: str) -> int:
        sql, params = count_query(table_name)
        return int(extract_number(await self.query(sql, params, table_name)))

    async def count_in_range(self, table_name: str, start, end) -> int:
        sql, params = count_in_range_query(table_name, start, end)
        return int(extract_number(await self.query(sql, params, table_name)))

    async def size_mb(self, table_name: str) -> float:
        sql, params = table_size_query(table_name)
        return float(extract_number(await self.query(sql, params, table_name), "size_mb"))

    async def stats(self, table_name: str) -> Dict[str, Any]:
        count, size = await asyncio.gather(self.count(table_name), self.size_mb(table_name))
        return {"table_name": table_name, "count": count, "size_mb": size}

    async def compare(self, table_name: str, current, previous) -> Dict[str, Any]:
        """Counts for a window and its preceding window."""
        count, previous_count = await asyncio.gather(
            self.count_in_range(table_name, *current),
            self.count_in_range(table_name, *previous),
        )
        return {"table_name": table_name, "count": count, "previous_count": previous_count}

    async def daily_stats(self, table_name: str, windows: WindowMap) -> Dict[str, Any]:
        """
        Windowed counts plus lifetime total for one table.

        An empty table skips the windowed queries entirely.
        """
        total = await self.count(table_name)
        if total == 0:
            return zero_daily_record(table_name, list(windows))

        counts = await asyncio.gather(
            *(self.count_in_range(table_name, start, end) for start, end in windows.values())
        )

        record: Dict[str, Any] = {"table_name": table_name}
        record.update(zip(windows, counts))
        record.update({"total_records": total, "has_data": True})
        return record

    # =========================================================================
    # Batch Scheduling
    # =========================================================================

    async def _guarded(self, table_name: str, processor: Processor, fallback: Fallback) -> Any:
        try:
            return await processor(table_name)
        except CircuitBreakerOpenError as e:
            logger.warning(f"Skipping table {table_name}: {e}")
        except Exception as e:
            logger.error(f"Error processing table {table_name}: {e}")
        return fallback(table_name)

    async def _run_batch(self, batch: List[str], processor: Processor, fallback: Fallback) -> List[Any]:
        return list(await asyncio.gather(
            *(self._guarded(table_name, processor, fallback) for table_name in batch)
        ))

    def adjust_delay(self, batch_duration: float) -> float:
        """Additive increase on slow batches, additive decrease on fast ones."""
        cfg = self.config
        if batch_duration > cfg.slow_batch_threshold:
            self.current_delay = min(self.current_delay + cfg.increase_step, cfg.max_delay)
        elif batch_duration < cfg.fast_batch_threshold:
            self.current_delay = max(self.current_delay - cfg.decrease_step, cfg.min_delay)
        return self.current_delay

    async def _run_batch_adaptive(self, batch: List[str], processor: Processor, fallback: Fallback) -> List[Any]:
        start = self._clock()
        results = await self._run_batch(batch, processor, fallback)
        self.adjust_delay(self._clock() - start)
        return results

    async def run(
        self,
        table_names: Sequence[str],
        processor: Processor,
        fallback: Fallback,
        mode: BatchMode = BatchMode.SEQUENTIAL,
        batch_size: Optional[int] = None,
        delay: Optional[float] = None,
    ) -> List[Any]:
        """
        Apply processor to every table, batch by batch.

        Returns one result per table in input order; failed tables get
        fallback(table_name).
        """
        batches = chunk(list(table_names), batch_size or self.config.batch_size)
        if not batches:
            return []

        results: List[Any] = []

        if mode == BatchMode.PARALLEL:
            group_size = self.config.max_concurrent_batches
            for i in range(0, len(batches), group_size):
                group = batches[i:i + group_size]
                group_results = await asyncio.gather(
                    *(self._run_batch_adaptive(batch, processor, fallback) for batch in group)
                )
                for batch_results in group_results:
                    results.extend(batch_results)

                if i + group_size < len(batches):
                    await self._sleep(self.current_delay)
            return results

        for i, batch in enumerate(batches):
            if mode == BatchMode.ADAPTIVE:
                results.extend(await self._run_batch_adaptive(batch, processor, fallback))
                pause = self.current_delay
            else:
                results.extend(await self._run_batch(batch, processor, fallback))
                pause = self.config.inter_batch_delay if delay is None else delay

            if i < len(batches) - 1:
                await self._sleep(pause)

        logger.debug(f"Fan-out over {len(results)} tables in {len(batches)} batches")
        return results

    # =========================================================================
    # Fan-Out Operations
    # =========================================================================

    async def count_all(self, table_names: Sequence[str]) -> List[Dict[str, Any]]:
        """Row count per table. Batches of batch_size, fixed delay."""
        async def processor(table_name):
            return {"table_name": table_name, "count": await self.count(table_name)}

        return await self.run(table_names, processor, zero_count_record)

    async def count_all_in_range(self, table_names: Sequence[str], start, end) -> List[Dict[str, Any]]:
        async def processor(table_name):
            return {"table_name": table_name, "count": await self.count_in_range(table_name, start, end)}

        return await self.run(table_names, processor, zero_count_record)

    async def stats_all(self, table_names: Sequence[str]) -> List[Dict[str, Any]]:
        """Count and size per table. Bounded parallel batches, adaptive delay."""
        return await self.run(table_names, self.stats, zero_stats_record, mode=BatchMode.PARALLEL)

    async def compare_all(self, table_names: Sequence[str], current, previous) -> List[Dict[str, Any]]:
        """Current vs previous window count per table."""
        async def processor(table_name):
            return await self.compare(table_name, current, previous)

        return await self.run(table_names, processor, zero_comparison_record)

    async def daily_stats_all(self, table_names: Sequence[str], windows: WindowMap) -> List[Dict[str, Any]]:
        """Windowed stats per table, one table per batch by default."""
        window_names = list(windows)

        async def processor(table_name):
            return await self.daily_stats(table_name, windows)

        return await self.run(
            table_names,
            processor,
            lambda table_name: zero_daily_record(table_name, window_names),
            batch_size=self.config.daily_stats_batch_size,
            delay=self.config.daily_stats_delay,
        )

    def get_metrics(self) -> Dict[str, Any]:
        metrics = self.metrics.to_dict()
        metrics["current_delay"] = round(self.current_delay, 3)
        total = self.metrics.total_queries
        metrics["success_rate"] = round(self.metrics.successful_queries / total * 100, 2) if total else 0.0
        return metrics

    def reset_metrics(self):
        self.metrics = QueryMetrics()
