"""
Cache Warming Service

Proactively warms the aggregate caches so the first dashboard load after
a deploy or an invalidation does not pay for a cold fan-out.

Strategies:
1. On-demand warming: after invalidation, warm analytics and dashboard
2. Periodic warming: refresh on an interval shorter than the aggregate TTLs
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from leadpulse.cache.config import CacheConfig, get_cache_config


logger = logging.getLogger(__name__)


class CacheWarmer:
    """
    Keeps aggregate caches hot.

    Works against any service exposing warm() and get_dashboard_data()
    (AnalyticsService in practice).
    """

    def __init__(self, service: Any, config: Optional[CacheConfig] = None):
        self.service = service
        self._config = config or get_cache_config()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def warm_analytics(self) -> Dict[str, bool]:
        """Warm fan-out aggregates. Returns component -> success."""
        logger.info("Warming analytics cache...")
        result = await self.service.warm()
        components = result.get("warmed", {})

        success_count = sum(1 for ok in components.values() if ok)
        logger.info(f"Analytics warming complete: {success_count}/{len(components)} components")
        return components

    async def warm_dashboard(self) -> bool:
        """Warm the default dashboard bundle."""
        result = await self.service.get_dashboard_data()
        if not result.get("success"):
            logger.warning(f"Dashboard warming failed: {result.get('error')}")
        return bool(result.get("success"))

    async def warm_all(self) -> Dict[str, bool]:
        results = await self.warm_analytics()
        results["dashboard"] = await self.warm_dashboard()
        return results

    @property
    def is_running(self) -> bool:
        return self._running

    def start_background_warmer(self, interval_seconds: Optional[float] = None):
        """Start periodic warming on the running event loop."""
        if self._running:
            logger.warning("Background warmer already running")
            return

        interval = interval_seconds or self._config.warming_interval_seconds
        self._running = True

        async def warming_loop():
            while self._running:
                try:
                    logger.info("Running background cache warming...")
                    await self.warm_all()
                    logger.info(f"Background warming complete, sleeping for {interval}s")
                except Exception as e:
                    logger.error(f"Background warming error: {e}")

                await asyncio.sleep(interval)

        self._task = asyncio.get_running_loop().create_task(warming_loop())
        logger.info(f"Background cache warmer started (interval: {interval}s)")

    async def stop_background_warmer(self):
        """Stop background warming task."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Background cache warmer stopped")
