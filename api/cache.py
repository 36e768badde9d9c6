"""
Cache Management API

Provides endpoints for cache monitoring and manual operations.

Endpoints:
- Health check for monitoring/alerting
- Statistics, efficiency and recommendations
- Manual clearing and event-driven invalidation
- Warming trigger
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

from leadpulse.cache.invalidation import CacheEvent
from leadpulse.cache.utils import get_cache_efficiency
from leadpulse.container import Container

from .analytics import get_container


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cache", tags=["Cache Management"])


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class CacheHealthResponse(BaseModel):
    """Cache health check response."""
    status: str = Field(..., description="healthy, degraded or unhealthy")
    latency_ms: float
    checks: Dict[str, bool]
    issues: List[Dict[str, Any]] = []
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ClearResponse(BaseModel):
    success: bool
    cleared: List[str] = []


class InvalidationRequest(BaseModel):
    """Invalidation event body."""
    event: CacheEvent
    table_name: Optional[str] = None
    client_id: Optional[str] = None


class InvalidationResponse(BaseModel):
    """Cache invalidation response."""
    success: bool
    keys_invalidated: int
    stores_cleared: List[str] = []
    duration_ms: float
    errors: List[str] = []


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/health", response_model=CacheHealthResponse)
async def cache_health_check(container: Container = Depends(get_container)):
    """
    Check cache and read replica health.

    Use this endpoint for monitoring and alerting systems.
    """
    health = await container.monitor.health_check()
    return CacheHealthResponse(
        status=health.status.value,
        latency_ms=health.latency_ms,
        checks=health.checks,
        issues=health.issues,
        timestamp=health.timestamp,
    )


@router.get("/stats")
def get_cache_stats(container: Container = Depends(get_container)):
    """
    Per-store, per-namespace statistics.

    Note: Stats are reset on application restart and on clear.
    """
    return container.cache_manager.get_all_stats()


@router.get("/efficiency")
def get_efficiency(container: Container = Depends(get_container)):
    """Hit rate rating per store."""
    return {
        name: get_cache_efficiency(cache)
        for name, cache in container.cache_manager.get_all_caches().items()
    }


@router.get("/performance")
def get_performance(container: Container = Depends(get_container)):
    return container.cache_manager.get_performance_metrics()


@router.get("/recommendations")
def get_recommendations(container: Container = Depends(get_container)):
    return {"recommendations": container.cache_manager.get_recommendations()}


@router.get("/summary")
async def get_summary(container: Container = Depends(get_container)):
    return await container.monitor.get_summary()


@router.post("/clear/{name}", response_model=ClearResponse)
def clear_cache(name: str, container: Container = Depends(get_container)):
    """Clear one named store (global, tables, clients, dashboard, analytics)."""
    if not container.cache_manager.clear_cache(name):
        raise HTTPException(status_code=404, detail=f"Unknown cache: {name}")
    return ClearResponse(success=True, cleared=[name])


@router.post("/clear", response_model=ClearResponse)
def clear_all_caches(container: Container = Depends(get_container)):
    """
    Clear every store.

    CAUTION: the next dashboard load pays for a full cold fan-out.
    """
    container.cache_manager.clear_all()
    return ClearResponse(success=True, cleared=container.cache_manager.names)


@router.post("/invalidate", response_model=InvalidationResponse)
def invalidate(body: InvalidationRequest, container: Container = Depends(get_container)):
    """Invalidate the caches affected by a data change event."""
    result = container.invalidator.handle_event(
        body.event,
        table_name=body.table_name,
        client_id=body.client_id,
    )
    if not result.success:
        raise HTTPException(status_code=400, detail="; ".join(result.errors))
    return InvalidationResponse(**{k: v for k, v in result.to_dict().items() if k != "event"})


@router.post("/invalidate/table/{table_name}", response_model=InvalidationResponse)
def invalidate_table(table_name: str, container: Container = Depends(get_container)):
    """Invalidate every cached key mentioning a table."""
    result = container.invalidator.handle_event(
        CacheEvent.MANUAL_INVALIDATE_TABLE,
        table_name=table_name,
    )
    return InvalidationResponse(**{k: v for k, v in result.to_dict().items() if k != "event"})


@router.post("/warm")
async def warm_cache(
    background_tasks: BackgroundTasks,
    container: Container = Depends(get_container),
):
    """Warm analytics and dashboard caches in the background."""
    async def warm_task():
        try:
            await container.warmer.warm_all()
        except Exception as e:
            logger.error(f"Background cache warming failed: {e}")

    background_tasks.add_task(warm_task)

    return {
        "status": "warming_started",
        "timestamp": datetime.utcnow().isoformat(),
    }
