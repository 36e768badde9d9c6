"""
Analytics API

Thin HTTP surface over AnalyticsService. Every endpoint returns the
service envelope unchanged: failures come back as 200 with
success=false so dashboards can render partial data.

Endpoints:
- Table mappings and names
- Per-table count, size and daily stats
- Fan-out counts, stats, totals and summary
- Daily stats, growth, period lead counts, dashboard bundle
- Performance scores and query metrics
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from leadpulse.container import Container
from leadpulse.services.analytics import AnalyticsService


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_analytics_service(container: Container = Depends(get_container)) -> AnalyticsService:
    return container.analytics


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class EnvelopeResponse(BaseModel):
    """Service envelope with operation-specific fields."""
    success: bool
    error: Optional[str] = None

    class Config:
        extra = "allow"


class TableCountRecord(BaseModel):
    table_name: str
    custom_table_name: Optional[str] = None
    count: int


class TableCountsResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    counts: List[TableCountRecord] = []


class DailyStatRecord(BaseModel):
    table_name: str
    today: int = 0
    yesterday: int = 0
    this_week: int = 0
    last_week: int = 0
    this_month: int = 0
    last_month: int = 0
    total_records: int = 0
    has_data: bool = False


class DailyStatsResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    stats: List[DailyStatRecord] = []
    aggregated: Dict[str, int] = Field(default_factory=dict)


class GrowthRecord(BaseModel):
    table_name: str
    display_name: str
    count: int
    previous_count: int
    growth: float


class GrowthResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    data: List[GrowthRecord] = []
    total_leads: int = 0
    average_growth: float = 0.0
    period: Optional[Dict[str, str]] = None


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/mappings", response_model=EnvelopeResponse)
async def get_table_mappings(service: AnalyticsService = Depends(get_analytics_service)):
    """Active table mappings."""
    return await service.get_all_table_mappings()


@router.get("/tables", response_model=EnvelopeResponse)
async def get_table_names(service: AnalyticsService = Depends(get_analytics_service)):
    return await service.get_all_table_names()


@router.get("/tables/{table_name}/count", response_model=EnvelopeResponse)
async def get_table_count(table_name: str, service: AnalyticsService = Depends(get_analytics_service)):
    return await service.get_table_count(table_name)


@router.get("/tables/{table_name}/size", response_model=EnvelopeResponse)
async def get_table_size(table_name: str, service: AnalyticsService = Depends(get_analytics_service)):
    return await service.get_table_size(table_name)


@router.get("/tables/{table_name}/daily-stats", response_model=EnvelopeResponse)
async def get_table_daily_stats(table_name: str, service: AnalyticsService = Depends(get_analytics_service)):
    return await service.get_table_daily_stats(table_name)


@router.get("/counts", response_model=TableCountsResponse)
async def get_all_table_counts(service: AnalyticsService = Depends(get_analytics_service)):
    """Row count for every mapped table."""
    return await service.get_all_table_counts()


@router.get("/stats", response_model=EnvelopeResponse)
async def get_all_table_stats(service: AnalyticsService = Depends(get_analytics_service)):
    """Row count and on-disk size for every mapped table."""
    return await service.get_all_table_stats()


@router.get("/total", response_model=EnvelopeResponse)
async def get_total_count(service: AnalyticsService = Depends(get_analytics_service)):
    return await service.get_total_count()


@router.get("/summary", response_model=EnvelopeResponse)
async def get_analytics_summary(service: AnalyticsService = Depends(get_analytics_service)):
    return await service.get_analytics_summary()


@router.get("/daily-stats", response_model=DailyStatsResponse)
async def get_daily_stats(
    table: Optional[List[str]] = Query(default=None, description="Limit to these tables"),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """
    Today, yesterday, this/last week and this/last month per table.

    Defaults to every mapped table.
    """
    return await service.get_daily_stats(table)


@router.get("/growth", response_model=GrowthResponse)
async def get_growth(
    date_from: Optional[str] = Query(default=None, description="YYYY-MM-DD, inclusive"),
    date_to: Optional[str] = Query(default=None, description="YYYY-MM-DD, inclusive"),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Per-table counts against the preceding equal-length period."""
    return await service.get_table_wise_counts_with_growth(date_from, date_to)


@router.get("/period-counts", response_model=EnvelopeResponse)
async def get_period_lead_counts(service: AnalyticsService = Depends(get_analytics_service)):
    return await service.get_period_lead_counts()


@router.get("/dashboard", response_model=EnvelopeResponse)
async def get_dashboard_data(
    date_from: Optional[str] = Query(default=None),
    date_to: Optional[str] = Query(default=None),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Everything the dashboard renders in one call."""
    return await service.get_dashboard_data(date_from, date_to)


@router.get("/performance", response_model=EnvelopeResponse)
async def get_performance_scores(service: AnalyticsService = Depends(get_analytics_service)):
    return await service.get_performance_scores()


@router.get("/metrics", response_model=EnvelopeResponse)
async def get_metrics(service: AnalyticsService = Depends(get_analytics_service)):
    """Query metrics, circuit breaker status and analytics cache stats."""
    return await service.get_metrics()
