"""API routes for analytics and reporting."""
from typing import Annotated, List
from fastapi import APIRouter, Depends, Query
import structlog
from .deps import get_analytics
from ..analytics.service import AnalyticsService
from ..analytics.models import (
    CountryBreakdown,
    EventTypeRanking,
    FunnelAnalysis,
    OverallStats,
    RevenueAnalysis,
    TimeSeriesDataPoint,
    TopEntity,
)
from ..analytics.requests import (
    DEFAULT_HOURS,
    DEFAULT_LIMIT,
    MAX_HOURS,
    MAX_LIMIT,
    MIN_HOURS,
    MIN_LIMIT,
    SourceFilter,
)

router = APIRouter(prefix="/analytics", tags=["analytics"])
log = structlog.get_logger()

Limit = Annotated[int, Query(ge=MIN_LIMIT, le=MAX_LIMIT, description="Maximum number of results to return")]


@router.get("/overview", response_model=OverallStats)
async def get_overview(analytics: AnalyticsService = Depends(get_analytics)):
    """Total events, events by source and funnel stage, and conversion rate."""
    return await analytics.get_overall_stats()


@router.get("/timeseries", response_model=List[TimeSeriesDataPoint])
async def get_time_series(
    hours: int = Query(DEFAULT_HOURS, ge=MIN_HOURS, le=MAX_HOURS, description="Number of hours to look back"),
    source: SourceFilter | None = Query(None, description="Filter by event source"),
    analytics: AnalyticsService = Depends(get_analytics),
):
    """Hourly event counts, oldest bucket first."""
    log.debug("analytics.timeseries", hours=hours, source=source.value if source else "all")
    return await analytics.get_event_time_series(hours=hours, source=source)


@router.get("/events-by-type", response_model=List[EventTypeRanking])
async def get_events_by_type(limit: Limit = DEFAULT_LIMIT, analytics: AnalyticsService = Depends(get_analytics)):
    """Most frequent event types per source."""
    return await analytics.get_events_by_type(limit=limit)


@router.get("/countries", response_model=List[CountryBreakdown])
async def get_country_breakdown(
    source: SourceFilter = Query(SourceFilter.ALL, description="Filter by event source"),
    analytics: AnalyticsService = Depends(get_analytics),
):
    """Event distribution by country."""
    return await analytics.get_country_breakdown(source=source)


@router.get("/funnel", response_model=List[FunnelAnalysis])
async def get_funnel_analysis(analytics: AnalyticsService = Depends(get_analytics)):
    """Top vs bottom of funnel per source."""
    return await analytics.get_funnel_analysis()


@router.get("/top-campaigns", response_model=List[TopEntity])
async def get_top_campaigns(limit: Limit = DEFAULT_LIMIT, analytics: AnalyticsService = Depends(get_analytics)):
    """Facebook campaigns sorted by conversion count."""
    return await analytics.get_top_campaigns(limit=limit)


@router.get("/top-users", response_model=List[TopEntity], response_model_exclude_none=True)
async def get_top_users(
    source: SourceFilter = Query(..., description="Event source; all yields an empty list"),
    limit: Limit = DEFAULT_LIMIT,
    analytics: AnalyticsService = Depends(get_analytics),
):
    """Users with the highest event counts for one source."""
    return await analytics.get_top_users(source=source, limit=limit)


@router.get("/revenue", response_model=RevenueAnalysis)
async def get_revenue_analysis(analytics: AnalyticsService = Depends(get_analytics)):
    """Revenue by source plus totals."""
    return await analytics.get_revenue_analysis()
