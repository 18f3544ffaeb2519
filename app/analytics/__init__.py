"""
Aggregation queries over the advertising event history.

- Overview, time series, event types, countries, funnel
- Top campaigns and users, revenue
"""

from .service import AnalyticsService
from .requests import SourceFilter
from .models import (
    OverallStats,
    TimeSeriesDataPoint,
    EventTypeRanking,
    CountryBreakdown,
    FunnelAnalysis,
    TopEntity,
    RevenueStats,
    RevenueTotals,
    RevenueAnalysis,
)

__all__ = [
    "AnalyticsService",
    "SourceFilter",
    "OverallStats",
    "TimeSeriesDataPoint",
    "EventTypeRanking",
    "CountryBreakdown",
    "FunnelAnalysis",
    "TopEntity",
    "RevenueStats",
    "RevenueTotals",
    "RevenueAnalysis",
]
