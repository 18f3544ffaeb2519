"""Response shapes of the aggregation queries."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AnalyticsModel(BaseModel):
    """Base for responses; serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventsBySource(AnalyticsModel):
    facebook: int = 0
    tiktok: int = 0


class EventsByFunnel(AnalyticsModel):
    top: int = 0
    bottom: int = 0


class OverallStats(AnalyticsModel):
    total_events: int
    events_by_source: EventsBySource
    events_by_funnel: EventsByFunnel
    conversion_rate: str = Field(default="0.00", description="Percentage formatted to 2 decimals")


class TimeSeriesDataPoint(AnalyticsModel):
    date: datetime = Field(..., description="Start of the hour bucket (UTC)")
    count: int


class EventTypeRanking(AnalyticsModel):
    source: str
    event_type: str
    count: int


class CountryBreakdown(AnalyticsModel):
    country: str
    event_count: int
    unique_users: int
    total_purchases: int = 0
    total_revenue: float = 0


class FunnelAnalysis(AnalyticsModel):
    source: str
    top_events: int = 0
    bottom_events: int = 0
    conversion_rate: float = 0


class TopEntity(AnalyticsModel):
    """A ranked campaign or user."""
    id: str
    name: str | None = None
    count: int
    metric: int | float | None = None


class RevenueStats(AnalyticsModel):
    total_revenue: float = 0
    purchase_count: int = 0
    average_order_value: float = 0


class RevenueTotals(AnalyticsModel):
    total_revenue: float = 0
    purchase_count: int = 0


class RevenueAnalysis(AnalyticsModel):
    facebook: RevenueStats
    tiktok: RevenueStats
    total: RevenueTotals
