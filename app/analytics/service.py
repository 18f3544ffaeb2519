"""Aggregation queries over the event store."""
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Callable
import time

import structlog

from ..adapters.base import EventStore
from ..event_models import EventSource, FunnelStage
from ..extraction import CanonicalField, event_field, resolve_country
from ..metrics import Metrics
from .grouping import (
    CountryGroup,
    EntityGroup,
    PurchaseTotals,
    hour_bucket,
    percentage,
    rank,
)
from .models import (
    CountryBreakdown,
    EventTypeRanking,
    FunnelAnalysis,
    OverallStats,
    RevenueAnalysis,
    RevenueStats,
    RevenueTotals,
    TimeSeriesDataPoint,
    TopEntity,
)
from .orchestrator import overall_stats
from .requests import (
    COUNTRY_BREAKDOWN_LIMIT,
    CountryBreakdownQuery,
    SourceFilter,
    TimeSeriesQuery,
    TopEntitiesQuery,
    TopUsersQuery,
    validate_query,
)

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _store_source(source: SourceFilter | None) -> EventSource | None:
    """Translate a source filter into a store filter; ``all`` means none."""
    if source is None or source == SourceFilter.ALL:
        return None
    return EventSource(source.value)


def instrumented(query: str):
    """Log and record metrics for an aggregation query."""
    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            start_time = time.perf_counter()
            status = "error"
            try:
                result = await func(self, *args, **kwargs)
                status = "ok"
                return result
            finally:
                duration = time.perf_counter() - start_time
                if self._metrics is not None:
                    self._metrics.record_query(query, status, duration)
                log.info(
                    "query.completed",
                    query=query,
                    status=status,
                    duration_ms=round(duration * 1000, 2),
                )
        return wrapper
    return decorator


class AnalyticsService:
    """
    Stateless read-only aggregation queries.

    The store handle is injected; the service holds no mutable state and
    may be shared by concurrent callers. Every query reads the store as of
    call time, so two queries may see slightly different populations.
    """

    def __init__(
        self,
        store: EventStore,
        metrics: Metrics | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            store: Event store to read from
            metrics: Optional Prometheus metrics to record query timings
            clock: Source of "now" for look-back windows
        """
        self._store = store
        self._metrics = metrics
        self._clock = clock

    @instrumented("overview")
    async def get_overall_stats(self) -> OverallStats:
        """Totals by source and funnel stage plus the overall conversion rate."""
        return await overall_stats(self._store)

    @instrumented("timeseries")
    async def get_event_time_series(
        self,
        hours: int | None = None,
        source: SourceFilter | str | None = None,
    ) -> list[TimeSeriesDataPoint]:
        """
        Hourly event counts over a look-back window.

        Only buckets holding at least one event are returned, oldest first.

        Raises:
            InvalidQueryError: If hours is outside 1..168 or source is unknown
        """
        params = validate_query(TimeSeriesQuery, hours=hours, source=source)
        since = self._clock() - timedelta(hours=params.hours)

        events = await self._store.scan(source=_store_source(params.source), since=since)
        buckets = Counter(hour_bucket(e.timestamp) for e in events)

        return [TimeSeriesDataPoint(date=bucket, count=count) for bucket, count in sorted(buckets.items())]

    @instrumented("events_by_type")
    async def get_events_by_type(self, limit: int | None = None) -> list[EventTypeRanking]:
        """
        Most frequent (source, eventType) pairs.

        Raises:
            InvalidQueryError: If limit is outside 1..100
        """
        params = validate_query(TopEntitiesQuery, limit=limit)

        events = await self._store.scan()
        counts = Counter((e.source, e.event_type) for e in events)

        ranked = rank(
            counts.items(),
            metric=lambda item: item[1],
            tiebreak=lambda item: item[0],
            limit=params.limit,
        )
        return [
            EventTypeRanking(source=source, event_type=event_type, count=count)
            for (source, event_type), count in ranked
        ]

    @instrumented("countries")
    async def get_country_breakdown(self, source: SourceFilter | str | None = None) -> list[CountryBreakdown]:
        """
        Events, users and purchases per country (top 20 by event count).

        Events whose country cannot be resolved under either platform's
        path are left out.

        Raises:
            InvalidQueryError: If source is unknown
        """
        params = validate_query(CountryBreakdownQuery, source=source)

        events = await self._store.scan(source=_store_source(params.source))
        groups: dict[str, CountryGroup] = defaultdict(CountryGroup)
        for event in events:
            country = resolve_country(event.payload)
            if country is None:
                continue
            group = groups[country]
            group.event_count += 1
            user_id = event_field(event, CanonicalField.USER_ID)
            if user_id is not None:
                group.users.add(user_id)
            group.purchases.add(event)

        ranked = rank(
            groups.items(),
            metric=lambda item: item[1].event_count,
            tiebreak=lambda item: item[0],
            limit=COUNTRY_BREAKDOWN_LIMIT,
        )
        return [
            CountryBreakdown(
                country=country,
                event_count=group.event_count,
                unique_users=len(group.users),
                total_purchases=group.purchases.purchases,
                total_revenue=group.purchases.revenue,
            )
            for country, group in ranked
        ]

    @instrumented("funnel")
    async def get_funnel_analysis(self) -> list[FunnelAnalysis]:
        """Top vs bottom funnel counts and conversion rate, one row per source."""
        events = await self._store.scan()
        counts = Counter((e.source, e.funnel_stage) for e in events)

        sources = sorted({source for source, _ in counts})
        rows = []
        for source in sources:
            top = counts.get((source, FunnelStage.TOP.value), 0)
            bottom = counts.get((source, FunnelStage.BOTTOM.value), 0)
            rows.append(
                FunnelAnalysis(
                    source=source,
                    top_events=top,
                    bottom_events=bottom,
                    conversion_rate=round(percentage(bottom, top), 2),
                )
            )
        return rows

    @instrumented("top_campaigns")
    async def get_top_campaigns(self, limit: int | None = None) -> list[TopEntity]:
        """
        Facebook campaigns ranked by conversion count, with revenue as metric.

        Raises:
            InvalidQueryError: If limit is outside 1..100
        """
        params = validate_query(TopEntitiesQuery, limit=limit)

        # campaignId only exists on bottom-funnel payloads
        events = await self._store.scan(source=EventSource.FACEBOOK, funnel_stage=FunnelStage.BOTTOM)
        groups: dict[str, EntityGroup] = defaultdict(EntityGroup)
        for event in events:
            campaign_id = event_field(event, CanonicalField.CAMPAIGN_ID)
            if campaign_id is None:
                continue
            group = groups[campaign_id]
            group.count += 1
            group.revenue.add(event)

        ranked = rank(
            groups.items(),
            metric=lambda item: item[1].count,
            tiebreak=lambda item: item[0],
            limit=params.limit,
        )
        return [
            TopEntity(id=campaign_id, name=campaign_id, count=group.count, metric=group.revenue.revenue)
            for campaign_id, group in ranked
        ]

    @instrumented("top_users")
    async def get_top_users(self, source: SourceFilter | str, limit: int | None = None) -> list[TopEntity]:
        """
        Most active users of one platform.

        Facebook rows carry id/name/count; TikTok rows add the highest valid
        follower count seen for the user as ``metric``. ``all`` names no
        single platform and yields an empty list.

        Raises:
            InvalidQueryError: If source is unknown or limit is outside 1..100
        """
        params = validate_query(TopUsersQuery, source=source, limit=limit)
        store_source = _store_source(params.source)
        if store_source is None:
            return []

        with_followers = store_source == EventSource.TIKTOK
        events = await self._store.scan(source=store_source)
        groups: dict[tuple[str, str | None], EntityGroup] = defaultdict(EntityGroup)
        for event in events:
            user_id = event_field(event, CanonicalField.USER_ID)
            if user_id is None:
                continue
            group = groups[(user_id, event_field(event, CanonicalField.DISPLAY_NAME))]
            group.count += 1
            if with_followers:
                group.observe_followers(event_field(event, CanonicalField.FOLLOWER_COUNT))

        ranked = rank(
            groups.items(),
            metric=lambda item: item[1].count,
            tiebreak=lambda item: (item[0][0], item[0][1] or ""),
            limit=params.limit,
        )
        return [
            TopEntity(
                id=user_id,
                name=name,
                count=group.count,
                metric=(group.max_followers or 0) if with_followers else None,
            )
            for (user_id, name), group in ranked
        ]

    @instrumented("revenue")
    async def get_revenue_analysis(self) -> RevenueAnalysis:
        """Revenue, purchase count and average order value per platform."""
        events = await self._store.scan(funnel_stage=FunnelStage.BOTTOM)
        totals = {source.value: PurchaseTotals() for source in EventSource}
        for event in events:
            if event.source in totals:
                totals[event.source].add(event)

        stats = {
            source: RevenueStats(
                total_revenue=t.revenue,
                purchase_count=t.purchases,
                average_order_value=t.average,
            )
            for source, t in totals.items()
        }
        facebook = stats[EventSource.FACEBOOK.value]
        tiktok = stats[EventSource.TIKTOK.value]
        return RevenueAnalysis(
            facebook=facebook,
            tiktok=tiktok,
            total=RevenueTotals(
                total_revenue=facebook.total_revenue + tiktok.total_revenue,
                purchase_count=facebook.purchase_count + tiktok.purchase_count,
            ),
        )
