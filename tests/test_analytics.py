"""Tests for the aggregation queries."""
from datetime import datetime, timedelta, timezone
import pytest
from app.analytics.requests import SourceFilter
from app.errors import InvalidQueryError


# Overview

@pytest.mark.asyncio
async def test_overall_stats_counts(make_event, service_for):
    """Counts by source and stage add up and drive the conversion rate."""
    events = (
        [make_event("facebook", "top") for _ in range(3)]
        + [make_event("facebook", "bottom")]
        + [make_event("tiktok", "top"), make_event("tiktok", "bottom")]
    )
    stats = await service_for(events).get_overall_stats()

    assert stats.total_events == 6
    assert stats.events_by_source.facebook == 4
    assert stats.events_by_source.tiktok == 2
    assert stats.events_by_funnel.top == 4
    assert stats.events_by_funnel.bottom == 2
    assert stats.events_by_funnel.top + stats.events_by_funnel.bottom == stats.total_events
    assert stats.conversion_rate == "50.00"


@pytest.mark.asyncio
async def test_overall_stats_empty_store(service_for):
    """No top-of-funnel events gives a 0.00 rate rather than an error."""
    stats = await service_for([]).get_overall_stats()
    assert stats.total_events == 0
    assert stats.conversion_rate == "0.00"


@pytest.mark.asyncio
async def test_overall_stats_rate_formatting(make_event, service_for):
    events = [make_event("facebook", "top") for _ in range(3)] + [make_event("tiktok", "bottom")]
    stats = await service_for(events).get_overall_stats()
    assert stats.conversion_rate == "33.33"


@pytest.mark.asyncio
async def test_overall_stats_rate_above_hundred(make_event, service_for):
    """More bottom than top events reports the real ratio."""
    events = [make_event("facebook", "top")] + [make_event("facebook", "bottom") for _ in range(3)]
    stats = await service_for(events).get_overall_stats()
    assert stats.conversion_rate == "300.00"

    rows = await service_for(events).get_funnel_analysis()
    assert rows[0].conversion_rate == 300.0


@pytest.mark.asyncio
async def test_overall_stats_serializes_camel_case(make_event, service_for):
    stats = await service_for([make_event()]).get_overall_stats()
    data = stats.model_dump(by_alias=True)
    assert data == {
        "totalEvents": 1,
        "eventsBySource": {"facebook": 1, "tiktok": 0},
        "eventsByFunnel": {"top": 1, "bottom": 0},
        "conversionRate": "0.00",
    }


# Time series

def _timeseries_events(make_event):
    at = lambda h, m: datetime(2026, 10, 19, h, m, tzinfo=timezone.utc)
    return [
        make_event("facebook", timestamp=at(12, 10)),
        make_event("facebook", timestamp=at(12, 20)),
        make_event("tiktok", timestamp=at(10, 5)),
        make_event("tiktok", timestamp=at(11, 45)),
        make_event("facebook", timestamp=at(9, 0)),
    ]


@pytest.mark.asyncio
async def test_time_series_hourly_buckets(make_event, service_for):
    """Buckets are hourly, ascending, non-empty and exclude events before the window."""
    points = await service_for(_timeseries_events(make_event)).get_event_time_series(hours=3)

    assert [(p.date.hour, p.count) for p in points] == [(10, 1), (11, 1), (12, 2)]
    assert all(p.date.tzinfo is not None for p in points)
    assert points[0].date == datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)
    assert sum(p.count for p in points) == 4


@pytest.mark.asyncio
async def test_time_series_omits_empty_buckets(make_event, service_for, now):
    events = [
        make_event(timestamp=now - timedelta(hours=5)),
        make_event(timestamp=now - timedelta(minutes=1)),
    ]
    points = await service_for(events).get_event_time_series(hours=24)
    assert len(points) == 2
    assert points[0].date < points[1].date


@pytest.mark.asyncio
async def test_time_series_source_filter(make_event, service_for):
    service = service_for(_timeseries_events(make_event))

    facebook = await service.get_event_time_series(hours=3, source="facebook")
    assert [(p.date.hour, p.count) for p in facebook] == [(12, 2)]

    everything = await service.get_event_time_series(hours=3, source=SourceFilter.ALL)
    unfiltered = await service.get_event_time_series(hours=3)
    assert everything == unfiltered


@pytest.mark.asyncio
async def test_time_series_default_window(make_event, service_for, now):
    events = [make_event(timestamp=now - timedelta(hours=30)), make_event(timestamp=now - timedelta(hours=2))]
    points = await service_for(events).get_event_time_series()
    assert sum(p.count for p in points) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("hours", [0, 169, -1])
async def test_time_series_rejects_out_of_range_hours(service_for, hours):
    with pytest.raises(InvalidQueryError) as exc_info:
        await service_for([]).get_event_time_series(hours=hours)
    assert exc_info.value.parameter == "hours"


@pytest.mark.asyncio
async def test_time_series_rejects_unknown_source(service_for):
    with pytest.raises(InvalidQueryError) as exc_info:
        await service_for([]).get_event_time_series(hours=24, source="myspace")
    assert exc_info.value.parameter == "source"


# Event types

def _typed_events(make_event):
    return (
        [make_event("facebook", event_type="ad.view") for _ in range(3)]
        + [make_event("tiktok", event_type="video.view") for _ in range(2)]
        + [make_event("facebook", "bottom", event_type="purchase") for _ in range(2)]
        + [make_event("tiktok", "bottom", event_type="purchase") for _ in range(2)]
    )


@pytest.mark.asyncio
async def test_events_by_type_ranking(make_event, service_for):
    """Equal counts fall back to source then event type order."""
    rows = await service_for(_typed_events(make_event)).get_events_by_type(limit=10)
    assert [(r.source, r.event_type, r.count) for r in rows] == [
        ("facebook", "ad.view", 3),
        ("facebook", "purchase", 2),
        ("tiktok", "purchase", 2),
        ("tiktok", "video.view", 2),
    ]


@pytest.mark.asyncio
async def test_events_by_type_limit(make_event, service_for):
    service = service_for(_typed_events(make_event))

    top = await service.get_events_by_type(limit=1)
    assert [(r.source, r.event_type, r.count) for r in top] == [("facebook", "ad.view", 3)]

    two = await service.get_events_by_type(limit=2)
    assert len(two) == 2
    assert two[0].count >= two[1].count


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [0, 101])
async def test_events_by_type_rejects_limit(service_for, limit):
    with pytest.raises(InvalidQueryError):
        await service_for([]).get_events_by_type(limit=limit)


# Countries

def _country_events(make_event):
    return [
        make_event("facebook", "top", user_id="u1", country="US"),
        make_event("facebook", "top", user_id="u2", country="US"),
        make_event("facebook", "bottom", user_id="u1", country="US", purchase_amount="10.50"),
        make_event("tiktok", "top", user_id="t1", country="DE"),
        make_event("tiktok", "bottom", user_id="t1", country="DE", purchase_amount="abc"),
        make_event("facebook", "top", user_id="u3", country=None),
        make_event(
            "tiktok",
            "top",
            payload={"user": {"userId": "t2", "location": {"country": "FR"}}, "engagement": {"country": "DE"}},
        ),
    ]


@pytest.mark.asyncio
async def test_country_breakdown_all_sources(make_event, service_for):
    """Countries resolve through the fallback chain; unresolvable events drop out."""
    rows = await service_for(_country_events(make_event)).get_country_breakdown()

    assert [r.country for r in rows] == ["US", "DE", "FR"]
    us, de, fr = rows
    assert (us.event_count, us.unique_users, us.total_purchases, us.total_revenue) == (3, 2, 1, 10.5)
    # "abc" counts as a purchase but adds no revenue
    assert (de.event_count, de.unique_users, de.total_purchases, de.total_revenue) == (2, 1, 1, 0)
    assert (fr.event_count, fr.unique_users, fr.total_purchases, fr.total_revenue) == (1, 1, 0, 0)
    assert sum(r.event_count for r in rows) == 6


@pytest.mark.asyncio
async def test_country_breakdown_source_filter(make_event, service_for):
    rows = await service_for(_country_events(make_event)).get_country_breakdown(source="tiktok")
    assert [(r.country, r.event_count) for r in rows] == [("DE", 2), ("FR", 1)]


@pytest.mark.asyncio
async def test_country_breakdown_limited_to_twenty(make_event, service_for):
    events = [make_event(country=f"C{i:02d}") for i in range(25)]
    rows = await service_for(events).get_country_breakdown(source="all")
    assert len(rows) == 20
    assert [r.country for r in rows[:3]] == ["C00", "C01", "C02"]


@pytest.mark.asyncio
async def test_country_breakdown_ignores_missing_user_ids(make_event, service_for):
    events = [make_event(user_id=None, country="US"), make_event(user_id="u1", country="US")]
    rows = await service_for(events).get_country_breakdown()
    assert rows[0].event_count == 2
    assert rows[0].unique_users == 1


@pytest.mark.asyncio
async def test_country_breakdown_skips_malformed_primary_country(make_event, service_for):
    payload = {"user": {"userId": "t9", "location": {"country": {"code": "FR"}}}, "engagement": {"country": "DE"}}
    rows = await service_for([make_event("tiktok", payload=payload)]).get_country_breakdown()
    assert [(r.country, r.event_count, r.unique_users) for r in rows] == [("DE", 1, 1)]


# Funnel

@pytest.mark.asyncio
async def test_funnel_analysis_pivot(make_event, service_for):
    """One row per source; a missing stage defaults to zero."""
    events = (
        [make_event("facebook", "top") for _ in range(4)]
        + [make_event("facebook", "bottom")]
        + [make_event("tiktok", "bottom") for _ in range(2)]
    )
    rows = await service_for(events).get_funnel_analysis()

    assert [r.source for r in rows] == ["facebook", "tiktok"]
    facebook, tiktok = rows
    assert (facebook.top_events, facebook.bottom_events, facebook.conversion_rate) == (4, 1, 25.0)
    assert (tiktok.top_events, tiktok.bottom_events, tiktok.conversion_rate) == (0, 2, 0)


@pytest.mark.asyncio
async def test_funnel_conversion_rounded(make_event, service_for):
    events = [make_event("tiktok", "top") for _ in range(3)] + [make_event("tiktok", "bottom")]
    rows = await service_for(events).get_funnel_analysis()
    assert rows[0].conversion_rate == 33.33


@pytest.mark.asyncio
async def test_funnel_empty(service_for):
    assert await service_for([]).get_funnel_analysis() == []


# Campaigns

def _campaign_events(make_event):
    fb_bottom = lambda **kw: make_event("facebook", "bottom", event_type="purchase", **kw)
    return [
        fb_bottom(campaign_id="cmp-a", purchase_amount="10"),
        fb_bottom(campaign_id="cmp-a", purchase_amount="5.5"),
        fb_bottom(campaign_id="cmp-a", purchase_amount=None),
        fb_bottom(campaign_id="cmp-b", purchase_amount="bad"),
        fb_bottom(campaign_id="cmp-b"),
        fb_bottom(campaign_id="cmp-b"),
        fb_bottom(campaign_id="cmp-c", purchase_amount="100"),
        fb_bottom(campaign_id=None, purchase_amount="999"),
        make_event("facebook", "top", payload={"engagement": {"campaignId": "cmp-z"}}),
        make_event("tiktok", "bottom", payload={"engagement": {"campaignId": "cmp-t", "purchaseAmount": "1"}}),
    ]


@pytest.mark.asyncio
async def test_top_campaigns(make_event, service_for):
    """Facebook conversions only; revenue sums valid amounts."""
    rows = await service_for(_campaign_events(make_event)).get_top_campaigns(limit=10)

    assert [(r.id, r.name, r.count, r.metric) for r in rows] == [
        ("cmp-a", "cmp-a", 3, 15.5),
        ("cmp-b", "cmp-b", 3, 0),
        ("cmp-c", "cmp-c", 1, 100.0),
    ]


@pytest.mark.asyncio
async def test_top_campaigns_limit_one(make_event, service_for):
    rows = await service_for(_campaign_events(make_event)).get_top_campaigns(limit=1)
    assert [r.id for r in rows] == ["cmp-a"]


# Users

@pytest.mark.asyncio
async def test_top_users_facebook(make_event, service_for):
    events = (
        [make_event("facebook", user_id="u1", name="Alice") for _ in range(3)]
        + [make_event("facebook", user_id="u2", name="Bob")]
        + [make_event("facebook", user_id=None, name="Ghost")]
        + [make_event("tiktok", user_id="t1", name="tina")]
    )
    rows = await service_for(events).get_top_users("facebook", limit=10)

    assert [(r.id, r.name, r.count) for r in rows] == [("u1", "Alice", 3), ("u2", "Bob", 1)]
    assert all(r.metric is None for r in rows)


@pytest.mark.asyncio
async def test_top_users_tiktok_max_valid_followers(make_event, service_for):
    """Invalid follower readings are ignored; no valid reading means 0."""
    events = [
        make_event("tiktok", user_id="t1", name="tina", followers="1000"),
        make_event("tiktok", "bottom", user_id="t1", name="tina", followers="not-a-number"),
        make_event("tiktok", user_id="t1", name="tina", followers="20"),
        make_event("tiktok", user_id="t2", name="tom", followers="abc"),
    ]
    rows = await service_for(events).get_top_users(SourceFilter.TIKTOK, limit=10)

    assert [(r.id, r.name, r.count, r.metric) for r in rows] == [
        ("t1", "tina", 3, 1000),
        ("t2", "tom", 1, 0),
    ]


@pytest.mark.asyncio
async def test_top_users_groups_by_id_and_name(make_event, service_for):
    events = [
        make_event("facebook", user_id="u1", name="Alice"),
        make_event("facebook", user_id="u1", name="Alice B."),
    ]
    rows = await service_for(events).get_top_users("facebook")
    assert [(r.id, r.name) for r in rows] == [("u1", "Alice"), ("u1", "Alice B.")]


@pytest.mark.asyncio
@pytest.mark.parametrize("source", ["all", SourceFilter.ALL])
async def test_top_users_all_sources_is_empty(make_event, service_for, source):
    assert await service_for([make_event()]).get_top_users(source) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("source", ["xyz", "snapchat", ""])
async def test_top_users_rejects_unknown_source(service_for, source):
    with pytest.raises(InvalidQueryError) as exc_info:
        await service_for([]).get_top_users(source)
    assert exc_info.value.parameter == "source"


@pytest.mark.asyncio
async def test_top_users_rejects_limit(service_for):
    with pytest.raises(InvalidQueryError):
        await service_for([]).get_top_users("facebook", limit=500)


# Revenue

@pytest.mark.asyncio
async def test_revenue_analysis(make_event, service_for):
    """Invalid amounts count as purchases but stay out of sums and averages."""
    events = [
        make_event("facebook", "bottom", purchase_amount="10.50"),
        make_event("facebook", "bottom", purchase_amount="7"),
        make_event("facebook", "bottom", purchase_amount="bad"),
        make_event("facebook", "bottom", purchase_amount=None),
        make_event("tiktok", "bottom", purchase_amount="-5"),
        make_event("tiktok", "bottom", purchase_amount="20"),
        make_event("tiktok", "top"),
    ]
    revenue = await service_for(events).get_revenue_analysis()

    assert revenue.facebook.purchase_count == 3
    assert revenue.facebook.total_revenue == 17.5
    assert revenue.facebook.average_order_value == 8.75
    assert revenue.tiktok.purchase_count == 2
    assert revenue.tiktok.total_revenue == 20.0
    assert revenue.tiktok.average_order_value == 20.0
    assert revenue.total.total_revenue == revenue.facebook.total_revenue + revenue.tiktok.total_revenue
    assert revenue.total.purchase_count == 5


@pytest.mark.asyncio
async def test_revenue_analysis_defaults(make_event, service_for):
    revenue = await service_for([make_event("facebook", "top")]).get_revenue_analysis()
    data = revenue.model_dump(by_alias=True)
    assert data == {
        "facebook": {"totalRevenue": 0, "purchaseCount": 0, "averageOrderValue": 0},
        "tiktok": {"totalRevenue": 0, "purchaseCount": 0, "averageOrderValue": 0},
        "total": {"totalRevenue": 0, "purchaseCount": 0},
    }


@pytest.mark.asyncio
async def test_duplicate_event_ids_are_counted(make_event, service_for):
    """Retried deliveries are not deduplicated."""
    event = make_event("facebook", "bottom", purchase_amount="5")
    revenue = await service_for([event, event]).get_revenue_analysis()
    assert revenue.facebook.purchase_count == 2
    assert revenue.facebook.total_revenue == 10.0
