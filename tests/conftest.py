"""Shared fixtures: event factories shaped like the platforms' payloads."""
import itertools
from datetime import datetime, timedelta, timezone
import pytest
from app.adapters.memory import InMemoryStore
from app.analytics.service import AnalyticsService
from app.event_models import Event

NOW = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)


def build_payload(
    source: str,
    stage: str,
    user_id: str | None = "user-1",
    name: str | None = "Alice",
    country: str | None = "US",
    campaign_id: str | None = "cmp-1",
    purchase_amount: str | None = None,
    followers: str | None = "100",
) -> dict:
    """Payload in the shape each platform publishes for the given stage."""
    user: dict = {}
    if user_id is not None:
        user["userId"] = user_id

    if source == "facebook":
        if name is not None:
            user["name"] = name
        if country is not None:
            user["location"] = {"country": country, "city": "Springfield"}
        if stage == "top":
            engagement = {"actionTime": "2026-10-19T12:00:00Z", "referrer": "newsfeed", "videoId": None}
        else:
            engagement = {
                "adId": "ad-1",
                "clickPosition": "center",
                "device": "mobile",
                "browser": "Chrome",
                "purchaseAmount": purchase_amount,
            }
            if campaign_id is not None:
                engagement["campaignId"] = campaign_id
    else:
        if name is not None:
            user["username"] = name
        if followers is not None:
            user["followers"] = followers
        if stage == "top":
            engagement = {"videoId": "vid-1", "sessionId": "sess-1"}
        else:
            engagement = {"actionId": "act-1", "source": "paid", "purchaseAmount": purchase_amount}
        if country is not None:
            engagement["country"] = country

    return {"user": user, "engagement": engagement}


@pytest.fixture
def make_event():
    """Factory for stored events; keyword arguments shape the payload."""
    counter = itertools.count(1)

    def _make(
        source: str = "facebook",
        stage: str = "top",
        event_type: str = "ad.view",
        timestamp: datetime | None = None,
        payload: dict | None = None,
        **fields,
    ) -> Event:
        if payload is None:
            payload = build_payload(source, stage, **fields)
        return Event(
            event_id=f"{source}-{next(counter)}",
            timestamp=timestamp or NOW - timedelta(minutes=5),
            source=source,
            funnel_stage=stage,
            event_type=event_type,
            payload=payload,
        )

    return _make


@pytest.fixture
def service_for():
    """Build an AnalyticsService over an in-memory store holding the given events."""

    def _service(events) -> AnalyticsService:
        return AnalyticsService(InMemoryStore(events), clock=lambda: NOW)

    return _service


@pytest.fixture
def now() -> datetime:
    """The fixed "now" used by services built with service_for."""
    return NOW


@pytest.fixture
def payload_for():
    """The platform payload builder, for tests that post raw JSON."""
    return build_payload
