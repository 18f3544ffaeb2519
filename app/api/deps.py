"""Request-scoped access to the services wired into the app."""
from fastapi import Request
from ..analytics.service import AnalyticsService
from ..services.event_store import EventIngestor


def get_analytics(request: Request) -> AnalyticsService:
    return request.app.state.analytics


def get_ingestor(request: Request) -> EventIngestor:
    return request.app.state.ingestor
