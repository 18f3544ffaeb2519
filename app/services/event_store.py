"""Event store selection and ingestion."""
from typing import Iterable
import structlog
from ..adapters.base import EventStore
from ..adapters.memory import InMemoryStore
from ..adapters.redis_stream import RedisStreamStore
from ..config import Settings, get_settings
from ..event_models import Event
from ..metrics import Metrics

log = structlog.get_logger()


def create_store(settings: Settings | None = None) -> EventStore:
    """
    Create the event store named by the STORE_ADAPTER setting.

    Returns:
        EventStore instance; falls back to memory when Redis is requested
        without a REDIS_URL
    """
    settings = settings or get_settings()
    if settings.STORE_ADAPTER == "redis":
        if not settings.REDIS_URL:
            log.warning(
                "store.fallback",
                requested="redis",
                actual="memory",
                reason="REDIS_URL not configured",
            )
            return InMemoryStore()

        log.info("store.selected", type="redis", stream=settings.REDIS_STREAM_KEY)
        return RedisStreamStore(redis_url=str(settings.REDIS_URL))

    log.info("store.selected", type="memory")
    return InMemoryStore()


class EventIngestor:
    """
    Appends validated events to the store.

    Events are stored as delivered; duplicates by eventId are kept.
    """

    def __init__(self, store: EventStore, metrics: Metrics | None = None):
        self._store = store
        self._metrics = metrics

    async def ingest(self, events: Iterable[Event]) -> int:
        """
        Append events in order.

        Returns:
            Number of events stored

        Raises:
            StoreUnavailableError: If the store rejects a write; events
                before the failing one remain stored
        """
        stored = 0
        for event in events:
            await self._store.append(event)
            stored += 1
            if self._metrics is not None:
                self._metrics.record_event_ingested(event.source, event.funnel_stage)
        log.info("events.ingested", count=stored)
        return stored
