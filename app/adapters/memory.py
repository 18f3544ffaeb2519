"""In-memory event store adapter."""
from datetime import datetime
from typing import Iterable
import structlog
from .base import EventStore, matches
from ..event_models import Event, EventSource, FunnelStage

log = structlog.get_logger()


class InMemoryStore(EventStore):
    """In-memory implementation of the event store."""

    def __init__(self, events: Iterable[Event] | None = None):
        self._events: list[Event] = list(events or [])

    async def append(self, event: Event) -> Event:
        """Append event to the in-memory log."""
        self._events.append(event)
        log.debug(
            "event.stored",
            event_id=event.event_id,
            source=event.source,
            funnel_stage=event.funnel_stage,
            adapter="memory",
        )
        return event

    async def count(
        self,
        source: EventSource | str | None = None,
        funnel_stage: FunnelStage | str | None = None,
    ) -> int:
        """Count events in memory matching the filters."""
        if source is None and funnel_stage is None:
            return len(self._events)
        return sum(1 for e in self._events if matches(e, source, funnel_stage))

    async def scan(
        self,
        source: EventSource | str | None = None,
        funnel_stage: FunnelStage | str | None = None,
        since: datetime | None = None,
    ) -> Iterable[Event]:
        """Return a snapshot of matching events."""
        return [e for e in self._events if matches(e, source, funnel_stage, since)]

    async def health_check(self) -> bool:
        """In-memory store is always healthy."""
        return True
