"""Base adapter interface for event store backends."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable
from ..event_models import Event, EventSource, FunnelStage


class EventStore(ABC):
    """
    Abstract interface for event store implementations.

    The store is append-only: events are never updated or deleted.
    Filters on source, funnel stage and timestamp are applied at the
    store boundary; everything else is grouped in-process.
    """

    @abstractmethod
    async def append(self, event: Event) -> Event:
        """
        Persist an event.

        Args:
            event: The validated event to store

        Returns:
            The stored event
        """
        pass

    @abstractmethod
    async def count(
        self,
        source: EventSource | str | None = None,
        funnel_stage: FunnelStage | str | None = None,
    ) -> int:
        """
        Count stored events matching exact-match filters.

        Args:
            source: Only count events from this source
            funnel_stage: Only count events at this funnel stage

        Returns:
            Number of matching events
        """
        pass

    @abstractmethod
    async def scan(
        self,
        source: EventSource | str | None = None,
        funnel_stage: FunnelStage | str | None = None,
        since: datetime | None = None,
    ) -> Iterable[Event]:
        """
        Read stored events matching the filters.

        Args:
            source: Only return events from this source
            funnel_stage: Only return events at this funnel stage
            since: Only return events with timestamp >= since

        Returns:
            Iterable of matching events in insertion order
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the backend is healthy and accessible.

        Returns:
            True if backend is healthy, False otherwise
        """
        pass

    async def close(self):
        """Release backend resources."""
        return None


def matches(
    event: Event,
    source: EventSource | str | None = None,
    funnel_stage: FunnelStage | str | None = None,
    since: datetime | None = None,
) -> bool:
    """Apply store-boundary filters to a single event."""
    if source is not None and event.source != source:
        return False
    if funnel_stage is not None and event.funnel_stage != funnel_stage:
        return False
    if since is not None and event.timestamp < since:
        return False
    return True
