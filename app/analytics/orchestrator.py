"""Fan-out/fan-in for composite queries."""
import asyncio
from typing import Awaitable, TypeVar

import structlog

from ..event_models import EventSource, FunnelStage
from ..adapters.base import EventStore
from .grouping import percentage
from .models import EventsByFunnel, EventsBySource, OverallStats

log = structlog.get_logger()

T = TypeVar("T")


async def gather_all(**subqueries: Awaitable[T]) -> dict[str, T]:
    """
    Run named sub-queries concurrently and join their results.

    If any sub-query fails, the others are cancelled and the first failure
    propagates; no partial result is returned. Cancelling the caller
    cancels every sub-query.

    Returns:
        Mapping of sub-query name to its result
    """
    tasks = {name: asyncio.ensure_future(aw) for name, aw in subqueries.items()}
    try:
        results = await asyncio.gather(*tasks.values())
    except Exception as e:
        pending = [t for t in tasks.values() if not t.done()]
        for task in pending:
            task.cancel()
        # Drain so late failures are not reported as unretrieved
        await asyncio.gather(*tasks.values(), return_exceptions=True)
        log.warning(
            "composite.subquery_failed",
            error=str(e),
            error_type=type(e).__name__,
            cancelled=len(pending),
        )
        raise
    return dict(zip(tasks.keys(), results))


async def overall_stats(store: EventStore) -> OverallStats:
    """Five independent counts assembled into one response."""
    counts = await gather_all(
        total=store.count(),
        facebook=store.count(source=EventSource.FACEBOOK),
        tiktok=store.count(source=EventSource.TIKTOK),
        top=store.count(funnel_stage=FunnelStage.TOP),
        bottom=store.count(funnel_stage=FunnelStage.BOTTOM),
    )
    rate = percentage(counts["bottom"], counts["top"])
    return OverallStats(
        total_events=counts["total"],
        events_by_source=EventsBySource(facebook=counts["facebook"], tiktok=counts["tiktok"]),
        events_by_funnel=EventsByFunnel(top=counts["top"], bottom=counts["bottom"]),
        conversion_rate=f"{rate:.2f}",
    )
