"""Redis Streams event store adapter."""
from datetime import datetime
from typing import AsyncIterator, Iterable
import structlog
import orjson
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError
from .base import EventStore, matches
from ..config import get_settings
from ..errors import StoreUnavailableError
from ..event_models import Event, EventSource, FunnelStage

log = structlog.get_logger()


class RedisStreamStore(EventStore):
    """Redis Streams implementation of the event store.

    Each event is one stream entry holding its JSON record under ``data``.
    Entries are read back in insertion order with XRANGE, one batch at a
    time, and filtered in-process.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        stream_key: str | None = None,
        maxlen: int | None = None,
        batch_size: int | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize Redis stream store.

        Args:
            redis_url: Redis connection URL (defaults to settings.REDIS_URL)
            stream_key: Stream holding the events (defaults to settings.REDIS_STREAM_KEY)
            maxlen: Optional approximate cap on stream length
            batch_size: Entries fetched per XRANGE call
            timeout: Socket timeout in seconds for every Redis call
        """
        settings = get_settings()
        self.redis_url = redis_url or str(settings.REDIS_URL)
        self._stream_key = stream_key or settings.REDIS_STREAM_KEY
        self._maxlen = maxlen if maxlen is not None else settings.REDIS_STREAM_MAXLEN
        self._batch_size = batch_size or settings.REDIS_SCAN_BATCH
        self._timeout = timeout or settings.STORE_TIMEOUT_SECONDS
        self._client: Redis | None = None

    def _get_client(self) -> Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = Redis.from_url(
                self.redis_url,
                decode_responses=False,  # entries are orjson bytes
                socket_connect_timeout=self._timeout,
                socket_timeout=self._timeout,
            )
        return self._client

    async def append(self, event: Event) -> Event:
        """
        Add event to the Redis stream.

        Raises:
            StoreUnavailableError: If Redis cannot be reached
        """
        try:
            client = self._get_client()
            await client.xadd(
                self._stream_key,
                {"data": orjson.dumps(event.to_record())},
                id="*",
                maxlen=self._maxlen,
            )
        except RedisError as e:
            log.error("store.append_failed", error=str(e), event_id=event.event_id, adapter="redis_stream")
            raise StoreUnavailableError(f"Event store unavailable: {e}") from e

        log.debug(
            "event.stored",
            event_id=event.event_id,
            source=event.source,
            funnel_stage=event.funnel_stage,
            adapter="redis_stream",
        )
        return event

    async def _iter_events(self) -> AsyncIterator[Event]:
        """Yield every decodable event in the stream, oldest first."""
        client = self._get_client()
        start = "-"
        while True:
            entries = await client.xrange(self._stream_key, min=start, max="+", count=self._batch_size)
            for entry_id, entry_data in entries:
                event = self._decode(entry_id, entry_data)
                if event is not None:
                    yield event
            if len(entries) < self._batch_size:
                return
            last_id = entries[-1][0]
            if isinstance(last_id, bytes):
                last_id = last_id.decode()
            # Exclusive start so the boundary entry is not read twice
            start = f"({last_id}"

    def _decode(self, entry_id, entry_data: dict) -> Event | None:
        raw = entry_data.get(b"data")
        if raw is None:
            log.warning("store.entry_skipped", entry_id=str(entry_id), reason="missing data field")
            return None
        try:
            return Event.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as e:
            log.warning("store.entry_skipped", entry_id=str(entry_id), reason=str(e))
            return None

    async def scan(
        self,
        source: EventSource | str | None = None,
        funnel_stage: FunnelStage | str | None = None,
        since: datetime | None = None,
    ) -> Iterable[Event]:
        """
        Read matching events from the stream.

        Raises:
            StoreUnavailableError: If Redis cannot be reached or times out
        """
        try:
            return [e async for e in self._iter_events() if matches(e, source, funnel_stage, since)]
        except RedisError as e:
            log.error("store.scan_failed", error=str(e), adapter="redis_stream")
            raise StoreUnavailableError(f"Event store unavailable: {e}") from e

    async def count(
        self,
        source: EventSource | str | None = None,
        funnel_stage: FunnelStage | str | None = None,
    ) -> int:
        """
        Count matching events.

        Counts go through the decode path of ``scan``, so entries skipped
        there are not counted.

        Raises:
            StoreUnavailableError: If Redis cannot be reached or times out
        """
        return len(await self.scan(source=source, funnel_stage=funnel_stage))

    async def health_check(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is accessible, False otherwise
        """
        try:
            return bool(await self._get_client().ping())
        except (RedisError, OSError) as e:
            log.warning("redis.health_check_failed", error=str(e))
            return False

    async def close(self):
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
