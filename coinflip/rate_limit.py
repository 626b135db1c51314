"""Rate limit guard — counts outbound calls and reports 429s as telemetry."""
from __future__ import annotations

import logging
import time
from collections import defaultdict
from typing import Awaitable, Callable, TypeVar

from .errors import RateLimitExceeded
from .interfaces.telemetry import TelemetrySink
from .models import RateLimitEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitGuard:
    """Wraps every outbound call made by the source clients.

    A 429 is recorded to the telemetry sink and re-raised so the caller can
    decide how to back off; the guard itself never retries.
    """

    def __init__(
        self,
        sink: TelemetrySink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sink = sink
        self._clock = clock
        self._started_at = clock()
        self._counts: dict[str, int] = defaultdict(int)

    def call_count(self, source: str) -> int:
        return self._counts.get(source, 0)

    def session_duration(self) -> int:
        return int(self._clock() - self._started_at)

    async def call(
        self,
        source: str,
        endpoint: str,
        request: Callable[[], Awaitable[T]],
    ) -> T:
        self._counts[source] += 1
        try:
            return await request()
        except RateLimitExceeded as e:
            e.source = source
            e.endpoint = endpoint
            event = RateLimitEvent(
                source=source,
                endpoint=endpoint,
                call_count=self._counts[source],
                session_duration_seconds=self.session_duration(),
            )
            logger.warning(
                "Rate limited by %s on %s after %d calls (%.1f calls/min)",
                source,
                endpoint,
                event.call_count,
                event.calls_per_minute,
            )
            await self._emit(event)
            raise

    async def _emit(self, event: RateLimitEvent) -> None:
        if self._sink is None:
            return
        try:
            await self._sink.record(event)
        except Exception as e:
            logger.error("Failed to record rate limit event: %s", e)
