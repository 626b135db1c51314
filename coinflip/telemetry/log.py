"""Logging-only telemetry sink."""
import logging

from ..models import RateLimitEvent

logger = logging.getLogger(__name__)


class LoggingTelemetrySink:
    """Used when remote telemetry is disabled."""

    async def record(self, event: RateLimitEvent) -> bool:
        logger.info(
            "rate_limit source=%s endpoint=%s calls=%d duration=%ds cpm=%.2f",
            event.source,
            event.endpoint,
            event.call_count,
            event.session_duration_seconds,
            event.calls_per_minute,
        )
        return True
