"""Telemetry sink protocol — destination for rate-limit events."""
from typing import Protocol

from ..models import RateLimitEvent


class TelemetrySink(Protocol):
    """Write-only receiver of rate-limit events."""

    async def record(self, event: RateLimitEvent) -> bool: ...
