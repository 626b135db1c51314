"""REST telemetry sink — inserts rate-limit events into a remote table."""
import logging
import ssl

import aiohttp
import certifi

from ..config import TelemetryConfig
from ..models import RateLimitEvent

logger = logging.getLogger(__name__)


class RestTelemetrySink:
    """POST rate-limit events as JSON rows (Supabase PostgREST compatible)."""

    def __init__(self, config: TelemetryConfig, timeout: int = 10) -> None:
        self.endpoint_url = config.endpoint_url
        self.api_key = config.api_key
        self.app_version = config.app_version
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Prefer": "return=minimal"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def record(self, event: RateLimitEvent) -> bool:
        """Send one event; returns False instead of raising on HTTP failure."""
        if not self.endpoint_url:
            logger.warning("Telemetry endpoint not configured")
            return False

        payload = event.to_payload(app_version=self.app_version)

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(
                self.endpoint_url,
                json=payload,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status in (200, 201, 204):
                    logger.info("Rate limit event logged for %s", event.source)
                    return True
                logger.error("Failed to log rate limit event: HTTP %s", response.status)
                return False
