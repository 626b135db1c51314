"""Shared HTTP transport — aiohttp GET with certifi TLS and typed errors."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..errors import HttpError, InvalidResponse, NetworkUnavailable, NotFound, RateLimitExceeded

logger = logging.getLogger(__name__)


class HttpClient:
    """JSON GET client with a fixed total timeout per request."""

    def __init__(self, timeout: int = 30, headers: dict[str, str] | None = None) -> None:
        self.timeout = timeout
        self.headers = {"Accept": "application/json", **(headers or {})}

    async def get_json(self, url: str, params: dict[str, str] | None = None) -> Any:
        """Fetch ``url`` and decode the JSON body.

        Raises:
            RateLimitExceeded: HTTP 429.
            NotFound: HTTP 404.
            HttpError: any other non-200 status.
            InvalidResponse: body is not JSON.
            NetworkUnavailable: connection failure or timeout.
        """
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url,
                    params=params,
                    headers=self.headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    logger.debug("GET %s -> HTTP %s", url, response.status)
                    if response.status == 429:
                        raise RateLimitExceeded(endpoint=url)
                    if response.status == 404:
                        raise NotFound(f"Not found: {url}", endpoint=url)
                    if response.status != 200:
                        raise HttpError(response.status, endpoint=url)
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise InvalidResponse(f"Invalid JSON from {url}: {e}", endpoint=url) from e
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise NetworkUnavailable(f"Network error: {e}", endpoint=url) from e
