"""Exception hierarchy for price sources and trading."""
from __future__ import annotations


class PriceSourceError(Exception):
    """Base class for failures talking to a market data source."""

    def __init__(self, message: str = "", source: str = "", endpoint: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.source = source
        self.endpoint = endpoint


class InvalidRequest(PriceSourceError):
    """The request could not be built (bad ids, empty query)."""


class InvalidResponse(PriceSourceError):
    """The payload did not have the expected shape or failed to decode."""


class HttpError(PriceSourceError):
    """Non-2xx status other than 404 and 429."""

    def __init__(self, status: int, source: str = "", endpoint: str = "") -> None:
        super().__init__(f"HTTP error: {status}", source=source, endpoint=endpoint)
        self.status = status


class RateLimitExceeded(PriceSourceError):
    """The source answered with HTTP 429."""

    def __init__(self, message: str = "", source: str = "", endpoint: str = "") -> None:
        super().__init__(
            message or "Rate limit exceeded. Please try again later.",
            source=source,
            endpoint=endpoint,
        )


class NotFound(PriceSourceError):
    """The asset or pool does not exist at the source."""


class NetworkUnavailable(PriceSourceError):
    """No connectivity, connection failure or request timeout."""


class TradeRejected(Exception):
    """A buy or sell was refused; the message is safe to show to the user."""
