"""Price source protocols — market data abstractions used by the resolver."""
from typing import Protocol

from ..models import Asset


class MarketSource(Protocol):
    """Ranked assets and batched spot prices keyed by a stable asset id."""

    async def fetch_trending(self, limit: int = 20, force_refresh: bool = False) -> list[Asset]: ...

    async def fetch_prices(self, ids: list[str]) -> dict[str, float]: ...


class DiscoverySource(Protocol):
    """Pool-based assets addressed by (chain, address), cached by symbol."""

    async def fetch_viral(self, limit: int = 20, force_refresh: bool = False) -> list[Asset]: ...

    async def fetch_token_price(self, chain: str, address: str) -> float: ...

    def cached_price_for_symbol(self, symbol: str) -> float | None: ...


class ImageLookup(Protocol):
    """Resolve an image URL for a ticker symbol."""

    async def search_image(self, symbol: str) -> str | None: ...
