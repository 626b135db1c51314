"""CoinGecko client — ranked markets and batched spot prices."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable

from ..cache import TTLCache
from ..config import PrimarySourceConfig
from ..errors import InvalidRequest, InvalidResponse, NetworkUnavailable, NotFound
from ..models import Asset
from ..network import NetworkMonitor
from ..rate_limit import RateLimitGuard
from .http import HttpClient

logger = logging.getLogger(__name__)

SOURCE_NAME = "CoinGecko"
_TRENDING_KEY = "markets"


def _float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_market_row(row: dict[str, Any]) -> Asset | None:
    """Convert one ``/coins/markets`` row; rows without id or price are dropped."""
    coin_id = row.get("id")
    price = row.get("current_price")
    if not coin_id or price is None:
        return None

    sparkline = (row.get("sparkline_in_7d") or {}).get("price") or []
    return Asset(
        id=str(coin_id),
        symbol=str(row.get("symbol", "")).upper(),
        name=str(row.get("name", "")),
        image=row.get("image") or None,
        current_price=_float(price),
        price_change_24h=_float(row.get("price_change_24h")),
        price_change_percentage_24h=_float(row.get("price_change_percentage_24h")),
        market_cap=_float(row.get("market_cap")),
        sparkline_7d=tuple(_float(p) for p in sparkline),
    )


class CoinGeckoClient:
    """Primary market source.

    Owns a trending-list cache and a per-asset price cache. All outbound calls
    go through the rate limit guard.
    """

    def __init__(
        self,
        config: PrimarySourceConfig,
        guard: RateLimitGuard,
        http: HttpClient | None = None,
        network: NetworkMonitor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = config.base_url.rstrip("/")
        self._guard = guard
        headers = {"x-cg-demo-api-key": config.api_key} if config.api_key else None
        self._http = http or HttpClient(timeout=config.timeout_seconds, headers=headers)
        self._network = network or NetworkMonitor()
        self._trending: TTLCache[str, list[Asset]] = TTLCache(config.trending_ttl_seconds, clock)
        self._prices: TTLCache[str, float] = TTLCache(config.price_ttl_seconds, clock)

    async def _get(self, endpoint: str, params: dict[str, str] | None = None) -> Any:
        url = f"{self.base_url}/{endpoint}"
        return await self._guard.call(
            SOURCE_NAME, endpoint, lambda: self._http.get_json(url, params)
        )

    # ------------------------------------------------------------------
    # Trending
    # ------------------------------------------------------------------

    async def fetch_trending(self, limit: int = 20, force_refresh: bool = False) -> list[Asset]:
        """Top assets by market cap, served from cache while fresh."""
        if not self._network.is_connected:
            stale = self._trending.get_stale(_TRENDING_KEY)
            if stale:
                logger.info("Offline - returning %d cached coins", len(stale))
                return stale[:limit]
            raise NetworkUnavailable("No internet connection and no cached coins", source=SOURCE_NAME)

        if not force_refresh:
            cached = self._trending.get(_TRENDING_KEY)
            if cached:
                logger.debug(
                    "Returning cached coins (age: %ds)", int(self._trending.age(_TRENDING_KEY) or 0)
                )
                return cached[:limit]

        data = await self._get(
            "coins/markets",
            {
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": str(limit),
                "page": "1",
                "sparkline": "true",
                "price_change_percentage": "24h",
            },
        )
        if not isinstance(data, list):
            raise InvalidResponse("Expected a list from coins/markets", source=SOURCE_NAME)

        assets: list[Asset] = []
        for row in data:
            if not isinstance(row, dict):
                continue
            asset = parse_market_row(row)
            if asset is not None:
                assets.append(asset)

        self._trending.put(_TRENDING_KEY, assets)
        for asset in assets:
            self._prices.put(asset.id, asset.current_price)

        logger.info("Fetched %d coins from %s", len(assets), SOURCE_NAME)
        return assets[:limit]

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------

    def cached_price(self, asset_id: str) -> float | None:
        return self._prices.get(asset_id)

    async def fetch_prices(self, ids: list[str]) -> dict[str, float]:
        """USD prices for ``ids``; stale or missing ids go out in one call.

        Ids absent from the response are left out of the result and are not
        cached.
        """
        wanted = list(dict.fromkeys(i for i in ids if i))
        prices: dict[str, float] = {}
        missing: list[str] = []
        for asset_id in wanted:
            cached = self._prices.get(asset_id)
            if cached is not None:
                prices[asset_id] = cached
            else:
                missing.append(asset_id)

        if not missing:
            return prices

        if not self._network.is_connected:
            for asset_id in missing:
                stale = self._prices.get_stale(asset_id)
                if stale is not None:
                    prices[asset_id] = stale
            if not prices:
                raise NetworkUnavailable("No internet connection and no cached prices", source=SOURCE_NAME)
            return prices

        data = await self._get("simple/price", {"ids": ",".join(missing), "vs_currencies": "usd"})
        if not isinstance(data, dict):
            raise InvalidResponse("Expected an object from simple/price", source=SOURCE_NAME)

        for asset_id in missing:
            entry = data.get(asset_id)
            if not isinstance(entry, dict) or entry.get("usd") is None:
                continue
            price = _float(entry["usd"])
            self._prices.put(asset_id, price)
            prices[asset_id] = price

        logger.debug("Fetched %d/%d prices from %s", len(prices), len(wanted), SOURCE_NAME)
        return prices

    async def fetch_price(self, asset_id: str) -> float:
        """Single-asset price; raises NotFound when the source omits the id."""
        if not asset_id:
            raise InvalidRequest("Empty asset id", source=SOURCE_NAME)
        prices = await self.fetch_prices([asset_id])
        if asset_id not in prices:
            raise NotFound(f"Cryptocurrency not found: {asset_id}", source=SOURCE_NAME)
        return prices[asset_id]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search_image(self, symbol: str) -> str | None:
        """Image URL of the first listed coin whose ticker matches ``symbol``."""
        if not symbol or not self._network.is_connected:
            return None
        data = await self._get("search", {"query": symbol})
        if not isinstance(data, dict):
            raise InvalidResponse("Expected an object from search", source=SOURCE_NAME)

        coins = data.get("coins", [])
        if not isinstance(coins, list):
            raise InvalidResponse("Expected coins[] from search", source=SOURCE_NAME)

        wanted = symbol.upper()
        for coin in coins:
            if not isinstance(coin, dict):
                raise InvalidResponse(f"Malformed search entry: {coin!r}", source=SOURCE_NAME)
            if str(coin.get("symbol", "")).upper() == wanted:
                return coin.get("large") or coin.get("thumb") or None
        return None

    def clear_cache(self) -> None:
        self._trending.clear()
        self._prices.clear()
        logger.info("%s cache cleared", SOURCE_NAME)
