"""GeckoTerminal client — viral pools, token prices and OHLCV candles."""
from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from ..cache import TTLCache
from ..config import DiscoverySourceConfig
from ..errors import (
    InvalidRequest,
    InvalidResponse,
    NetworkUnavailable,
    NotFound,
    PriceSourceError,
    RateLimitExceeded,
)
from ..interfaces.price_source import ImageLookup
from ..interfaces.store import KeyValueStore
from ..models import Asset, utcnow
from ..network import NetworkMonitor
from ..rate_limit import RateLimitGuard
from ..storage.kv import MemoryStore
from .http import HttpClient
from .virality import rank_viral

logger = logging.getLogger(__name__)

SOURCE_NAME = "GeckoTerminal"
TIMEFRAMES = ("day", "hour", "minute")
_TRENDING_KEY = "trending_pools"


def _opt_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_timestamp(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    # Offset-less timestamps from the feed are UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _count(value: Any) -> int:
    number = _opt_float(value)
    if number is None or not math.isfinite(number) or number < 0:
        return 0
    return int(number)


def _split_pool_id(pool_id: str) -> tuple[str | None, str]:
    """``{chain}_{address}`` -> (chain, address). Network ids may contain '_'."""
    if "_" not in pool_id:
        return None, pool_id
    chain, address = pool_id.rsplit("_", 1)
    return chain, address


def parse_pool(pool: dict[str, Any]) -> Asset | None:
    """Convert one trending pool into an Asset keyed by its base token address.

    The symbol is the left side of the pool name ("TOKEN / QUOTE"). Pools with
    no parseable price are dropped.
    """
    attrs = pool.get("attributes") or {}
    token_name = str(attrs.get("name") or "").split("/")[0].strip()
    if not token_name:
        return None

    price = _opt_float(attrs.get("base_token_price_usd"))
    if price is None:
        return None

    chain_id, pool_address = _split_pool_id(str(pool.get("id", "")))
    pool_address = attrs.get("address") or pool_address

    base_token = ((pool.get("relationships") or {}).get("base_token") or {}).get("data") or {}
    _, token_address = _split_pool_id(str(base_token.get("id", "")))
    asset_id = token_address or pool_address

    changes = attrs.get("price_change_percentage") or {}
    change_1h = _opt_float(changes.get("h1"))
    change_24h = _opt_float(changes.get("h24")) or 0.0

    txns_h1 = (attrs.get("transactions") or {}).get("h1") or {}
    buys = _count(txns_h1.get("buys"))
    sells = _count(txns_h1.get("sells"))

    volumes = attrs.get("volume_usd") or {}

    return Asset(
        id=asset_id,
        symbol=token_name.upper(),
        name=token_name,
        current_price=price,
        price_change_24h=price * (change_24h / 100),
        price_change_percentage_24h=change_24h,
        market_cap=_opt_float(attrs.get("fdv_usd")) or 0.0,
        pool_address=pool_address,
        pool_created_at=_parse_timestamp(attrs.get("pool_created_at")),
        price_change_1h=change_1h,
        buys_1h=buys,
        sells_1h=sells,
        txns_1h=buys + sells,
        volume_1h=_opt_float(volumes.get("h1")) or 0.0,
        volume_24h=_opt_float(volumes.get("h24")) or 0.0,
        chain_id=chain_id,
    )


def parse_ohlcv(data: Any) -> list[float]:
    """Close prices (index 4) from an OHLCV payload, oldest row first as given."""
    rows = data
    if isinstance(data, dict):
        rows = ((data.get("data") or {}).get("attributes") or {}).get("ohlcv_list")
    if not isinstance(rows, list):
        raise InvalidResponse("Expected an ohlcv_list", source=SOURCE_NAME)

    closes: list[float] = []
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 5:
            raise InvalidResponse(f"Malformed candle row: {row!r}", source=SOURCE_NAME)
        close = _opt_float(row[4])
        if close is None:
            raise InvalidResponse(f"Non-numeric close in row: {row!r}", source=SOURCE_NAME)
        closes.append(close)
    return closes


class GeckoTerminalClient:
    """Discovery source for newly launched, high-volatility tokens.

    Live lookups are addressed by ``(chain, address)``; prices are also kept in
    a cache keyed by uppercased symbol, since that is what holdings bought from
    the viral feed retain once the token drops out of it.
    """

    def __init__(
        self,
        config: DiscoverySourceConfig,
        guard: RateLimitGuard,
        http: HttpClient | None = None,
        network: NetworkMonitor | None = None,
        image_lookup: ImageLookup | None = None,
        image_store: KeyValueStore | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.base_url = config.base_url.rstrip("/")
        self._config = config
        self._guard = guard
        self._http = http or HttpClient(timeout=config.timeout_seconds)
        self._network = network or NetworkMonitor()
        self._image_lookup = image_lookup
        self._image_store = image_store or MemoryStore()
        self._image_misses: set[str] = set()
        self._sleep = sleep
        self._now = now

        self._viral: TTLCache[str, list[Asset]] = TTLCache(config.trending_ttl_seconds, clock)
        self._ohlcv: TTLCache[tuple[str, str, str, int], list[float]] = TTLCache(
            config.ohlcv_ttl_seconds, clock
        )
        self._symbol_prices: TTLCache[str, float] = TTLCache(config.symbol_price_ttl_seconds, clock)
        self._token_prices: TTLCache[tuple[str, str], float] = TTLCache(
            config.symbol_price_ttl_seconds, clock
        )

    async def _get(self, endpoint: str, path: str, params: dict[str, str] | None = None) -> Any:
        url = f"{self.base_url}/{path}"
        return await self._guard.call(
            SOURCE_NAME, endpoint, lambda: self._http.get_json(url, params)
        )

    # ------------------------------------------------------------------
    # Viral feed
    # ------------------------------------------------------------------

    async def fetch_viral(self, limit: int = 20, force_refresh: bool = False) -> list[Asset]:
        """Trending pools filtered to viral assets, highest virality first."""
        if not self._network.is_connected:
            stale = self._viral.get_stale(_TRENDING_KEY)
            if stale:
                logger.info("Offline - returning %d cached viral coins", len(stale))
                return await self._with_images(stale[:limit])
            raise NetworkUnavailable(
                "No internet connection and no cached viral coins", source=SOURCE_NAME
            )

        if not force_refresh:
            cached = self._viral.get(_TRENDING_KEY)
            if cached:
                logger.debug("Returning cached viral coins (%d)", len(cached))
                return await self._with_images(cached[:limit])

        data = await self._get("trending_pools", "networks/trending_pools")
        pools = data.get("data") if isinstance(data, dict) else None
        if not isinstance(pools, list):
            raise InvalidResponse("Expected data[] from trending_pools", source=SOURCE_NAME)

        assets = [a for a in (parse_pool(p) for p in pools if isinstance(p, dict)) if a]
        for asset in assets:
            self._symbol_prices.put(asset.symbol.upper(), asset.current_price)

        ranked = [
            replace(a, is_viral=True)
            for a in rank_viral(
                assets,
                now=self._now(),
                criteria=self._config.criteria,
                weights=self._config.weights,
            )
        ]
        self._viral.put(_TRENDING_KEY, ranked)

        logger.info("Fetched %d pools, filtered to %d viral coins", len(assets), len(ranked))
        return await self._with_images(ranked[:limit])

    # ------------------------------------------------------------------
    # Token price
    # ------------------------------------------------------------------

    async def fetch_token_price(self, chain: str, address: str) -> float:
        """Current USD price of the token at ``address`` on ``chain``.

        Raises NotFound when the token is unknown or reports no positive price.
        """
        if not chain or not address:
            raise InvalidRequest("chain and address are required", source=SOURCE_NAME)

        cached = self._token_prices.get((chain, address))
        if cached is not None:
            return cached

        if not self._network.is_connected:
            raise NetworkUnavailable("No internet connection", source=SOURCE_NAME)

        data = await self._get("tokens", f"networks/{chain}/tokens/{address}")
        if not isinstance(data, dict):
            raise InvalidResponse("Expected an object from tokens", source=SOURCE_NAME)

        attrs = (data.get("data") or {}).get("attributes") or {}
        price = _opt_float(attrs.get("price_usd"))
        if price is None or price <= 0:
            raise NotFound(f"No price for {chain}/{address}", source=SOURCE_NAME)

        self._token_prices.put((chain, address), price)
        symbol = attrs.get("symbol")
        if symbol:
            self._symbol_prices.put(str(symbol).upper(), price)
        return price

    # ------------------------------------------------------------------
    # OHLCV
    # ------------------------------------------------------------------

    async def fetch_ohlcv(
        self,
        chain: str,
        pool_address: str,
        timeframe: str = "hour",
        limit: int = 24,
    ) -> list[float]:
        """Close prices for a pool, retrying 429s with exponential backoff.

        On a final rate-limit failure the last cached series is returned even
        if stale; with nothing cached the RateLimitExceeded propagates.
        """
        if timeframe not in TIMEFRAMES:
            raise InvalidRequest(f"Unsupported timeframe: {timeframe}", source=SOURCE_NAME)
        if not chain or not pool_address or limit <= 0:
            raise InvalidRequest("chain, pool_address and a positive limit are required", source=SOURCE_NAME)

        key = (chain, pool_address, timeframe, limit)
        cached = self._ohlcv.get(key)
        if cached is not None:
            return cached

        if not self._network.is_connected:
            stale = self._ohlcv.get_stale(key)
            if stale is not None:
                return stale
            raise NetworkUnavailable("No internet connection and no cached candles", source=SOURCE_NAME)

        path = f"networks/{chain}/pools/{pool_address}/ohlcv/{timeframe}"
        params = {"aggregate": "1", "limit": str(limit)}
        max_retries = self._config.ohlcv_max_retries

        for attempt in range(max_retries + 1):
            try:
                data = await self._get("ohlcv", path, params)
            except RateLimitExceeded:
                if attempt < max_retries:
                    delay = 2 ** (attempt + 1)
                    logger.warning(
                        "OHLCV rate limited for %s, retrying in %ds (%d/%d)",
                        pool_address,
                        delay,
                        attempt + 1,
                        max_retries,
                    )
                    await self._sleep(delay)
                    continue
                stale = self._ohlcv.get_stale(key)
                if stale is not None:
                    logger.warning("OHLCV retries exhausted for %s, serving cached candles", pool_address)
                    return stale
                raise

            closes = parse_ohlcv(data)
            self._ohlcv.put(key, closes)
            return closes

        # Unreachable: the final attempt either returns or raises
        raise RateLimitExceeded(source=SOURCE_NAME, endpoint="ohlcv")

    # ------------------------------------------------------------------
    # Symbol cache accessors
    # ------------------------------------------------------------------

    def cached_price_for_symbol(self, symbol: str) -> float | None:
        if not symbol:
            return None
        return self._symbol_prices.get(symbol.upper())

    def cached_prices_for_symbols(self, symbols: list[str]) -> dict[str, float]:
        prices: dict[str, float] = {}
        for symbol in symbols:
            price = self.cached_price_for_symbol(symbol)
            if price is not None:
                prices[symbol.upper()] = price
        return prices

    # ------------------------------------------------------------------
    # Image enrichment
    # ------------------------------------------------------------------

    async def _with_images(self, assets: list[Asset]) -> list[Asset]:
        if not self._config.enrich_images:
            return assets
        return await self.enrich_images(assets)

    async def enrich_images(self, assets: list[Asset]) -> list[Asset]:
        """Attach image URLs found by symbol search; failures leave assets as-is."""
        enriched: list[Asset] = []
        for asset in assets:
            if asset.image:
                enriched.append(asset)
                continue

            key = asset.symbol.upper()
            url = self._image_store.get(key)
            if url is None and self._image_lookup is not None and key not in self._image_misses:
                try:
                    url = await self._image_lookup.search_image(key)
                except PriceSourceError as e:
                    logger.debug("Image lookup failed for %s: %s", key, e)
                    url = None
                else:
                    if url:
                        self._image_store.put(key, url)
                    else:
                        self._image_misses.add(key)

            enriched.append(replace(asset, image=url) if url else asset)
        return enriched

    def clear_cache(self) -> None:
        self._viral.clear()
        self._ohlcv.clear()
        self._symbol_prices.clear()
        self._token_prices.clear()
        logger.info("%s cache cleared", SOURCE_NAME)
