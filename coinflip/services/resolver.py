"""Price resolver — the fallback cascade used for every held asset.

Order, first success wins:

1. central price map by asset id
2. central price map by uppercased symbol
3. discovery source symbol cache
4. discovery token lookup for chain-tagged holdings
5. one batched primary-source lookup for whatever is still unresolved
6. the holding's own average buy price
7. hard zero, only when a live lookup explicitly reported the asset missing

Steps 1-3 never touch the network.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping

from ..errors import NotFound, PriceSourceError, RateLimitExceeded
from ..interfaces.price_source import DiscoverySource, MarketSource
from ..models import Asset, Holding, PriceStatus, ResolvedPrice

logger = logging.getLogger(__name__)

STEP_PRICE_MAP_ID = "price_map_id"
STEP_PRICE_MAP_SYMBOL = "price_map_symbol"
STEP_DISCOVERY_CACHE = "discovery_symbol_cache"
STEP_DISCOVERY_LIVE = "discovery_token"
STEP_PRIMARY_LIVE = "primary_batch"
STEP_COST_BASIS = "cost_basis"
STEP_NOT_FOUND = "not_found"


def lookup_cached_price(
    holding: Holding,
    price_map: Mapping[str, float],
    symbol_cache: Callable[[str], float | None] | None = None,
) -> ResolvedPrice | None:
    """Steps 1-3 of the cascade as a pure function over the supplied data."""
    price = price_map.get(holding.asset_id)
    if price is not None and price > 0:
        return ResolvedPrice(price, PriceStatus.LIVE, STEP_PRICE_MAP_ID)

    symbol = holding.asset_symbol.upper()
    price = price_map.get(symbol)
    if price is not None and price > 0:
        return ResolvedPrice(price, PriceStatus.LIVE, STEP_PRICE_MAP_SYMBOL)

    if symbol_cache is not None:
        price = symbol_cache(symbol)
        if price is not None and price > 0:
            return ResolvedPrice(price, PriceStatus.LIVE, STEP_DISCOVERY_CACHE)

    return None


def _chunks(items: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass
class LivePrices:
    """Outcome of steps 4-5 for a set of holdings, keyed by asset id."""

    prices: dict[str, float] = field(default_factory=dict)
    steps: dict[str, str] = field(default_factory=dict)
    not_found: set[str] = field(default_factory=set)
    rate_limited: set[str] = field(default_factory=set)


class PriceResolver:
    """Owns the central in-memory price map and runs the cascade.

    Screens and jobs refresh the map through ``refresh_trending`` and
    ``refresh_viral`` (or ``record_assets``); callers may also pass an explicit
    overlay map, which takes precedence over the central one.
    """

    def __init__(self, market: MarketSource, discovery: DiscoverySource) -> None:
        self._market = market
        self._discovery = discovery
        self._price_map: dict[str, float] = {}

    # ------------------------------------------------------------------
    # Central price map
    # ------------------------------------------------------------------

    @property
    def price_map(self) -> dict[str, float]:
        return dict(self._price_map)

    def record_assets(self, assets: Iterable[Asset]) -> None:
        """Index asset prices by id and by uppercased symbol."""
        for asset in assets:
            if asset.current_price <= 0:
                continue
            self._price_map[asset.id] = asset.current_price
            self._price_map[asset.symbol.upper()] = asset.current_price

    async def refresh_trending(self, limit: int = 20, force_refresh: bool = False) -> list[Asset]:
        assets = await self._market.fetch_trending(limit=limit, force_refresh=force_refresh)
        self.record_assets(assets)
        return assets

    async def refresh_viral(self, limit: int = 20, force_refresh: bool = False) -> list[Asset]:
        assets = await self._discovery.fetch_viral(limit=limit, force_refresh=force_refresh)
        self.record_assets(assets)
        return assets

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    def resolve_cached(
        self, holding: Holding, price_map: Mapping[str, float] | None = None
    ) -> ResolvedPrice | None:
        merged = {**self._price_map, **(price_map or {})}
        return lookup_cached_price(holding, merged, self._discovery.cached_price_for_symbol)

    async def fetch_live_prices(
        self, holdings: Iterable[Holding], batch_size: int | None = None
    ) -> LivePrices:
        """Steps 4-5: discovery token lookups, then batched primary lookups."""
        live = LivePrices()
        holdings = list(holdings)

        seen: set[tuple[str, str]] = set()
        for holding in holdings:
            if not holding.chain_id:
                continue
            key = (holding.chain_id, holding.asset_id)
            if key in seen:
                continue
            seen.add(key)
            try:
                price = await self._discovery.fetch_token_price(holding.chain_id, holding.asset_id)
            except NotFound:
                live.not_found.add(holding.asset_id)
                continue
            except RateLimitExceeded:
                live.rate_limited.add(holding.asset_id)
                continue
            except PriceSourceError as e:
                logger.warning("Discovery lookup failed for %s: %s", holding.asset_symbol, e)
                continue
            live.prices[holding.asset_id] = price
            live.steps[holding.asset_id] = STEP_DISCOVERY_LIVE

        remaining = list(dict.fromkeys(h.asset_id for h in holdings if h.asset_id not in live.prices))
        if remaining:
            size = batch_size or len(remaining)
            for batch in _chunks(remaining, size):
                try:
                    fetched = await self._market.fetch_prices(batch)
                except RateLimitExceeded:
                    live.rate_limited.update(batch)
                    continue
                except PriceSourceError as e:
                    logger.warning("Primary price batch of %d failed: %s", len(batch), e)
                    continue
                for asset_id, price in fetched.items():
                    if price > 0:
                        live.prices[asset_id] = price
                        live.steps[asset_id] = STEP_PRIMARY_LIVE

        live.not_found -= live.prices.keys()
        return live

    @staticmethod
    def _finalize(holding: Holding, live: LivePrices) -> ResolvedPrice:
        """Steps 6-7 for a holding the cached steps could not answer."""
        rate_limited = holding.asset_id in live.rate_limited
        price = live.prices.get(holding.asset_id)
        if price is not None:
            return ResolvedPrice(
                price, PriceStatus.LIVE, live.steps[holding.asset_id], rate_limited=rate_limited
            )
        if holding.asset_id in live.not_found:
            logger.info("Price unavailable for %s", holding.asset_symbol)
            return ResolvedPrice(0.0, PriceStatus.UNAVAILABLE, STEP_NOT_FOUND, rate_limited=rate_limited)
        logger.debug("Using purchase price for %s: $%.8f", holding.asset_symbol, holding.average_buy_price)
        return ResolvedPrice(
            holding.average_buy_price, PriceStatus.COST_BASIS, STEP_COST_BASIS, rate_limited=rate_limited
        )

    async def resolve(
        self, holding: Holding, price_map: Mapping[str, float] | None = None
    ) -> ResolvedPrice:
        results = await self.resolve_all([holding], price_map)
        return results[holding.asset_id]

    async def resolve_all(
        self, holdings: Iterable[Holding], price_map: Mapping[str, float] | None = None
    ) -> dict[str, ResolvedPrice]:
        """Resolve every holding, sharing one primary-source batch.

        Returns a mapping of asset id to resolved price.
        """
        results: dict[str, ResolvedPrice] = {}
        pending: dict[str, Holding] = {}
        for holding in holdings:
            if holding.asset_id in results or holding.asset_id in pending:
                continue
            cached = self.resolve_cached(holding, price_map)
            if cached is not None:
                results[holding.asset_id] = cached
            else:
                pending[holding.asset_id] = holding

        if pending:
            live = await self.fetch_live_prices(pending.values())
            for holding in pending.values():
                results[holding.asset_id] = self._finalize(holding, live)
        return results
