"""Batch revaluation — recompute and persist net worth for every portfolio."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from ..config import RevaluationConfig
from ..interfaces.repository import PortfolioRepository
from ..models import RevaluationSummary, utcnow
from .resolver import PriceResolver
from .valuation import gain_percentage, net_worth

logger = logging.getLogger(__name__)


class RevaluationJob:
    """Revalues all portfolios in one pass.

    Prices for every unique held asset are fetched up front (discovery lookups
    for chain-tagged holdings, primary-source batches for the rest), then each
    portfolio is valued and written back. A failure on one portfolio is logged
    and does not stop the others.
    """

    def __init__(
        self,
        config: RevaluationConfig,
        repository: PortfolioRepository,
        resolver: PriceResolver,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._repository = repository
        self._resolver = resolver
        self._clock = clock

    async def run(self) -> RevaluationSummary:
        started = self._clock()
        try:
            portfolios = await self._repository.list_portfolios()
            holdings = [h for p in portfolios for h in p.holdings]
            unique_ids = {h.asset_id for h in holdings}
            logger.info(
                "Revaluing %d portfolios holding %d unique coins", len(portfolios), len(unique_ids)
            )

            live = await self._resolver.fetch_live_prices(holdings, batch_size=self._config.batch_size)
            if live.rate_limited:
                logger.warning("Rate limited while pricing %d coins", len(live.rate_limited))

            updated = 0
            now = utcnow()
            for portfolio in portfolios:
                try:
                    worth = net_worth(portfolio, live.prices)
                    gain = gain_percentage(worth, portfolio.starting_balance)
                    await self._repository.update_net_worth(portfolio.id, worth, gain, now)
                    updated += 1
                except Exception as e:
                    logger.error("Failed to update portfolio %s: %s", portfolio.id, e)
        except Exception as e:
            logger.error("Revaluation failed: %s", e)
            return RevaluationSummary(success=False, error=str(e))

        duration_ms = int((self._clock() - started) * 1000)
        logger.info(
            "Revaluation complete: %d/%d portfolios updated in %dms", updated, len(portfolios), duration_ms
        )
        return RevaluationSummary(
            success=True,
            portfolios_updated=updated,
            portfolios_total=len(portfolios),
            unique_coins=len(unique_ids),
            prices_fetched=len(live.prices),
            duration_ms=duration_ms,
        )

    async def run_continuous(self, interval_minutes: int | None = None) -> None:
        """Run the job on a fixed interval until cancelled."""
        interval = interval_minutes or self._config.interval_minutes
        logger.info("Starting scheduled revaluation (every %d minutes)", interval)

        while True:
            try:
                await self.run()
                await asyncio.sleep(interval * 60)
            except Exception as e:
                logger.error("Error in revaluation loop: %s", e)
                await asyncio.sleep(60)
