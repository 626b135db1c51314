"""Application wiring — builds sources, resolver and services from config."""
from __future__ import annotations

import logging

from .config import AppConfig
from .network import NetworkMonitor
from .rate_limit import RateLimitGuard
from .services import PortfolioService, PriceResolver, RevaluationJob
from .sources import CoinGeckoClient, GeckoTerminalClient
from .storage import JsonFileStore, JsonPortfolioRepository
from .telemetry import build_sink

logger = logging.getLogger(__name__)


class AppContext:
    """Holds one shared instance of every component for the process."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.network = NetworkMonitor()
        self.guard = RateLimitGuard(build_sink(config.telemetry))

        self.primary = CoinGeckoClient(config.primary, self.guard, network=self.network)
        self.discovery = GeckoTerminalClient(
            config.discovery,
            self.guard,
            network=self.network,
            image_lookup=self.primary if config.discovery.enrich_images else None,
            image_store=JsonFileStore(config.storage.image_cache_path),
        )

        self.resolver = PriceResolver(self.primary, self.discovery)
        self.repository = JsonPortfolioRepository(config.storage.portfolios_path)
        self.portfolios = PortfolioService(self.resolver, self.repository)
        self.revaluation = RevaluationJob(config.revaluation, self.repository, self.resolver)

    def clear_caches(self) -> None:
        self.primary.clear_cache()
        self.discovery.clear_cache()
        logger.info("All price caches cleared")
