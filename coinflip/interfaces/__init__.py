"""Protocol interfaces for the price engine."""
from .price_source import DiscoverySource, ImageLookup, MarketSource
from .repository import PortfolioRepository
from .store import KeyValueStore
from .telemetry import TelemetrySink

__all__ = [
    "DiscoverySource",
    "ImageLookup",
    "KeyValueStore",
    "MarketSource",
    "PortfolioRepository",
    "TelemetrySink",
]
