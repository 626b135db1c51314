"""Market data source clients."""
from .coingecko import CoinGeckoClient
from .geckoterminal import GeckoTerminalClient
from .http import HttpClient

__all__ = ["CoinGeckoClient", "GeckoTerminalClient", "HttpClient"]
