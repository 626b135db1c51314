"""CoinFlip price resolution and portfolio valuation engine."""

__version__ = "0.1.0"
