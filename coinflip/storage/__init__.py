"""Persistence: key-value stores and portfolio repositories."""
from .kv import JsonFileStore, MemoryStore
from .repository import InMemoryPortfolioRepository, JsonPortfolioRepository

__all__ = [
    "InMemoryPortfolioRepository",
    "JsonFileStore",
    "JsonPortfolioRepository",
    "MemoryStore",
]
