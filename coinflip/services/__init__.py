"""Service modules"""
from .resolver import PriceResolver
from .revaluation import RevaluationJob
from .valuation import PortfolioService

__all__ = ["PriceResolver", "PortfolioService", "RevaluationJob"]
