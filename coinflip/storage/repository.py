"""Portfolio repositories — in-memory and JSON file backed."""
from __future__ import annotations

import copy
import json
import logging
from datetime import datetime
from pathlib import Path

from ..models import Portfolio

logger = logging.getLogger(__name__)


class InMemoryPortfolioRepository:
    """Keeps deep copies so callers cannot mutate stored state by accident."""

    def __init__(self, portfolios: list[Portfolio] | None = None) -> None:
        self._portfolios: dict[str, Portfolio] = {}
        for portfolio in portfolios or []:
            self._portfolios[portfolio.id] = copy.deepcopy(portfolio)

    async def list_portfolios(self) -> list[Portfolio]:
        return [copy.deepcopy(p) for p in self._portfolios.values()]

    async def get(self, portfolio_id: str) -> Portfolio | None:
        portfolio = self._portfolios.get(portfolio_id)
        return copy.deepcopy(portfolio) if portfolio else None

    async def save(self, portfolio: Portfolio) -> None:
        self._portfolios[portfolio.id] = copy.deepcopy(portfolio)

    async def update_net_worth(
        self,
        portfolio_id: str,
        net_worth: float,
        gain_percentage: float,
        updated_at: datetime,
    ) -> None:
        portfolio = self._portfolios.get(portfolio_id)
        if portfolio is None:
            raise KeyError(f"Portfolio not found: {portfolio_id}")
        portfolio.net_worth = net_worth
        portfolio.gain_percentage = gain_percentage
        portfolio.last_networth_update = updated_at


class JsonPortfolioRepository(InMemoryPortfolioRepository):
    """Loads every portfolio from one JSON file and writes it back on change."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        portfolios: list[Portfolio] = []
        if self.path.exists():
            with open(self.path) as f:
                raw = json.load(f)
            portfolios = [Portfolio.from_dict(item) for item in raw.get("portfolios", [])]
            logger.info("Loaded %d portfolios from %s", len(portfolios), self.path)
        super().__init__(portfolios)

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"portfolios": [p.to_dict() for p in self._portfolios.values()]}
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w") as f:
            json.dump(payload, f, indent=2)
        tmp.replace(self.path)

    async def save(self, portfolio: Portfolio) -> None:
        await super().save(portfolio)
        self._flush()

    async def update_net_worth(
        self,
        portfolio_id: str,
        net_worth: float,
        gain_percentage: float,
        updated_at: datetime,
    ) -> None:
        await super().update_net_worth(portfolio_id, net_worth, gain_percentage, updated_at)
        self._flush()
