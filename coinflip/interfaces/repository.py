"""Portfolio repository protocol — where portfolios are read and written."""
from datetime import datetime
from typing import Protocol

from ..models import Portfolio


class PortfolioRepository(Protocol):
    async def list_portfolios(self) -> list[Portfolio]: ...

    async def get(self, portfolio_id: str) -> Portfolio | None: ...

    async def save(self, portfolio: Portfolio) -> None: ...

    async def update_net_worth(
        self,
        portfolio_id: str,
        net_worth: float,
        gain_percentage: float,
        updated_at: datetime,
    ) -> None: ...
